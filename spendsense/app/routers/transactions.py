import logging

from flask import Blueprint, jsonify

from ..dependencies import get_llm_client, parse_body
from ..errors import RequestValidationError
from ..schemas import CategorizeRequest
from ..services import categorize_transactions

logger = logging.getLogger(__name__)

router = Blueprint("transactions", __name__)

MISSING_FIELDS = "Missing required fields: text and categories are required"


@router.route("/categorize", methods=["POST"])
def categorize():
    try:
        body = parse_body(CategorizeRequest, MISSING_FIELDS)
    except RequestValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        transactions = categorize_transactions(get_llm_client(), body.text, body.categories)
    except Exception as exc:
        logger.exception("Error processing transactions")
        return jsonify({"error": "Failed to process transactions", "message": str(exc)}), 500
    return jsonify(transactions)
