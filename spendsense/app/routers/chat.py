import logging

from flask import Blueprint, jsonify

from ..dependencies import get_llm_client, parse_body
from ..errors import RequestValidationError
from ..schemas import ChatRequest
from ..services import process_ai_chat
from ..utils import is_missing

logger = logging.getLogger(__name__)

router = Blueprint("chat", __name__)

MISSING_FIELDS = "Missing required fields: prompt and categories are required"


@router.route("/chat", methods=["POST"])
def chat():
    try:
        body = parse_body(ChatRequest, MISSING_FIELDS)
    except RequestValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    try:
        result = process_ai_chat(
            get_llm_client(),
            body.prompt,
            body.categories,
            entries=[] if is_missing(body.entries) else body.entries,
            currency="USD" if is_missing(body.currency) else body.currency,
            image_url=body.image_url,
        )
    except Exception as exc:
        logger.exception("Error processing AI chat")
        return jsonify({"error": "Failed to process AI chat request", "message": str(exc)}), 500
    return jsonify(result)
