import logging

from flask import Blueprint, jsonify, request

from ..dependencies import get_storage
from ..storage import allowed_image

logger = logging.getLogger(__name__)

router = Blueprint("images", __name__)


@router.route("/upload-image", methods=["POST"])
def upload_image():
    upload = request.files.get("image")
    if upload is None or not upload.filename:
        return jsonify({"error": "No image file provided"}), 400
    if not allowed_image(upload.filename):
        return jsonify({"error": "Unsupported image type"}), 400

    try:
        image_url = get_storage().save(upload, request.host_url)
    except Exception as exc:
        logger.exception("Error uploading image")
        return jsonify({"error": "Failed to upload image", "message": str(exc)}), 500
    return jsonify({"message": "Image uploaded successfully", "imageUrl": image_url})
