import logging
import sys
from typing import Optional

from flask import Flask, jsonify, request, send_from_directory

from .config import Settings
from .dependencies import EXTENSION_KEY, get_settings, get_storage
from .llm import ChatCompletionClient
from .routers import chat, images, transactions
from .storage import ImageStorage, LocalImageStorage, build_storage

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Send ``spendsense.*`` records to stdout at ``level``."""
    root = logging.getLogger("spendsense")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
    return root


def create_app(
    settings: Optional[Settings] = None,
    llm_client: Optional[ChatCompletionClient] = None,
    storage: Optional[ImageStorage] = None,
) -> Flask:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = {
        "settings": settings,
        "llm": llm_client or ChatCompletionClient(settings),
        "storage": storage or build_storage(settings),
    }

    # Routes live at the root and under the legacy /api/transactions prefix
    for blueprint in (transactions.router, chat.router, images.router):
        app.register_blueprint(blueprint)
        app.register_blueprint(blueprint, url_prefix="/api/transactions", name=f"api_{blueprint.name}")

    @app.before_request
    def cors_preflight():
        # before_request runs ahead of dispatch, so unmatched paths are answered too
        if request.method == "OPTIONS":
            return "", 204

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Accept, Authorization"
        return response

    @app.route("/api/version")
    def version():
        return jsonify({"version": get_settings().app_version})

    @app.route("/api/ping")
    def ping():
        current = get_settings()
        return jsonify({
            "ok": True,
            "model": current.chat_model,
            "visionModel": current.vision_model,
            "storage": get_storage().name,
            "configured": bool(current.api_key),
        })

    @app.route("/uploads/<path:filename>")
    def serve_upload(filename):
        store = get_storage()
        if not isinstance(store, LocalImageStorage):
            return jsonify({"error": "Not found"}), 404
        base = store.uploads_dir.resolve()
        target = (base / filename).resolve()
        if target.parent != base or not target.is_file():
            return jsonify({"error": "Not found"}), 404
        return send_from_directory(base, target.name)

    logger.info(
        f"SpendSense ready: model={settings.chat_model} vision={settings.vision_model} "
        f"storage={app.extensions[EXTENSION_KEY]['storage'].name}"
    )
    return app
