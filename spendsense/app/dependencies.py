"""Accessors for the per-app collaborators built by ``create_app``."""
from typing import Type, TypeVar

from flask import current_app, request
from pydantic import BaseModel, ValidationError

from .config import Settings
from .errors import RequestValidationError
from .llm import ChatCompletionClient
from .storage import ImageStorage

EXTENSION_KEY = "spendsense"

Body = TypeVar("Body", bound=BaseModel)


def get_settings() -> Settings:
    return current_app.extensions[EXTENSION_KEY]["settings"]


def get_llm_client() -> ChatCompletionClient:
    return current_app.extensions[EXTENSION_KEY]["llm"]


def get_storage() -> ImageStorage:
    return current_app.extensions[EXTENSION_KEY]["storage"]


def parse_body(schema: Type[Body], message: str) -> Body:
    """Validate the JSON body against ``schema``; malformed JSON counts as an empty body."""
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    try:
        body = schema.model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(message) from exc
    if not body.is_complete:
        raise RequestValidationError(message)
    return body
