"""Categorization and chat pipelines: prompt, model call, extraction, validation, backfill."""
import logging
from datetime import datetime
from typing import Any, List, Optional

from .llm import CATEGORIZE_TEMPERATURE, CHAT_TEMPERATURE, ChatCompletionClient
from .prompts import build_categorize_messages, build_chat_messages
from .utils import (
    extract_json,
    normalize_chat_result,
    normalize_transactions,
    validate_chat_result,
    validate_transactions,
)

logger = logging.getLogger(__name__)


def categorize_transactions(client: ChatCompletionClient, text: str, categories: Any) -> List[dict]:
    messages = build_categorize_messages(text, categories)
    content = client.complete(messages, client.settings.categorize_model, CATEGORIZE_TEMPERATURE)
    transactions = validate_transactions(extract_json(content, "["))
    logger.info(f"Categorized {len(transactions)} transactions")
    return normalize_transactions(transactions)


def process_ai_chat(
    client: ChatCompletionClient,
    prompt: Optional[str],
    categories: Any,
    entries: Any = None,
    currency: Any = "USD",
    image_url: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    messages = build_chat_messages(prompt, categories, entries, currency, image_url, now)
    model = client.select_model(image_url)
    content = client.complete(messages, model, CHAT_TEMPERATURE)
    result = validate_chat_result(extract_json(content, "{"))
    logger.info(f"Chat answered with type={result['type']} using {model}")
    return normalize_chat_result(result, now)
