import json
import re
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from .errors import ResponseFormatError
from .prompts import iso_timestamp

CHAT_RESULT_FIELDS = ("type", "message", "data", "timestamp")

_SPANS = {
    "{": re.compile(r"\{.*\}", re.DOTALL),
    "[": re.compile(r"\[.*\]", re.DOTALL),
}


def is_missing(value: Any) -> bool:
    """True for null, false, 0 and ""; empty arrays and objects count as present."""
    if isinstance(value, (list, dict)):
        return False
    return not value


def extract_json(text: Optional[str], opener: str = "{") -> Any:
    """Parse the JSON payload out of free-form model output.

    A surrounding Markdown code fence is dropped first. Text that then starts
    with ``opener`` is parsed as-is; otherwise the first greedy ``{...}`` or
    ``[...]`` span is used, which tolerates prose around the payload but not
    unbalanced brackets inside string values.
    """
    if opener not in _SPANS:
        raise ValueError(f"Unsupported JSON opener: {opener!r}")
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned, flags=re.IGNORECASE)
        cleaned = re.sub(r"\s*```$", "", cleaned).strip()
    if not cleaned:
        raise ResponseFormatError("Model returned empty content")
    if not cleaned.startswith(opener):
        match = _SPANS[opener].search(cleaned)
        if match:
            cleaned = match.group(0)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ResponseFormatError(f"Model response was not valid JSON: {exc}") from exc


def validate_chat_result(result: Any) -> dict:
    if not isinstance(result, dict) or any(is_missing(result.get(field)) for field in CHAT_RESULT_FIELDS):
        raise ResponseFormatError("Invalid response structure")
    return result


def validate_transactions(transactions: Any) -> list:
    if not isinstance(transactions, list):
        raise ResponseFormatError("Response is not an array")
    return transactions


def normalize_transactions(transactions: list, now: Optional[datetime] = None) -> list:
    """Return copies of ``transactions`` with ``id`` and ``date`` filled in."""
    stamp = iso_timestamp(now or datetime.now(timezone.utc))
    normalized = []
    for txn in transactions:
        if not isinstance(txn, dict):
            normalized.append(txn)
            continue
        normalized.append({
            **txn,
            "id": txn.get("id") or str(uuid4()),
            "date": txn.get("date") or stamp,
        })
    return normalized


def normalize_chat_result(result: dict, now: Optional[datetime] = None) -> dict:
    """Backfill the transaction arrays carried by a chat result."""
    data = result.get("data")
    if isinstance(data, list):
        return {**result, "data": normalize_transactions(data, now)}
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        return {**result, "data": {**data, "results": normalize_transactions(data["results"], now)}}
    return result
