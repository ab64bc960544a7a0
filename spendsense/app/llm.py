"""Client for the OpenAI-compatible chat-completion endpoint."""
import logging
import time
from typing import List, Optional

import requests

from .config import Settings
from .errors import ConfigError, ResponseFormatError, UpstreamError

logger = logging.getLogger(__name__)

CATEGORIZE_TEMPERATURE = 0.1
CHAT_TEMPERATURE = 0.2


class ChatCompletionClient:
    """Issues chat-completion calls with the configured credential, timeout and retry budget."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def select_model(self, image_url: Optional[str] = None) -> str:
        """Vision-capable model when an image is attached, otherwise the configured chat model."""
        return self.settings.vision_model if image_url else self.settings.chat_model

    def complete(self, messages: List[dict], model: str, temperature: float) -> str:
        """
        Send ``messages`` and return the text of the first choice.

        Raises:
            ConfigError: No API key is configured
            UpstreamError: Transport failure or non-2xx response
            ResponseFormatError: The body has no ``choices[0].message.content``
        """
        if not self.settings.api_key:
            raise ConfigError("OPENROUTER_API_KEY is not configured")

        body = {"model": model, "messages": messages, "temperature": temperature}
        attempts = self.settings.llm_max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                payload = self._post(body)
                break
            except UpstreamError as exc:
                if attempt == attempts or not exc.retryable:
                    raise
                logger.warning(
                    f"Chat completion attempt {attempt} failed: {exc}. "
                    f"Retrying in {self.settings.llm_retry_delay_seconds}s..."
                )
                time.sleep(self.settings.llm_retry_delay_seconds)

        return self._content(payload)

    def _post(self, body: dict) -> dict:
        logger.debug(f"POST {self.settings.llm_api_url} model={body['model']}")
        try:
            response = self.session.post(
                self.settings.llm_api_url,
                json=body,
                headers={"Authorization": f"Bearer {self.settings.api_key}"},
                timeout=self.settings.llm_timeout_seconds,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise UpstreamError(f"Chat completion request failed: {exc}", status) from exc
        except requests.RequestException as exc:
            raise UpstreamError(f"Failed to contact LLM endpoint: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ResponseFormatError("LLM response was not valid JSON payload") from exc

    @staticmethod
    def _content(payload: dict) -> str:
        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ResponseFormatError("LLM did not return any content") from exc
        if not isinstance(content, str):
            raise ResponseFormatError("LLM did not return any content")
        return content
