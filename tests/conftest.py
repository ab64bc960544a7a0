import json

import pytest
import requests

from spendsense.app.config import Settings
from spendsense.app.llm import ChatCompletionClient
from spendsense.app.main import create_app
from spendsense.app.storage import LocalImageStorage


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text if text is not None else json.dumps(payload)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    """Stands in for ``requests.Session``; replays queued responses or exceptions."""

    def __init__(self, *outcomes):
        self.headers = {}
        self.outcomes = list(outcomes)
        self.calls = []

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if not self.outcomes:
            raise AssertionError("Unexpected outbound call")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def completion(content):
    return FakeResponse({"choices": [{"message": {"role": "assistant", "content": content}}]})


@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_key="test-key",
        llm_api_url="https://llm.test/v1/chat/completions",
        chat_model="text-model",
        categorize_model="categorize-model",
        vision_model="vision-model",
        llm_retry_delay_seconds=0,
        uploads_dir=tmp_path / "uploads",
    )


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def llm_client(settings, session):
    return ChatCompletionClient(settings, session=session)


@pytest.fixture
def storage(settings):
    return LocalImageStorage(settings.uploads_dir)


@pytest.fixture
def app(settings, llm_client, storage):
    return create_app(settings, llm_client=llm_client, storage=storage)


@pytest.fixture
def client(app):
    return app.test_client()
