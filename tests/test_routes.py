import io
import json
import logging
from urllib.parse import urlparse
from dataclasses import replace

import pytest

from conftest import FakeResponse, FakeSession, completion
from spendsense.app.llm import ChatCompletionClient
from spendsense.app.main import create_app
from spendsense.app.storage import ImageStorage

CATEGORIES = {"1": "Food", "2": "Pets"}


class SpyStorage(ImageStorage):
    name = "spy"

    def __init__(self, fail=False):
        self.saved = []
        self.fail = fail

    def save(self, upload, base_url=""):
        if self.fail:
            raise OSError("bucket unavailable")
        self.saved.append(upload.filename)
        return f"https://cdn.test/{upload.filename}"


def chat_payload(**overrides):
    result = {
        "type": "categorization",
        "message": "I've categorized your transactions",
        "data": [{"amount": 20, "type": "expense", "description": "Coffee", "categoryId": "1"}],
        "timestamp": "2026-10-19T08:00:00.000Z",
    }
    result.update(overrides)
    return result


# /categorize

def test_categorize_backfills_ids_and_dates(client, session):
    session.queue(completion(json.dumps([
        {"amount": 20, "type": "expense", "description": "Coffee", "categoryId": "1"},
        {"amount": 100, "type": "income", "description": "Refund", "categoryId": "1",
         "id": "fixed-id", "date": "2026-10-01T00:00:00.000Z"},
    ])))

    response = client.post("/categorize", json={"text": "coffee 20, refund 100", "categories": CATEGORIES})

    assert response.status_code == 200
    body = response.get_json()
    assert len(body) == 2
    assert all(txn["id"] and txn["date"] for txn in body)
    assert body[1]["id"] == "fixed-id"
    sent = session.calls[0]["json"]
    assert sent["model"] == "categorize-model"
    assert sent["temperature"] == 0.1


def test_categorize_recovers_array_wrapped_in_prose(client, session):
    session.queue(completion('Here you go: [{"amount":20,"type":"expense","description":"Coffee","categoryId":"1"}]'))

    response = client.post("/categorize", json={"text": "coffee 20", "categories": CATEGORIES})

    assert response.status_code == 200
    assert response.get_json()[0]["amount"] == 20


@pytest.mark.parametrize("body", [
    {"categories": CATEGORIES},
    {"text": "coffee 20"},
    {"text": "", "categories": CATEGORIES},
    {"text": "coffee 3", "categories": ""},
    {"text": "coffee 3", "categories": 0},
    {"text": "coffee 3", "categories": False},
    {"text": "coffee 3", "categories": None},
    {},
])
def test_categorize_missing_fields_returns_400_without_outbound_call(client, session, body):
    response = client.post("/categorize", json=body)

    assert response.status_code == 400
    assert response.get_json() == {"error": "Missing required fields: text and categories are required"}
    assert session.calls == []


def test_categorize_malformed_json_body_is_400(client, session):
    response = client.post("/categorize", data="{not json", content_type="application/json")
    assert response.status_code == 400
    assert session.calls == []


def test_categorize_invalid_model_output_is_logged_500(client, session, caplog):
    session.queue(completion("Sorry, I cannot help with that."))

    with caplog.at_level(logging.ERROR):
        response = client.post("/categorize", json={"text": "coffee 20", "categories": CATEGORIES})

    assert response.status_code == 500
    body = response.get_json()
    assert body["error"] == "Failed to process transactions"
    assert "not valid JSON" in body["message"]
    assert "Error processing transactions" in caplog.text


def test_categorize_non_array_output_is_500(client, session):
    session.queue(completion('{"amount": 20}'))
    response = client.post("/categorize", json={"text": "coffee 20", "categories": CATEGORIES})
    assert response.status_code == 500
    assert response.get_json()["message"] == "Response is not an array"


def test_categorize_upstream_error_message_passes_through(client, session):
    session.queue(FakeResponse({"error": "rate limited"}, status_code=429))
    response = client.post("/categorize", json={"text": "coffee 20", "categories": CATEGORIES})
    assert response.status_code == 500
    assert "429" in response.get_json()["message"]


def test_legacy_prefix_routes(client, session):
    session.queue(completion("[]"))
    response = client.post("/api/transactions/categorize", json={"text": "nothing", "categories": []})
    assert response.status_code == 200
    assert response.get_json() == []


# /chat

def test_chat_returns_validated_result(client, session):
    session.queue(completion(json.dumps(chat_payload())))

    response = client.post("/chat", json={"prompt": "coffee 20", "categories": CATEGORIES})

    assert response.status_code == 200
    body = response.get_json()
    assert body["type"] == "categorization"
    assert body["data"][0]["id"] and body["data"][0]["date"]
    sent = session.calls[0]["json"]
    assert sent["model"] == "text-model"
    assert sent["temperature"] == 0.2
    assert "Currency: USD" in sent["messages"][0]["content"]


def test_chat_with_image_selects_vision_model(client, session):
    session.queue(completion(json.dumps(chat_payload())))

    response = client.post("/chat", json={
        "prompt": "receipt",
        "categories": CATEGORIES,
        "currency": "GBP",
        "entries": [{"amount": 3}],
        "imageUrl": "https://cdn.test/receipt.png",
    })

    assert response.status_code == 200
    sent = session.calls[0]["json"]
    assert sent["model"] == "vision-model"
    assert sent["messages"][1]["content"][1]["image_url"]["url"] == "https://cdn.test/receipt.png"
    assert "Currency: GBP" in sent["messages"][0]["content"]


def test_chat_query_response_backfills_results(client, session):
    payload = chat_payload(
        type="query_response",
        data={
            "query_type": "category_summary",
            "results": [{"amount": 50, "type": "expense", "description": "Cat food", "categoryId": "2"}],
            "summary": {"total_amount": 50, "count": 1, "period": "this_month"},
        },
    )
    session.queue(completion("Here is the summary:\n" + json.dumps(payload)))

    response = client.post("/chat", json={"prompt": "cat costs this month?", "categories": CATEGORIES})

    assert response.status_code == 200
    result = response.get_json()["data"]["results"][0]
    assert result["id"] and result["date"]


@pytest.mark.parametrize("missing", ["type", "message", "data", "timestamp"])
def test_chat_rejects_incomplete_result(client, session, missing):
    payload = chat_payload()
    del payload[missing]
    session.queue(completion(json.dumps(payload)))

    response = client.post("/chat", json={"prompt": "coffee", "categories": CATEGORIES})

    assert response.status_code == 500
    assert response.get_json() == {
        "error": "Failed to process AI chat request",
        "message": "Invalid response structure",
    }


def test_chat_accepts_empty_categorization(client, session):
    session.queue(completion(json.dumps(chat_payload(message="Nothing to categorize", data=[]))))

    response = client.post("/chat", json={"prompt": "hello", "categories": CATEGORIES})

    assert response.status_code == 200
    assert response.get_json()["data"] == []


def test_chat_passes_unusual_entries_and_currency_through(client, session):
    session.queue(completion(json.dumps(chat_payload())))

    response = client.post("/chat", json={
        "prompt": "coffee",
        "categories": CATEGORIES,
        "entries": {"last": {"amount": 3}},
        "currency": 978,
    })

    assert response.status_code == 200
    system = session.calls[0]["json"]["messages"][0]["content"]
    assert '"last": {' in system
    assert "Currency: 978" in system


def test_chat_blank_categories_returns_400(client, session):
    response = client.post("/chat", json={"prompt": "coffee", "categories": ""})
    assert response.status_code == 400
    assert session.calls == []


def test_chat_missing_prompt_returns_400(client, session):
    response = client.post("/chat", json={"categories": CATEGORIES})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Missing required fields: prompt and categories are required"
    assert session.calls == []


def test_chat_without_api_key_is_500(settings, storage):
    session = FakeSession()
    unconfigured = replace(settings, api_key="")
    app = create_app(unconfigured, llm_client=ChatCompletionClient(unconfigured, session), storage=storage)

    response = app.test_client().post("/chat", json={"prompt": "hi", "categories": CATEGORIES})

    assert response.status_code == 500
    assert "OPENROUTER_API_KEY" in response.get_json()["message"]
    assert session.calls == []


# /upload-image

@pytest.fixture
def spy_app(settings, llm_client):
    spy = SpyStorage()
    return create_app(settings, llm_client=llm_client, storage=spy), spy


def test_upload_image_relays_storage_url(spy_app):
    app, spy = spy_app
    response = app.test_client().post(
        "/upload-image",
        data={"image": (io.BytesIO(b"fake"), "receipt.png")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    assert response.get_json() == {
        "message": "Image uploaded successfully",
        "imageUrl": "https://cdn.test/receipt.png",
    }
    assert spy.saved == ["receipt.png"]


def test_upload_image_without_file_returns_400(spy_app):
    app, spy = spy_app
    response = app.test_client().post("/upload-image", data={}, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json() == {"error": "No image file provided"}
    assert spy.saved == []


def test_upload_image_rejects_unsupported_type(spy_app):
    app, spy = spy_app
    response = app.test_client().post(
        "/upload-image",
        data={"image": (io.BytesIO(b"text"), "notes.txt")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert spy.saved == []


def test_upload_image_storage_failure_is_500(settings, llm_client):
    app = create_app(settings, llm_client=llm_client, storage=SpyStorage(fail=True))
    response = app.test_client().post(
        "/upload-image",
        data={"image": (io.BytesIO(b"fake"), "receipt.jpg")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to upload image", "message": "bucket unavailable"}


def test_local_upload_is_served_back(client):
    response = client.post(
        "/upload-image",
        data={"image": (io.BytesIO(b"pixels"), "receipt.png")},
        content_type="multipart/form-data",
    )
    url = response.get_json()["imageUrl"]
    assert url.startswith("http://localhost/uploads/")

    served = client.get(urlparse(url).path)
    assert served.status_code == 200
    assert served.data == b"pixels"
    served.close()

    assert client.get("/uploads/missing.png").status_code == 404


# misc

def test_ping_and_version(client):
    ping = client.get("/api/ping").get_json()
    assert ping["ok"] is True
    assert ping["model"] == "text-model"
    assert ping["storage"] == "local"
    assert client.get("/api/version").get_json() == {"version": "dev"}


def test_cors_headers(client):
    response = client.get("/api/version")
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    preflight = client.options("/chat")
    assert preflight.status_code == 204
    assert "POST" in preflight.headers["Access-Control-Allow-Methods"]


def test_preflight_answers_unregistered_paths(client):
    preflight = client.options("/api/transactions/does-not-exist")
    assert preflight.status_code == 204
    assert preflight.headers["Access-Control-Allow-Origin"] == "*"
    assert client.get("/api/transactions/does-not-exist").status_code == 404
