from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from city_assistant.app import CityAssistantApp
from city_assistant.server import create_app

from conftest import ScriptedLLM


@pytest.fixture
def client(app_config):
    assistant = CityAssistantApp(app_config, llm_client=ScriptedLLM())
    with TestClient(create_app(assistant)) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["documents"] == 4
    assert body["services"] == {"knowledge_refresh": True}


def test_browse_without_query_returns_stats(client):
    body = client.get("/api/knowledge").json()
    assert body["stats"]["totalPages"] == 4
    assert "Government" in body["sections"]
    assert body["generatedAt"] == "2026-01-01T07:00:00.000Z"


def test_browse_with_query(client):
    body = client.get("/api/knowledge", params={"q": "permit", "limit": 3}).json()
    assert body["query"] == "permit"
    assert body["count"] == len(body["results"]) <= 3
    assert body["results"][0]["id"] == "building-permits"
    assert "content" not in body["results"][0]


def test_search_includes_content_by_default(client):
    response = client.post("/api/knowledge", json={"query": "city hall hours"})
    assert response.status_code == 200
    body = response.json()
    assert "section" not in body
    assert body["results"][0]["title"] == "City Hall Hours and Location"
    assert body["results"][0]["content"].startswith("City Hall is open")


def test_search_requires_query(client):
    assert client.post("/api/knowledge", json={"query": "  "}).status_code == 400


def test_reload(client, snapshot_file):
    assert client.post("/api/knowledge/reload").json()["stats"]["totalPages"] == 4
    snapshot_file.unlink()
    assert client.post("/api/knowledge/reload").status_code == 409
    assert client.get("/health").json()["documents"] == 4


def test_chat(client):
    response = client.post("/api/chat", json={"userId": "u1", "message": "What are the city hall hours?"})
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Answer 1"
    assert body["language"] == "en"
    assert body["sources"][0]["url"] == "/government/city-hall-hours.html"


def test_chat_transcript_mode(client):
    response = client.post(
        "/api/chat",
        json={"messages": [{"role": "user", "content": "¿Dónde están los parques?"}]},
    )
    assert response.status_code == 200
    assert response.json()["language"] == "es"


@pytest.mark.parametrize(
    "payload",
    [{"userId": "u1"}, {"message": "hi"}, {"messages": []}],
)
def test_chat_rejects_malformed_requests(client, payload):
    response = client.post("/api/chat", json=payload)
    assert response.status_code == 400
    assert "error" in response.json()


def test_chat_rejects_non_json(client):
    response = client.post("/api/chat", content=b"not json", headers={"content-type": "application/json"})
    assert response.status_code == 400


def test_chat_without_api_key_returns_503(app_config, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with TestClient(create_app(CityAssistantApp(app_config))) as test_client:
        response = test_client.post("/api/chat", json={"userId": "u1", "message": "Hello"})
    assert response.status_code == 503
    body = response.json()
    assert body["error"] == "configuration_error"
    assert body["message"]


def test_sms_webhook_accepts_form_data(client):
    response = client.post("/api/sms", data={"From": "+13055550100", "Body": "Where are the parks?"})
    assert response.status_code == 200
    body = response.json()
    assert body["to"] == "+13055550100"
    assert body["segments"] == ["Answer 1"]


def test_ivr_webhook_transfer(client):
    response = client.post("/api/ivr/process", data={"From": "+13055550100", "Digits": "1"})
    assert response.status_code == 200
    assert response.json()["action"] == "transfer"


def test_social_webhook(client):
    response = client.post(
        "/api/social", json={"platform": "whatsapp", "senderId": "wa-1", "text": "Any events this weekend?"}
    )
    assert response.status_code == 200
    assert response.json()["text"] == "Answer 1"


def test_form_body_that_is_not_utf8_is_rejected(client):
    response = client.post(
        "/api/sms",
        content=b"From=%2B1&Body=\xff\xfe",
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be UTF-8"}


def test_conversation_logs(client):
    assistant = client.app.state.assistant
    first = client.post("/api/chat", json={"userId": "u1", "message": "What are the city hall hours?"}).json()
    second = client.post("/api/chat", json={"userId": "u1", "message": "Where are the parks?"}).json()
    client.post("/api/chat", json={"userId": "u2", "message": "Any events?"})
    client.portal.call(assistant.orchestrator.drain)

    recent = client.get("/api/logs", params={"limit": 2}).json()
    assert recent["count"] == 2
    assert recent["conversations"][1]["id"] == second["conversationId"]

    session = client.get("/api/logs", params={"sessionId": first["sessionId"]}).json()
    assert [c["id"] for c in session["conversations"]] == [first["conversationId"], second["conversationId"]]
    assert session["conversations"][0]["messages"][-1]["sources"][0]["title"] == "City Hall Hours and Location"
