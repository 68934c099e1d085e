from typing import Any, List

import pytest
from fastapi.testclient import TestClient

from conftest import SleepRecorder, mock_openai_client, status_error
from toolchat.agent import ToolChatService, set_chat_service
from toolchat.agent.gateway import CompletionGateway
from toolchat.main import app
from toolchat.services.category_settings import CategorySettingsService
from toolchat.services.session import COOKIE_NAME
from toolchat.settings import Settings


def install_service(script: List[Any], **overrides) -> ToolChatService:
    settings = Settings(**{"hf_token": "hf_test", "chat_session_secret": "api-secret", **overrides})
    gateway = CompletionGateway(settings, client=mock_openai_client(script), sleep=SleepRecorder())
    service = ToolChatService(settings, gateway=gateway, category_settings=CategorySettingsService())
    set_chat_service(service)
    return service


@pytest.fixture
def client():
    yield TestClient(app)
    set_chat_service(None)


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_chat_sets_session_cookie(client: TestClient) -> None:
    install_service(["Hi! How can I help?"], chat_message_limit=5)
    response = client.post("/api/chat", json={"message": "hello", "enabledCategories": {}})
    assert response.status_code == 200
    assert response.json() == {"message": "Hi! How can I help?", "messagesRemaining": 4}
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    assert "Max-Age=1800" in set_cookie

    status = client.get("/api/chat").json()
    assert status["hasSession"] is True
    assert status["messageCount"] == 1
    assert status["messagesRemaining"] == 4


def test_not_configured_error_envelope(client: TestClient) -> None:
    install_service(["unused"], hf_token=None)
    response = client.post("/api/chat", json={"message": "hello"})
    assert response.status_code == 503
    assert response.json()["code"] == "AI_NOT_CONFIGURED"


def test_credits_exhausted_error_envelope(client: TestClient) -> None:
    install_service([status_error(429)])
    response = client.post("/api/chat", json={"message": "hello"})
    assert response.status_code == 503
    assert response.json() == {"error": "AI credits exhausted", "code": "CREDITS_EXHAUSTED"}


def test_transient_exhaustion_is_generic_failure(client: TestClient) -> None:
    install_service([status_error(500)] * 3)
    response = client.post("/api/chat", json={"message": "hello"})
    assert response.status_code == 502
    assert "code" not in response.json()


def test_missing_message_and_too_many_files(client: TestClient) -> None:
    install_service(["unused"])
    assert client.post("/api/chat", json={}).json() == {"error": "Message is required"}

    files = [{"name": f"{i}.txt", "mimeType": "text/plain", "data": "YWJj"} for i in range(4)]
    response = client.post("/api/chat", json={"message": "hi", "files": files})
    assert response.status_code == 400
    assert "3 files" in response.json()["error"]


def test_limited_response_leaves_cookie_alone(client: TestClient) -> None:
    service = install_service(["unused"], chat_message_limit=1)
    session = service.sessions.create_session()
    session.message_count = 1
    client.cookies.set(COOKIE_NAME, service.sessions.write_session(session))
    response = client.post("/api/chat", json={"message": "hello"})
    assert response.status_code == 200
    assert response.json()["limited"] is True
    assert "set-cookie" not in response.headers


def test_category_settings_endpoints(client: TestClient) -> None:
    install_service(["unused"])
    assert client.put("/api/settings", json={}).status_code == 400

    response = client.put("/api/settings", json={"enabled": {"pdf": False}})
    assert response.status_code == 200
    assert response.json()["enabled"]["pdf"] is False
    assert client.get("/api/settings").json()["enabled"]["pdf"] is False

    categories = {c["category"]: c for c in client.get("/api/tools").json()["categories"]}
    assert categories["crypto"]["enabled"] is True
    assert any(t["name"] == "agent_tools_crypto_hash" for t in categories["crypto"]["tools"])
