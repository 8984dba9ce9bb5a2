import uuid

import pytest

from chatline.api.v1.ai import get_ai_provider
from chatline.services.ai_service import AIResponse, ChatTurn, OpenAIProvider


class FakeProvider:
    def __init__(self, reply="Hello from the assistant"):
        self.reply = reply
        self.calls = []

    async def chat_completion(self, history, prompt):
        self.calls.append((list(history), prompt))
        return AIResponse(
            content=self.reply,
            prompt_tokens=10,
            completion_tokens=5,
            total_tokens=15,
            model="fake-model",
        )


@pytest.fixture
def provider(client):
    from main import app

    fake = FakeProvider()
    app.dependency_overrides[get_ai_provider] = lambda: fake
    return fake


def _create_session(client, headers, title=None):
    body = {"title": title} if title is not None else {}
    return client.post("/api/v1/ai/sessions", json=body, headers=headers)


def test_create_and_list_sessions(client, alice, auth_headers):
    headers = auth_headers(alice)

    default = _create_session(client, headers)
    named = _create_session(client, headers, "Trip planning")

    assert default.status_code == 201
    assert default.json()["title"] == "New AI Chat"
    assert named.json()["title"] == "Trip planning"

    sessions = client.get("/api/v1/ai/sessions", headers=headers).json()
    assert {s["id"] for s in sessions} == {default.json()["id"], named.json()["id"]}
    assert all(s["messageCount"] == 0 for s in sessions)


def test_sessions_are_private(client, alice, bob, auth_headers):
    session_id = _create_session(client, auth_headers(alice)).json()["id"]

    assert client.get("/api/v1/ai/sessions", headers=auth_headers(bob)).json() == []
    response = client.get(f"/api/v1/ai/sessions/{session_id}/messages", headers=auth_headers(bob))
    assert response.status_code == 404


def test_send_message_stores_both_sides(client, provider, alice, auth_headers):
    headers = auth_headers(alice)
    session_id = _create_session(client, headers).json()["id"]

    response = client.post(
        f"/api/v1/ai/sessions/{session_id}/messages",
        json={"content": "What is the capital of France?"},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["userMessage"]["role"] == "USER"
    assert body["userMessage"]["content"] == "What is the capital of France?"
    assert body["aiMessage"]["role"] == "ASSISTANT"
    assert body["aiMessage"]["content"] == "Hello from the assistant"

    history = client.get(f"/api/v1/ai/sessions/{session_id}/messages", headers=headers).json()
    assert [m["role"] for m in history] == ["USER", "ASSISTANT"]
    sessions = client.get("/api/v1/ai/sessions", headers=headers).json()
    assert sessions[0]["messageCount"] == 2


def test_history_is_passed_to_provider(client, provider, alice, auth_headers):
    headers = auth_headers(alice)
    session_id = _create_session(client, headers).json()["id"]
    url = f"/api/v1/ai/sessions/{session_id}/messages"

    client.post(url, json={"content": "first question"}, headers=headers)
    client.post(url, json={"content": "second question"}, headers=headers)

    history, prompt = provider.calls[-1]
    assert prompt == "second question"
    assert [(turn.role, turn.content) for turn in history] == [
        ("user", "first question"),
        ("assistant", "Hello from the assistant"),
    ]


def test_empty_reply_is_replaced(client, provider, alice, auth_headers):
    provider.reply = ""
    headers = auth_headers(alice)
    session_id = _create_session(client, headers).json()["id"]

    response = client.post(
        f"/api/v1/ai/sessions/{session_id}/messages",
        json={"content": "say nothing"},
        headers=headers,
    )

    assert response.json()["aiMessage"]["content"] == "No response"


def test_send_without_api_key(client, alice, auth_headers):
    headers = auth_headers(alice)
    session_id = _create_session(client, headers).json()["id"]

    response = client.post(
        f"/api/v1/ai/sessions/{session_id}/messages",
        json={"content": "hello"},
        headers=headers,
    )

    assert response.status_code == 503
    assert response.json()["detail"] == "AI service not configured"


def test_delete_session(client, alice, auth_headers):
    headers = auth_headers(alice)
    session_id = _create_session(client, headers).json()["id"]

    deleted = client.delete(f"/api/v1/ai/sessions/{session_id}", headers=headers)
    missing = client.delete(f"/api/v1/ai/sessions/{session_id}", headers=headers)

    assert deleted.status_code == 200
    assert missing.status_code == 404


def test_delete_unknown_session(client, alice, auth_headers):
    response = client.delete(f"/api/v1/ai/sessions/{uuid.uuid4()}", headers=auth_headers(alice))

    assert response.status_code == 404


def test_build_messages_prepends_system_prompt():
    messages = OpenAIProvider.build_messages(
        [ChatTurn(role="user", content="hi"), ChatTurn(role="assistant", content="hello")],
        "how are you?",
    )

    assert messages[0]["role"] == "system"
    assert messages[1:] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "how are you?"},
    ]
