"""Test suite for the API endpoints."""

import asyncio
import json

import httpx
import pytest
import uvicorn
from httpx import ASGITransport, AsyncClient

from conftest import FakeAssistant, make_settings, make_token
from craftcurio_chat.api import app as app_module
from craftcurio_chat.api.app import create_app, create_asgi_app
from craftcurio_chat.client.api import ChatbotAPI
from craftcurio_chat.client.session import ChatbotSession
from craftcurio_chat.exceptions import AssistantUnavailableError
from craftcurio_chat.gateway.chat import ChatGateway
from craftcurio_chat.repositories.memory import InMemoryChatHistoryRepository
from craftcurio_chat.services.prompts import FAQ_PATTERNS, GREETING_MESSAGES, QUICK_REPLIES


class ExhaustedAssistant(FakeAssistant):
    async def generate_response(self, history, context=None) -> str:
        raise AssistantUnavailableError("quota exhausted")


class BrokenAssistant(FakeAssistant):
    async def generate_response(self, history, context=None) -> str:
        raise RuntimeError("model exploded")


def client_for(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_greeting(settings):
    """Test that a greeting mints a session id and returns quick replies."""
    app = create_app(settings, assistant=FakeAssistant())
    async with client_for(app) as client:
        first = await client.get("/api/chatbot/greeting")
        second = await client.get("/api/chatbot/greeting")

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["data"]["message"] in GREETING_MESSAGES
    assert body["data"]["quickReplies"] == QUICK_REPLIES
    assert body["data"]["sessionId"] != second.json()["data"]["sessionId"]


@pytest.mark.asyncio
async def test_health_reports_assistant_availability(settings):
    """Test the health endpoint with and without a configured model."""
    async with client_for(create_app(settings, assistant=FakeAssistant())) as client:
        response = await client.get("/api/chatbot/health")
        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    async with client_for(create_app(settings)) as client:
        response = await client.get("/api/chatbot/health")
        assert response.status_code == 503
        assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_message_without_assistant_is_unavailable(settings):
    """Test that messages fail with 503 when no model is configured."""
    async with client_for(create_app(settings)) as client:
        response = await client.post("/api/chatbot/message", json={"message": "hello"})

    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "error": "Chatbot service is currently unavailable. Please try again later.",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": "   "}, {"message": None}])
async def test_blank_message_is_rejected(settings, payload):
    """Test validation of the message body."""
    async with client_for(create_app(settings, assistant=FakeAssistant())) as client:
        response = await client.post("/api/chatbot/message", json=payload)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Message is required"}


@pytest.mark.asyncio
async def test_message_round_trip_keeps_history(settings):
    """Test that a conversation accumulates history passed to the assistant."""
    assistant = FakeAssistant()
    history = InMemoryChatHistoryRepository()
    app = create_app(settings, history=history, assistant=assistant)

    async with client_for(app) as client:
        response = await client.post("/api/chatbot/message", json={"message": "tell me about pottery"})
        assert response.status_code == 200
        data = response.json()["data"]
        session_id = data["sessionId"]
        assert session_id
        assert data["message"] == "Happy to help with that!"
        assert data["products"] == []
        assert data["quickReplies"] == QUICK_REPLIES

        response = await client.post(
            "/api/chatbot/message",
            json={"message": "and woodwork?", "sessionId": session_id},
        )
        assert response.json()["data"]["sessionId"] == session_id

    stored = await history.get_history(session_id, limit=10)
    assert [(m.role, m.message) for m in stored] == [
        ("user", "tell me about pottery"),
        ("assistant", "Happy to help with that!"),
        ("user", "and woodwork?"),
        ("assistant", "Happy to help with that!"),
    ]
    last_history, context = assistant.calls[-1]
    assert [m.message for m in last_history] == [
        "tell me about pottery",
        "Happy to help with that!",
        "and woodwork?",
    ]
    assert "product_info" in context["intents"]


@pytest.mark.asyncio
async def test_faq_answers_bypass_the_model(settings):
    """Test that FAQ questions are answered from the canned table."""
    assistant = FakeAssistant()
    async with client_for(create_app(settings, assistant=assistant)) as client:
        response = await client.post(
            "/api/chatbot/message", json={"message": "Can you explain how to bid on an auction?"}
        )

    data = response.json()["data"]
    assert data["message"] == FAQ_PATTERNS["how to bid"]
    assert "View Live Auctions" in data["suggestedActions"]
    assert assistant.calls == []


@pytest.mark.asyncio
async def test_message_rate_limit():
    """Test that the per-identity limit returns 429 once exhausted."""
    limited = make_settings(MESSAGE_RATE_LIMIT=2)
    async with client_for(create_app(limited, assistant=FakeAssistant())) as client:
        statuses = []
        remaining = []
        for i in range(3):
            response = await client.post("/api/chatbot/message", json={"message": f"hi {i}"})
            statuses.append(response.status_code)
            remaining.append(response.headers["X-RateLimit-Remaining"])

    assert statuses == [200, 200, 429]
    assert remaining == ["1", "0", "0"]
    assert response.json()["error"] == "Too many messages. Please wait a moment and try again."


@pytest.mark.asyncio
async def test_rate_limit_is_per_user(users):
    """Test that signed-in callers are limited by user id, not address."""
    limited = make_settings(MESSAGE_RATE_LIMIT=1)
    app = create_app(limited, users=users, assistant=FakeAssistant())
    async with client_for(app) as client:
        alice = {"Authorization": f"Bearer {make_token('u-alice')}"}
        bob = {"Authorization": f"Bearer {make_token('u-bob')}"}

        assert (await client.post("/api/chatbot/message", json={"message": "a"}, headers=alice)).status_code == 200
        assert (await client.post("/api/chatbot/message", json={"message": "b"}, headers=bob)).status_code == 200
        assert (await client.post("/api/chatbot/message", json={"message": "c"}, headers=alice)).status_code == 429


@pytest.mark.asyncio
async def test_exhausted_assistant_is_unavailable(settings):
    """Test that quota exhaustion surfaces as 503."""
    async with client_for(create_app(settings, assistant=ExhaustedAssistant())) as client:
        response = await client.post("/api/chatbot/message", json={"message": "hello"})
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_unexpected_failure_is_500(settings):
    """Test that other processing failures return the generic error."""
    async with client_for(create_app(settings, assistant=BrokenAssistant())) as client:
        response = await client.post("/api/chatbot/message", json={"message": "hello"})
    assert response.status_code == 500
    assert response.json()["error"] == "Failed to process message. Please try again."


@pytest.mark.asyncio
async def test_stats_scoped_to_authenticated_user(settings, users):
    """Test stats for guests and for a signed-in user."""
    app = create_app(settings, users=users, assistant=FakeAssistant())
    alice = {"Authorization": f"Bearer {make_token('u-alice')}"}

    async with client_for(app) as client:
        await client.post("/api/chatbot/message", json={"message": "hello", "sessionId": "s-guest"})
        await client.post("/api/chatbot/message", json={"message": "hello", "sessionId": "s-alice"}, headers=alice)

        everyone = (await client.get("/api/chatbot/stats")).json()["data"]
        mine = (await client.get("/api/chatbot/stats", headers=alice)).json()["data"]

    assert everyone == {"totalChats": 2, "totalMessages": 4, "avgMessagesPerSession": 2.0}
    assert mine == {"totalChats": 1, "totalMessages": 2, "avgMessagesPerSession": 2.0}


@pytest.mark.asyncio
async def test_delete_history(settings):
    """Test that deleting a session's history removes its turns."""
    history = InMemoryChatHistoryRepository()
    async with client_for(create_app(settings, history=history, assistant=FakeAssistant())) as client:
        await client.post("/api/chatbot/message", json={"message": "hello", "sessionId": "s-1"})
        response = await client.delete("/api/chatbot/history/s-1")

    assert response.json() == {"success": True, "message": "Chat history cleared"}
    assert await history.get_history("s-1") == []


@pytest.mark.asyncio
async def test_online_status_endpoint(settings, presence):
    """Test the presence lookup backed by the gateway registry."""
    await presence.mark_online("u-alice")
    async with client_for(create_app(settings, presence=presence)) as client:
        online = await client.get("/api/chat/online/u-alice")
        offline = await client.get("/api/chat/online/u-bob")

    assert online.json()["data"] == {"userId": "u-alice", "online": True}
    assert offline.json()["data"] == {"userId": "u-bob", "online": False}


@pytest.mark.asyncio
async def test_metrics_endpoint(settings):
    """Test that Prometheus metrics are exposed."""
    async with client_for(create_app(settings, assistant=FakeAssistant())) as client:
        await client.get("/api/chatbot/greeting")
        response = await client.get("/metrics")

    assert response.status_code == 200
    assert "chatbot_requests_total" in response.text


@pytest.mark.asyncio
async def test_same_session_turns_are_serialized(settings):
    """Test that concurrent turns of one session are stored in arrival order."""
    history = InMemoryChatHistoryRepository()
    async with client_for(create_app(settings, history=history, assistant=FakeAssistant())) as client:
        responses = await asyncio.gather(
            *[
                client.post("/api/chatbot/message", json={"message": f"message {i}", "sessionId": "s-1"})
                for i in range(5)
            ]
        )

    assert all(r.status_code == 200 for r in responses)
    stored = await history.get_history("s-1", limit=20)
    assert [m.role for m in stored] == ["user", "assistant"] * 5


@pytest.mark.asyncio
async def test_asgi_app_routes_http_to_fastapi(settings):
    """Test that the Socket.IO wrapper still serves the HTTP API."""
    asgi_app = create_asgi_app(settings, assistant=FakeAssistant())
    async with client_for(asgi_app) as client:
        response = await client.get("/api/chatbot/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_session_against_live_app(settings):
    """Test the client session end to end over the ASGI app."""
    app = create_app(settings, assistant=FakeAssistant())
    client = httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test/api/chatbot")
    session = ChatbotSession(ChatbotAPI(client))

    async with client:
        await session.open_chat()
        greeting_session = session.session_id
        await session.send_message("find me some pottery")
        await session.send_message("how to bid?")

    assert greeting_session
    assert session.session_id == greeting_session
    assert [m.role for m in session.messages] == ["assistant", "user", "assistant", "user", "assistant"]
    assert session.messages[2].text == "Happy to help with that!"
    assert "Browse All Products" in session.messages[2].suggested_actions
    assert session.messages[4].text == FAQ_PATTERNS["how to bid"]
    assert not session.is_loading


@pytest.mark.asyncio
async def test_default_factory_loads_users_file(tmp_path, sio, presence):
    """Test that users listed in USERS_FILE can authenticate without injection."""
    path = tmp_path / "users.json"
    path.write_text(json.dumps([{"id": "u-dana", "name": "Dana", "role": "artisan"}]))
    app = create_app(make_settings(USERS_FILE=str(path)), assistant=FakeAssistant())

    user = await app.state.authenticator.authenticate_handshake({"token": make_token("u-dana")})
    assert user.name == "Dana"

    gateway = ChatGateway(sio, app.state.authenticator, presence)
    await sio.connect("sid-d", {"token": make_token("u-dana")})
    assert await gateway.is_user_online("u-dana")

    async with client_for(app) as client:
        headers = {"Authorization": f"Bearer {make_token('u-dana')}"}
        await client.post("/api/chatbot/message", json={"message": "hello", "sessionId": "s-d"}, headers=headers)
        mine = (await client.get("/api/chatbot/stats", headers=headers)).json()["data"]
    assert mine["totalChats"] == 1


def test_main_serves_on_configured_address(monkeypatch):
    """Test that the console entry point takes its address from settings."""
    calls = []
    monkeypatch.setattr(app_module, "get_settings", lambda: make_settings(HOST="127.0.0.1", PORT=9001))
    monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))

    app_module.main()

    assert calls == [(
        ("craftcurio_chat.api.app:create_asgi_app",),
        {"factory": True, "host": "127.0.0.1", "port": 9001},
    )]
