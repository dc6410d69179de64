"""
Tests for dealerchat/api/chat.py - chat widget endpoints over ASGI.
"""
import pytest
import httpx
from unittest.mock import AsyncMock
from fastapi import FastAPI

from dealerchat.api.router import api_router
from dealerchat.main import build_conductor


def _make_app(conductor=None, session_factory=None) -> FastAPI:
    app = FastAPI()
    app.include_router(api_router)
    if conductor is not None:
        app.state.conductor = conductor
    app.state.session_factory = session_factory
    return app


@pytest.fixture
def conductor(settings, session_factory):
    return build_conductor(settings, session_factory)


@pytest.fixture
async def client(conductor, session_factory):
    app = _make_app(conductor, session_factory)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------------------------------------------------------------------------
# POST /api/chatbot
# ---------------------------------------------------------------------------


class TestChatEndpoint:
    async def test_blank_message_rejected(self, client):
        response = await client.post("/api/chatbot", json={"message": "   "})
        assert response.status_code == 400
        assert response.json()["detail"] == "Por favor escribe un mensaje."

    async def test_missing_message_rejected(self, client):
        response = await client.post("/api/chatbot", json={})
        assert response.status_code == 400

    async def test_new_conversation_created(self, client):
        response = await client.post("/api/chatbot", json={"message": "hola"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["conversation_id"]
        assert body["source"] == "template"
        assert body["tokens_used"] == 0

    async def test_conversation_reused(self, client):
        first = (await client.post("/api/chatbot", json={"message": "hola"})).json()
        second = (await client.post(
            "/api/chatbot",
            json={"message": "¿qué horario tienen?", "conversation_id": first["conversation_id"]},
        )).json()
        assert second["conversation_id"] == first["conversation_id"]
        assert second["source"] == "template"

    async def test_unknown_conversation_replaced(self, client):
        response = await client.post(
            "/api/chatbot",
            json={"message": "hola", "conversation_id": "00000000-0000-4000-8000-000000000000"},
        )
        assert response.json()["conversation_id"] != "00000000-0000-4000-8000-000000000000"

    async def test_forwarded_header_ignored_without_trusted_proxy(self, client, conductor):
        sources = []
        for i in range(10):
            response = await client.post(
                "/api/chatbot",
                json={"message": f"pregunta numero {i} sobre el Dolphin"},
                headers={"X-Forwarded-For": f"198.51.100.{i}"},
            )
            sources.append(response.json()["source"])

        assert "rate_limit" in sources
        assert sources.index("rate_limit") == 5
        assert list(conductor.abuse_guard._sender_messages) == ["127.0.0.1"]

    async def test_forwarded_address_used_behind_trusted_proxy(self, client, conductor, settings):
        settings.trusted_proxies = ["127.0.0.1", "10.0.0.1"]
        await client.post(
            "/api/chatbot",
            json={"message": "hola"},
            headers={"X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        )
        assert list(conductor.abuse_guard._sender_messages) == ["198.51.100.4"]

    async def test_spoofed_leading_hop_not_trusted(self, client, conductor, settings):
        settings.trusted_proxies = ["127.0.0.1"]
        await client.post(
            "/api/chatbot",
            json={"message": "hola"},
            headers={"X-Forwarded-For": "192.0.2.99, 198.51.100.4"},
        )
        assert list(conductor.abuse_guard._sender_messages) == ["198.51.100.4"]

    async def test_conversation_store_failure_gives_fallback(self, client, conductor):
        conductor.store.create_conversation = AsyncMock(side_effect=RuntimeError("db down"))
        response = await client.post("/api/chatbot", json={"message": "hola"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["source"] == "error_fallback"
        assert "problema técnico" in body["message"]

    async def test_conversation_lookup_failure_keeps_client_id(self, client, conductor):
        conductor.store.conversation_exists = AsyncMock(side_effect=RuntimeError("db down"))
        response = await client.post(
            "/api/chatbot", json={"message": "hola", "conversation_id": "conv-123"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["conversation_id"] == "conv-123"
        assert conductor.get_stats()["responses"]["by_source"]["error_fallback"] == 1

    async def test_lead_capture_reported(self, client):
        response = await client.post(
            "/api/chatbot", json={"message": "Me llamo Ana Torres, 8112345678"},
        )
        body = response.json()
        assert body["lead_captured"] is True
        assert body["source"] == "test_mode"

    async def test_no_conductor_returns_503(self):
        transport = httpx.ASGITransport(app=_make_app())
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            response = await c.post("/api/chatbot", json={"message": "hola"})
        assert response.status_code == 503


# ---------------------------------------------------------------------------
# GET /api/chatbot/stats, /conversation/{id}, POST /handoff
# ---------------------------------------------------------------------------


class TestSupportingEndpoints:
    async def test_stats(self, client):
        await client.post("/api/chatbot", json={"message": "hola"})
        body = (await client.get("/api/chatbot/stats")).json()
        assert set(body) == {"abuse_guard", "templates", "sales_playbook", "ai", "pipeline"}
        assert body["pipeline"]["responses"]["total_responses"] == 1
        assert body["ai"]["configured"] is False

    async def test_conversation_history(self, client):
        first = (await client.post("/api/chatbot", json={"message": "hola"})).json()
        response = await client.get(f"/api/chatbot/conversation/{first['conversation_id']}")
        assert response.status_code == 200
        messages = response.json()["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[0]["content"] == "hola"

    async def test_unknown_conversation_404(self, client):
        response = await client.get("/api/chatbot/conversation/00000000-0000-4000-8000-000000000000")
        assert response.status_code == 404

    async def test_handoff(self, client):
        response = await client.post("/api/chatbot/handoff", json={"conversation_id": "abc"})
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Un asesor te contactará pronto.",
            "estimated_wait_time": "5-10 minutos",
        }
