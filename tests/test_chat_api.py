"""
Tests for the /chat endpoint.

These tests verify that:
1. The sessionId round-trips and carries slots across turns
2. ASK_QUESTION responses always include a question
3. A parsed plan is returned as tripPlan and marks the session complete
4. Engine errors map to 400 / 500 / 502
5. debug=true adds the debug payload
"""

import json
import os
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

# Keep the app away from real services before importing it
os.environ["RETRIEVAL_ENABLED"] = "false"
os.environ["OPENAI_MODEL"] = "gpt-4o-mini"

from app.main import app
from app.models import NextAction
from app.session_store import SessionStore
from engine.errors import GenerationBackendError, GenerationConfigError
from engine.retrieval import RetrievalOrchestrator


PLAN_REPLY = "Your trip is ready!\n```json\n" + json.dumps({
    "destination": "Paris",
    "origin": "New York",
    "startDate": "June 5, 2024",
    "endDate": "June 13, 2024",
    "duration": 8,
    "budget": "$2000",
    "travelers": 2,
}) + "\n```"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def llm():
    llm = AsyncMock()
    llm.complete.return_value = "Great choice! Where will you be flying from?"
    return llm


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
async def client(llm, store):
    """Create async test client with in-memory services."""
    with patch("app.main.llm_service", llm), \
            patch("app.main.session_store", store), \
            patch("app.main.orchestrator", RetrievalOrchestrator()):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


class TestHealthEndpoint:
    """Tests for GET /health"""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "version" in response.json()


class TestChatFlow:
    """Tests for POST /chat across several turns."""

    @pytest.mark.asyncio
    async def test_first_turn_creates_session(self, client: AsyncClient):
        response = await client.post("/chat", json={"message": "I want to visit Paris"})

        assert response.status_code == 200
        data = response.json()
        assert data["sessionId"].startswith("session-")
        assert data["message"] == {
            "role": "assistant",
            "content": "Great choice! Where will you be flying from?",
        }
        assert data["preferences"] == {"destination": "Paris"}
        assert data["nextAction"] == NextAction.ASK_QUESTION.value
        assert data["question"]["field"] == "origin"
        assert data["isPlanningComplete"] is False
        assert data["tripPlan"] is None
        assert data["debugPayload"] is None

    @pytest.mark.asyncio
    async def test_slots_carry_across_turns(self, client: AsyncClient, llm: AsyncMock, store: SessionStore):
        first = await client.post("/chat", json={"message": "I want to visit Paris from New York"})
        session_id = first.json()["sessionId"]

        llm.complete.return_value = PLAN_REPLY
        second = await client.post(
            "/chat",
            json={"message": "June 5-13, budget $2000, 2 people", "sessionId": session_id},
        )

        assert second.status_code == 200
        data = second.json()
        assert data["sessionId"] == session_id
        assert data["preferences"]["destination"] == "Paris"
        assert data["preferences"]["travelers"] == 2
        assert data["nextAction"] == NextAction.GENERATE_PLAN.value
        assert data["question"] is None
        assert data["isPlanningComplete"] is True
        assert data["tripPlan"]["destination"] == "Paris"

        state = store.get(session_id)
        assert state.completed is True
        assert state.turn_count == 2
        assert len(state.history) == 4

    @pytest.mark.asyncio
    async def test_unknown_session_starts_fresh(self, client: AsyncClient):
        response = await client.post(
            "/chat", json={"message": "hello", "sessionId": "session-gone"}
        )

        data = response.json()
        assert response.status_code == 200
        assert data["sessionId"] != "session-gone"
        assert data["question"]["field"] == "destination"

    @pytest.mark.asyncio
    async def test_ask_question_always_has_question(self, client: AsyncClient):
        for message in ["hi", "not sure yet", "somewhere warm"]:
            data = (await client.post("/chat", json={"message": message})).json()
            if data["nextAction"] == NextAction.ASK_QUESTION.value:
                assert data["question"] is not None
                assert data["question"]["text"]

    @pytest.mark.asyncio
    async def test_debug_payload(self, client: AsyncClient):
        response = await client.post(
            "/chat", json={"message": "Trip to Tokyo from JFK", "debug": True}
        )

        debug = response.json()["debugPayload"]
        assert debug["planner_action"] == "ASK_QUESTION"
        assert debug["planner_rule"] == "ask_missing"
        assert debug["planner_question_slot"] == "dates"
        assert debug["extraction_raw_data"]["destination"] == "Tokyo"
        assert debug["merged_slots"]["origin"] == "New York (JFK)"
        assert debug["turn_count"] == 1
        assert debug["retrieval_triggered"] is False
        assert debug["retrieval_provenance"] is None


class TestChatErrors:
    """Engine errors map to HTTP status codes; the session is untouched."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}])
    async def test_empty_message_is_400(self, client: AsyncClient, body):
        response = await client.post("/chat", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "Message is required"

    @pytest.mark.asyncio
    async def test_missing_credentials_is_500(self, client: AsyncClient, llm: AsyncMock):
        llm.complete.side_effect = GenerationConfigError(
            "API key not configured. Please set GITHUB_TOKEN or OPENAI_API_KEY environment variable."
        )

        response = await client.post("/chat", json={"message": "Trip to Paris"})

        assert response.status_code == 500
        assert "API key not configured" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_backend_failure_is_502(self, client: AsyncClient, llm: AsyncMock, store: SessionStore):
        first = await client.post("/chat", json={"message": "Trip to Paris"})
        session_id = first.json()["sessionId"]

        llm.complete.side_effect = GenerationBackendError("LLM API error: rate limited")
        response = await client.post(
            "/chat", json={"message": "from Boston", "sessionId": session_id}
        )

        assert response.status_code == 502
        state = store.get(session_id)
        assert state.turn_count == 1
        assert state.slots.origin is None
        assert len(state.history) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self, client: AsyncClient):
        with patch("app.main.handle_chat", AsyncMock(side_effect=KeyError("boom"))):
            response = await client.post("/chat", json={"message": "Trip to Paris"})

        assert response.status_code == 500
        assert response.json()["detail"] == "An unexpected error occurred"

    @pytest.mark.asyncio
    async def test_uninitialized_service_is_503(self, client: AsyncClient):
        with patch("app.main.llm_service", None):
            response = await client.post("/chat", json={"message": "Trip to Paris"})

        assert response.status_code == 503


class TestDeleteSession:

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, store: SessionStore):
        session_id = (await client.post("/chat", json={"message": "Trip to Paris"})).json()["sessionId"]

        response = await client.delete(f"/chat/{session_id}")

        assert response.status_code == 204
        assert store.get(session_id) is None

    @pytest.mark.asyncio
    async def test_delete_unknown_is_204(self, client: AsyncClient):
        response = await client.delete("/chat/session-unknown")
        assert response.status_code == 204
