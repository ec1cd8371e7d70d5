"""Tests for FastAPI main application."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from cyclica_api.llm_client import LLMError
from cyclica_api.main import app
from cyclica_api.questions import QUESTIONS
from cyclica_api.supabase_client import SupabaseConnectionError

GOOD_ANSWER = "I would adjust my workload and talk with my team openly."


@pytest.fixture
def client():
    """Create test client."""
    with TestClient(app) as client:
        yield client


def _start(client: TestClient) -> str:
    return client.post("/start-session").json()["session_id"]


def _answer(client: TestClient, session_id: str, question_id: int, message: str = GOOD_ANSWER):
    return client.post(
        "/chat",
        json={
            "session_id": session_id,
            "message": message,
            "question_id": question_id,
            "phase": "questionnaire",
        },
    )


class TestStatusEndpoints:
    """Tests for status and question endpoints."""

    def test_root(self, client):
        """Health check lists endpoints."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert data["endpoints"] == ["/start-session", "/chat", "/get-questions"]

    def test_get_questions(self, client):
        """Questions are listed in order without rubric."""
        response = client.get("/get-questions")
        assert response.status_code == 200

        questions = response.json()["questions"]
        assert [q["id"] for q in questions] == [1, 2, 3, 4, 5]
        assert questions[0]["question"] == QUESTIONS[0].question
        assert all(set(q) == {"id", "question"} for q in questions)

    def test_trace_id_echoed(self, client):
        """A supplied trace ID is returned unchanged."""
        response = client.get("/", headers={"X-Trace-ID": "trace-123"})
        assert response.headers["X-Trace-ID"] == "trace-123"

    def test_trace_id_generated(self, client):
        response = client.get("/")
        assert len(response.headers["X-Trace-ID"]) == 32

    def test_error_responses_documented(self, client):
        """Error statuses reference the shared error body schema."""
        paths = client.get("/openapi.json").json()["paths"]
        chat_responses = paths["/chat"]["post"]["responses"]
        for status in ("400", "409", "500"):
            schema_ref = chat_responses[status]["content"]["application/json"]["schema"]["$ref"]
            assert schema_ref.endswith("/ErrorResponse")
        assert "500" in paths["/start-session"]["post"]["responses"]

    def test_metrics_exposed(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200


class TestStartSession:
    """Tests for the start-session endpoint."""

    def test_start_session(self, client):
        response = client.post("/start-session")
        assert response.status_code == 200

        data = response.json()
        assert data["session_id"].startswith("session_")
        assert data["first_question"] == QUESTIONS[0].question
        assert data["question_id"] == 1
        assert data["total_questions"] == 5
        assert "message" in data

    def test_sessions_are_unique(self, client):
        assert _start(client) != _start(client)

    def test_store_failure(self, client):
        with patch(
            "cyclica_api.main.start_questionnaire_session",
            AsyncMock(side_effect=SupabaseConnectionError("down")),
        ):
            response = client.post("/start-session")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create session"}


class TestChatValidation:
    """Tests for request validation on the chat endpoint."""

    @pytest.mark.parametrize(
        "body",
        [
            {"message": "hello there", "phase": "free_chat"},
            {"session_id": "s1", "phase": "free_chat"},
            {"session_id": "s1", "message": "", "phase": "free_chat"},
            {},
        ],
    )
    def test_missing_fields(self, client, body):
        response = client.post("/chat", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "session_id and message are required"}

    def test_invalid_phase(self, client):
        response = client.post(
            "/chat", json={"session_id": "s1", "message": "hello there", "phase": "review"}
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid phase. Use 'questionnaire' or 'free_chat'"}

    def test_missing_phase(self, client):
        response = client.post("/chat", json={"session_id": "s1", "message": "hello there"})
        assert response.status_code == 400

    def test_questionnaire_requires_question_id(self, client):
        response = client.post(
            "/chat",
            json={"session_id": "s1", "message": GOOD_ANSWER, "phase": "questionnaire"},
        )
        assert response.status_code == 400
        assert "question_id" in response.json()["error"]

    def test_unknown_question_id(self, client):
        response = _answer(client, _start(client), 9)
        assert response.status_code == 400
        assert "Unknown question_id" in response.json()["error"]


class TestQuestionnaireFlow:
    """Tests for the questionnaire phase."""

    def test_next_question(self, client):
        response = _answer(client, _start(client), 1)
        assert response.status_code == 200

        data = response.json()
        assert data["type"] == "next_question"
        assert data["question_id"] == 2
        assert data["question"] == QUESTIONS[1].question
        assert data["progress"] == "1/5"
        # MOCK_LLM scores every valid answer 2
        assert data["current_score"] == 2

    def test_full_questionnaire(self, client):
        session_id = _start(client)
        for question in QUESTIONS[:-1]:
            assert _answer(client, session_id, question.id).status_code == 200

        response = _answer(client, session_id, 5)
        assert response.status_code == 200

        data = response.json()
        assert data["type"] == "questionnaire_complete"
        assert data["total_score"] == 10
        assert data["feedback_range"] == "9-10"
        assert "feedback" in data
        assert "message" in data

    def test_gibberish_scores_zero_when_enforced(self, client, mock_settings):
        mock_settings(enforce_answer_validation="true")
        response = _answer(client, _start(client), 1, message="zzzzzzzzzzzz")
        assert response.json()["current_score"] == 0

    def test_ellipsis_answer_scored_by_model(self, client):
        """Punctuation runs in a genuine answer reach the scorer."""
        response = _answer(
            client,
            _start(client),
            1,
            message="Honestly... I slow down on low-energy days and tell my team early.",
        )
        assert response.json()["current_score"] == 2

    def test_skip_to_last_question_conflict(self, client):
        response = _answer(client, _start(client), 5)

        assert response.status_code == 409
        assert "Expected an answer to question 1" in response.json()["error"]

    def test_out_of_order_answer_conflict(self, client):
        session_id = _start(client)
        _answer(client, session_id, 1)

        response = _answer(client, session_id, 3)

        assert response.status_code == 409
        assert _answer(client, session_id, 2).json()["progress"] == "2/5"

    def test_duplicate_answer_conflict(self, client):
        session_id = _start(client)
        _answer(client, session_id, 1)

        response = _answer(client, session_id, 1)

        assert response.status_code == 409
        assert "already answered" in response.json()["error"]

    def test_answer_after_completion_conflict(self, client):
        session_id = _start(client)
        for question in QUESTIONS:
            _answer(client, session_id, question.id)

        response = _answer(client, session_id, 2)

        assert response.status_code == 409
        assert "already completed" in response.json()["error"]


class TestFreeChat:
    """Tests for the free chat phase."""

    def test_free_chat_reply(self, client):
        response = client.post(
            "/chat",
            json={"session_id": _start(client), "message": "What is a well-being room?", "phase": "free_chat"},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["type"] == "chat_response"
        assert "MOCK_LLM" in data["message"]

    def test_free_chat_without_session_start(self, client):
        """Free chat does not require a questionnaire."""
        response = client.post(
            "/chat",
            json={"session_id": "adhoc", "message": "Tell me about flexible hours", "phase": "free_chat"},
        )
        assert response.status_code == 200

    def test_llm_failure_returns_500(self, client):
        with patch("cyclica_api.main.reply", AsyncMock(side_effect=LLMError("model offline"))):
            response = client.post(
                "/chat",
                json={"session_id": "s1", "message": "Hello again", "phase": "free_chat"},
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "model offline"}
