"""Tests for the questionnaire state machine."""

import re

import pytest

from cyclica_api.models import (
    PHASE_QUESTIONNAIRE_COMPLETE,
    QUESTIONNAIRE_COMPLETE,
    SESSION_START,
    NextQuestionResponse,
    QuestionnaireCompleteResponse,
)
from cyclica_api.prompts import GIBBERISH_REASONING
from cyclica_api.questionnaire import (
    QuestionAlreadyAnsweredError,
    QuestionnaireCompleteError,
    QuestionOutOfOrderError,
    UnknownQuestionError,
    generate_session_id,
    start_session,
    submit_answer,
)
from cyclica_api.questions import QUESTIONS

from conftest import FakeLLMClient

GOOD_ANSWER = "I plan lighter tasks on low energy days and tell my team early."


async def _rows(store, session_id: str) -> list[dict]:
    return await store.select("chat_interactions", filters={"session_id": session_id}, order="created_at")


async def _answer_all(ledger, llm, session_id: str):
    result = None
    for question in QUESTIONS:
        result = await submit_answer(ledger, llm, session_id, question.id, GOOD_ANSWER)
    return result


class TestGenerateSessionId:
    """Tests for session id format."""

    def test_format(self) -> None:
        assert re.fullmatch(r"session_\d{13}_[0-9a-f]{9}", generate_session_id())

    def test_unique(self) -> None:
        assert len({generate_session_id() for _ in range(50)}) == 50


class TestStartSession:
    """Tests for start_session."""

    @pytest.mark.asyncio
    async def test_returns_first_question(self, ledger) -> None:
        response = await start_session(ledger)

        assert response.session_id.startswith("session_")
        assert response.first_question == QUESTIONS[0].question
        assert response.question_id == 1
        assert response.total_questions == 5

    @pytest.mark.asyncio
    async def test_writes_session_start_row(self, ledger, store) -> None:
        response = await start_session(ledger)

        rows = await _rows(store, response.session_id)
        assert len(rows) == 1
        assert rows[0]["user_message"] == SESSION_START
        assert rows[0]["interaction_type"] == "questionnaire"
        assert rows[0]["metadata"] == {"phase": "questionnaire", "question_index": 0, "scores": []}


class TestSubmitAnswer:
    """Tests for submit_answer."""

    @pytest.mark.asyncio
    async def test_first_answer_returns_next_question(self, ledger, fake_llm) -> None:
        session = await start_session(ledger)

        result = await submit_answer(ledger, fake_llm, session.session_id, 1, GOOD_ANSWER)

        assert isinstance(result, NextQuestionResponse)
        assert result.question_id == 2
        assert result.question == QUESTIONS[1].question
        assert result.current_score == 2
        assert result.progress == "1/5"

    @pytest.mark.asyncio
    async def test_all_twos_reach_top_band(self, ledger, fake_llm, store) -> None:
        """Five answers scored 2 complete with 10 and the 9-10 band."""
        session = await start_session(ledger)

        result = await _answer_all(ledger, fake_llm, session.session_id)

        assert isinstance(result, QuestionnaireCompleteResponse)
        assert result.total_score == 10
        assert result.feedback_range == "9-10"
        assert "Do you want to talk more" in result.message

        rows = await _rows(store, session.session_id)
        # SESSION_START + 5 answers + completion
        assert len(rows) == 7
        completion = rows[-1]
        assert completion["user_message"] == QUESTIONNAIRE_COMPLETE
        assert completion["score"] == 10
        assert completion["metadata"]["phase"] == PHASE_QUESTIONNAIRE_COMPLETE
        assert completion["metadata"]["feedback_range"] == "9-10"
        assert len(completion["metadata"]["scores"]) == 5

    @pytest.mark.asyncio
    async def test_mixed_scores_middle_band(self, ledger) -> None:
        """Scores 2,1,0,2,1 total 6 in the 4-6 band."""
        llm = FakeLLMClient(scores=[2, 1, 0, 2, 1])
        session = await start_session(ledger)

        result = await _answer_all(ledger, llm, session.session_id)

        assert result.total_score == 6
        assert result.feedback_range == "4-6"

    @pytest.mark.asyncio
    async def test_running_score_accumulates(self, ledger) -> None:
        llm = FakeLLMClient(scores=[1, 2, 0])
        session = await start_session(ledger)

        first = await submit_answer(ledger, llm, session.session_id, 1, GOOD_ANSWER)
        second = await submit_answer(ledger, llm, session.session_id, 2, GOOD_ANSWER)
        third = await submit_answer(ledger, llm, session.session_id, 3, GOOD_ANSWER)

        assert [first.current_score, second.current_score, third.current_score] == [1, 3, 3]
        assert third.progress == "3/5"

    @pytest.mark.asyncio
    async def test_answer_row_records_score_sequence(self, ledger, store) -> None:
        llm = FakeLLMClient(scores=[2, 0])
        session = await start_session(ledger)
        await submit_answer(ledger, llm, session.session_id, 1, GOOD_ANSWER)
        await submit_answer(ledger, llm, session.session_id, 2, GOOD_ANSWER)

        row = (await _rows(store, session.session_id))[-1]
        assert row["user_message"] == GOOD_ANSWER
        assert row["bot_response"] == "scored 0"
        assert row["question_number"] == 2
        assert row["score"] == 0
        assert row["metadata"]["scores"] == [
            {"question_id": 1, "score": 2},
            {"question_id": 2, "score": 0},
        ]
        assert row["metadata"]["total_score"] == 2

    @pytest.mark.asyncio
    async def test_answer_without_session_start(self, ledger, fake_llm) -> None:
        """A session with no rows starts from an empty score sequence."""
        result = await submit_answer(ledger, fake_llm, "session_unknown", 1, GOOD_ANSWER)
        assert result.current_score == 2

    @pytest.mark.asyncio
    async def test_free_chat_rows_do_not_reset_scores(self, ledger, fake_llm, store) -> None:
        """Only questionnaire rows carry the score sequence."""
        session = await start_session(ledger)
        await submit_answer(ledger, fake_llm, session.session_id, 1, GOOD_ANSWER)
        await store.insert(
            "chat_interactions",
            {
                "session_id": session.session_id,
                "user_message": "A quick side question",
                "bot_response": "Sure",
                "interaction_type": "free_chat",
                "metadata": {"phase": "free_chat"},
            },
        )

        result = await submit_answer(ledger, fake_llm, session.session_id, 2, GOOD_ANSWER)

        assert result.current_score == 4

    @pytest.mark.asyncio
    async def test_unknown_question_rejected(self, ledger, fake_llm, store) -> None:
        session = await start_session(ledger)

        with pytest.raises(UnknownQuestionError):
            await submit_answer(ledger, fake_llm, session.session_id, 6, GOOD_ANSWER)

        assert len(await _rows(store, session.session_id)) == 1
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_answer_rejected(self, ledger, fake_llm, store) -> None:
        session = await start_session(ledger)
        await submit_answer(ledger, fake_llm, session.session_id, 1, GOOD_ANSWER)

        with pytest.raises(QuestionAlreadyAnsweredError):
            await submit_answer(ledger, fake_llm, session.session_id, 1, GOOD_ANSWER)

        assert len(await _rows(store, session.session_id)) == 2
        assert len(fake_llm.scoring_calls) == 1

    @pytest.mark.asyncio
    async def test_skipping_to_last_question_rejected(self, ledger, fake_llm, store) -> None:
        """The last question cannot complete a session with missing answers."""
        session = await start_session(ledger)

        with pytest.raises(QuestionOutOfOrderError):
            await submit_answer(ledger, fake_llm, session.session_id, 5, GOOD_ANSWER)

        assert len(await _rows(store, session.session_id)) == 1
        assert fake_llm.scoring_calls == []
        assert await ledger.completion_row(session.session_id) is None

    @pytest.mark.asyncio
    async def test_out_of_order_answer_rejected(self, ledger, fake_llm, store) -> None:
        session = await start_session(ledger)
        await submit_answer(ledger, fake_llm, session.session_id, 1, GOOD_ANSWER)

        with pytest.raises(QuestionOutOfOrderError, match="question 2"):
            await submit_answer(ledger, fake_llm, session.session_id, 3, GOOD_ANSWER)

        assert len(await _rows(store, session.session_id)) == 2
        result = await submit_answer(ledger, fake_llm, session.session_id, 2, GOOD_ANSWER)
        assert result.progress == "2/5"
        assert result.question_id == 3

    @pytest.mark.asyncio
    async def test_answer_after_completion_rejected(self, ledger, fake_llm, store) -> None:
        session = await start_session(ledger)
        await _answer_all(ledger, fake_llm, session.session_id)

        with pytest.raises(QuestionnaireCompleteError):
            await submit_answer(ledger, fake_llm, session.session_id, 3, GOOD_ANSWER)

        assert len(await _rows(store, session.session_id)) == 7


class TestAnswerValidationGate:
    """Tests for the local validator in front of the model."""

    @pytest.mark.asyncio
    async def test_invalid_answer_scored_by_model_by_default(self, ledger) -> None:
        """The validator is advisory unless enforcement is turned on."""
        llm = FakeLLMClient(scores=[0])
        session = await start_session(ledger)

        result = await submit_answer(ledger, llm, session.session_id, 1, "aaaaaaaaaa")

        assert result.current_score == 0
        assert len(llm.scoring_calls) == 1
        assert "aaaaaaaaaa" in llm.scoring_calls[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_ellipsis_answer_reaches_model(self, ledger, fake_llm) -> None:
        """Punctuation runs in a genuine answer do not cost the candidate points."""
        answer = (
            "Honestly... I slow down on low-energy days and tell my team early "
            "so we can re-plan together."
        )
        session = await start_session(ledger)

        result = await submit_answer(ledger, fake_llm, session.session_id, 1, answer)

        assert result.current_score == 2
        assert len(fake_llm.scoring_calls) == 1

    @pytest.mark.asyncio
    async def test_enforced_invalid_answer_scored_zero_without_model(
        self, ledger, fake_llm, store, mock_settings
    ) -> None:
        mock_settings(enforce_answer_validation="true")
        session = await start_session(ledger)

        result = await submit_answer(ledger, fake_llm, session.session_id, 1, "aaaaaaaaaaaa")

        assert result.current_score == 0
        assert fake_llm.scoring_calls == []
        row = (await _rows(store, session.session_id))[-1]
        assert row["bot_response"] == GIBBERISH_REASONING
        assert row["score"] == 0

    @pytest.mark.asyncio
    async def test_enforced_all_gibberish_lowest_band(self, ledger, fake_llm, mock_settings) -> None:
        mock_settings(enforce_answer_validation="true")
        session = await start_session(ledger)

        result = None
        for question in QUESTIONS:
            result = await submit_answer(ledger, fake_llm, session.session_id, question.id, "xxxx")

        assert result.total_score == 0
        assert result.feedback_range == "0-3"
        assert fake_llm.scoring_calls == []

    @pytest.mark.asyncio
    async def test_scoring_failure_gives_neutral(self, ledger) -> None:
        """Model failures fall back to 1 point and the questionnaire continues."""
        llm = FakeLLMClient(fail=RuntimeError("model offline"))
        session = await start_session(ledger)

        result = await submit_answer(ledger, llm, session.session_id, 1, GOOD_ANSWER)

        assert result.current_score == 1
        assert result.question_id == 2
