"""Questionnaire state machine: session start, answer scoring, completion.

State is replayed from the ledger on every call. The latest questionnaire row
carries the score sequence so far; the ``QUESTIONNAIRE_COMPLETE`` row marks
the terminal state.
"""

import time
import uuid

import structlog

from cyclica_api.config import get_settings
from cyclica_api.feedback import generate_feedback
from cyclica_api.ledger import SessionLedger
from cyclica_api.models import (
    PHASE_QUESTIONNAIRE,
    PHASE_QUESTIONNAIRE_COMPLETE,
    QUESTIONNAIRE_COMPLETE,
    SESSION_START,
    Interaction,
    InteractionMetadata,
    NextQuestionResponse,
    QuestionnaireCompleteResponse,
    ScoreEntry,
    StartSessionResponse,
)
from cyclica_api.observability import record_answer_score
from cyclica_api.prompts import QUESTIONNAIRE_COMPLETE_INVITATION
from cyclica_api.questions import QUESTIONS, TOTAL_QUESTIONS, get_question
from cyclica_api.scorer import INVALID_ANSWER_EVALUATION, AnswerEvaluation, evaluate_answer
from cyclica_api.session_locks import get_lock_registry
from cyclica_api.validation import is_valid_answer

logger = structlog.get_logger()

WELCOME_MESSAGE = "Welcome to Cyclica's cultural fit assessment"
SESSION_START_RESPONSE = "Cultural fit assessment initiated"


class QuestionnaireError(Exception):
    """Base exception for questionnaire state violations."""

    pass


class UnknownQuestionError(QuestionnaireError):
    """Raised when a question id is not part of the questionnaire."""

    pass


class QuestionAlreadyAnsweredError(QuestionnaireError):
    """Raised when a session submits a second answer for the same question."""

    pass


class QuestionnaireCompleteError(QuestionnaireError):
    """Raised when a session answers after the questionnaire has finished."""

    pass


class QuestionOutOfOrderError(QuestionnaireError):
    """Raised when an answer is not for the next unanswered question."""

    pass


def generate_session_id() -> str:
    """Create an opaque session id: ``session_<epoch ms>_<9 random chars>``."""
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def total_score(scores: list[ScoreEntry]) -> int:
    return sum(entry.score for entry in scores)


async def start_session(ledger: SessionLedger) -> StartSessionResponse:
    """Create a session by writing its ``SESSION_START`` row.

    Raises:
        SupabaseError: If the row cannot be written.
    """
    session_id = generate_session_id()
    await ledger.append(
        Interaction(
            session_id=session_id,
            user_message=SESSION_START,
            bot_response=SESSION_START_RESPONSE,
            interaction_type="questionnaire",
            metadata=InteractionMetadata(
                phase=PHASE_QUESTIONNAIRE,
                question_index=0,
                scores=[],
            ),
        )
    )
    logger.info("session_started", session_id=session_id)

    return StartSessionResponse(
        session_id=session_id,
        message=WELCOME_MESSAGE,
        first_question=QUESTIONS[0].question,
        question_id=QUESTIONS[0].id,
        total_questions=TOTAL_QUESTIONS,
    )


async def _score(question_id: int, answer: str, llm_client) -> AnswerEvaluation:
    """Validate locally, then score with the model unless validation rejects."""
    if is_valid_answer(answer):
        return await evaluate_answer(question_id, answer, llm_client)

    if get_settings().enforce_answer_validation:
        logger.info("answer_rejected_by_validator", question_id=question_id)
        return INVALID_ANSWER_EVALUATION

    logger.warning("answer_failed_validation", question_id=question_id)
    return await evaluate_answer(question_id, answer, llm_client)


async def submit_answer(
    ledger: SessionLedger,
    llm_client,
    session_id: str,
    question_id: int,
    answer: str,
) -> NextQuestionResponse | QuestionnaireCompleteResponse:
    """Record an answer and advance the questionnaire.

    Args:
        ledger: Session ledger.
        llm_client: Client used for scoring.
        session_id: Session being answered.
        question_id: Question being answered (1-based).
        answer: Candidate's answer.

    Returns:
        The next question, or the final result once the last question is answered.

    Raises:
        UnknownQuestionError: If ``question_id`` is not a questionnaire item.
        QuestionnaireCompleteError: If the session already finished.
        QuestionAlreadyAnsweredError: If ``question_id`` was already answered.
        QuestionOutOfOrderError: If ``question_id`` is not the next question.
        SupabaseError: If the ledger cannot be read or written.
    """
    if get_question(question_id) is None:
        raise UnknownQuestionError(f"Unknown question_id {question_id}")

    async with get_lock_registry().get(session_id):
        latest = await ledger.latest_questionnaire_row(session_id)
        if latest and latest.metadata.phase == PHASE_QUESTIONNAIRE_COMPLETE:
            raise QuestionnaireCompleteError("Questionnaire already completed for this session")

        scores = latest.scores if latest else []
        if any(entry.question_id == question_id for entry in scores):
            raise QuestionAlreadyAnsweredError(f"Question {question_id} was already answered")

        expected = len(scores) + 1
        if question_id != expected:
            raise QuestionOutOfOrderError(
                f"Expected an answer to question {expected}, got question {question_id}"
            )

        evaluation = await _score(question_id, answer, llm_client)
        record_answer_score(evaluation.score)

        scores.append(ScoreEntry(question_id=question_id, score=evaluation.score))
        running_total = total_score(scores)

        await ledger.append(
            Interaction(
                session_id=session_id,
                user_message=answer,
                bot_response=evaluation.reasoning,
                interaction_type="questionnaire",
                question_number=question_id,
                score=evaluation.score,
                metadata=InteractionMetadata(
                    phase=PHASE_QUESTIONNAIRE,
                    question_id=question_id,
                    score=evaluation.score,
                    scores=scores,
                    total_score=running_total,
                ),
            )
        )
        logger.info(
            "answer_recorded",
            session_id=session_id,
            question_id=question_id,
            score=evaluation.score,
            total_score=running_total,
        )

        if question_id < TOTAL_QUESTIONS:
            next_question = QUESTIONS[question_id]
            return NextQuestionResponse(
                question=next_question.question,
                question_id=next_question.id,
                current_score=running_total,
                progress=f"{question_id}/{TOTAL_QUESTIONS}",
            )

        feedback = generate_feedback(running_total)
        await ledger.append(
            Interaction(
                session_id=session_id,
                user_message=QUESTIONNAIRE_COMPLETE,
                bot_response=feedback.message,
                interaction_type="questionnaire",
                score=running_total,
                metadata=InteractionMetadata(
                    phase=PHASE_QUESTIONNAIRE_COMPLETE,
                    total_score=running_total,
                    feedback_range=feedback.range,
                    scores=scores,
                ),
            )
        )
        logger.info(
            "questionnaire_complete",
            session_id=session_id,
            total_score=running_total,
            feedback_range=feedback.range,
        )

        return QuestionnaireCompleteResponse(
            total_score=running_total,
            feedback=feedback.message,
            feedback_range=feedback.range,
            message=QUESTIONNAIRE_COMPLETE_INVITATION,
        )
