"""Pydantic models for API requests/responses and ledger rows."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PHASE_QUESTIONNAIRE = "questionnaire"
PHASE_QUESTIONNAIRE_COMPLETE = "questionnaire_complete"
PHASE_FREE_CHAT = "free_chat"

SESSION_START = "SESSION_START"
QUESTIONNAIRE_COMPLETE = "QUESTIONNAIRE_COMPLETE"

InteractionType = Literal["questionnaire", "free_chat"]

# =============================================================================
# Ledger Models (internal)
# =============================================================================


class ScoreEntry(BaseModel):
    """Score recorded for one answered question."""

    question_id: int
    score: int = Field(..., ge=0, le=2)


class InteractionMetadata(BaseModel):
    """Structured metadata stored with each ledger row.

    Which fields are set depends on the phase; unknown keys are preserved.
    """

    model_config = ConfigDict(extra="allow")

    phase: str
    question_index: int | None = None
    question_id: int | None = None
    score: int | None = None
    scores: list[ScoreEntry] | None = None
    total_score: int | None = None
    feedback_range: str | None = None
    context_used: bool | None = None
    assessment_score: int | None = None


class Interaction(BaseModel):
    """One immutable row of the session ledger."""

    model_config = ConfigDict(extra="ignore")

    session_id: str
    user_message: str
    bot_response: str
    interaction_type: InteractionType
    question_number: int | None = None
    score: int | None = None
    metadata: InteractionMetadata
    created_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        """Serialize for insertion; the store assigns ``created_at``."""
        row = self.model_dump(mode="json", exclude={"created_at", "metadata"})
        row["metadata"] = self.metadata.model_dump(mode="json", exclude_none=True)
        return row

    @property
    def scores(self) -> list[ScoreEntry]:
        return list(self.metadata.scores or [])


class ContextExcerpt(BaseModel):
    """A passage returned by the similarity search."""

    model_config = ConfigDict(extra="ignore")

    filename: str
    content: str
    similarity: float


class AssessmentContext(BaseModel):
    """Summary of a completed questionnaire used to personalize free chat."""

    total_score: int
    feedback_range: str
    answers: str


# =============================================================================
# API Models
# =============================================================================


class ChatRequest(BaseModel):
    """Request body for the chat endpoint.

    Fields are optional here so that missing values produce a 400 from the
    handler instead of a 422 validation error.
    """

    session_id: str | None = Field(default=None, description="Session ID from /start-session")
    message: str | None = Field(default=None, description="User message or answer")
    question_id: int | None = Field(default=None, description="Question being answered")
    phase: str | None = Field(default=None, description="'questionnaire' or 'free_chat'")


class StatusResponse(BaseModel):
    """Response for the root health endpoint."""

    status: Literal["ok"] = "ok"
    message: str
    endpoints: list[str]


class QuestionSummary(BaseModel):
    """A question without its scoring rubric."""

    id: int
    question: str


class QuestionsResponse(BaseModel):
    """Response for the questions endpoint."""

    questions: list[QuestionSummary]


class StartSessionResponse(BaseModel):
    """Response for the start-session endpoint."""

    session_id: str
    message: str
    first_question: str
    question_id: int = 1
    total_questions: int


class NextQuestionResponse(BaseModel):
    """Questionnaire still in progress."""

    type: Literal["next_question"] = "next_question"
    question: str
    question_id: int
    current_score: int
    progress: str


class QuestionnaireCompleteResponse(BaseModel):
    """Final questionnaire result with feedback."""

    type: Literal["questionnaire_complete"] = "questionnaire_complete"
    total_score: int
    feedback: str
    feedback_range: str
    message: str


class ChatReplyResponse(BaseModel):
    """Free chat reply."""

    type: Literal["chat_response"] = "chat_response"
    message: str


class ErrorResponse(BaseModel):
    """Error body returned for 4xx and 5xx responses."""

    error: str
    details: str | None = None
