"""Retrieval-augmented free chat that follows the questionnaire."""

import structlog

from cyclica_api.config import get_settings
from cyclica_api.ledger import SessionLedger
from cyclica_api.models import (
    PHASE_FREE_CHAT,
    AssessmentContext,
    ContextExcerpt,
    Interaction,
    InteractionMetadata,
)
from cyclica_api.observability import record_excerpts
from cyclica_api.prompts import (
    ASSESSMENT_BLOCK,
    FREE_CHAT_PERSONA,
    FREE_CHAT_ROLE,
    NO_DOCUMENTS,
)
from cyclica_api.questions import COMPANY_CONTEXT, MAX_TOTAL_SCORE
from cyclica_api.retriever import find_relevant_context, get_available_pdfs
from cyclica_api.supabase_client import SupabaseClient

logger = structlog.get_logger()


async def get_assessment_context(
    ledger: SessionLedger, session_id: str
) -> AssessmentContext | None:
    """Summarize a finished questionnaire, or None if the session has not finished one."""
    try:
        completion = await ledger.completion_row(session_id)
        if completion is None:
            return None
        answers = await ledger.questionnaire_answers(session_id)
    except Exception as e:
        logger.error("assessment_context_failed", session_id=session_id, error=str(e))
        return None

    summary = "\n".join(
        f"Q{row.question_number or index}: {row.user_message}"
        for index, row in enumerate(answers, start=1)
    )
    return AssessmentContext(
        total_score=completion.metadata.total_score or 0,
        feedback_range=completion.metadata.feedback_range or "unknown",
        answers=summary,
    )


def build_history(rows: list[Interaction], max_messages: int) -> list[dict[str, str]]:
    """Flatten ledger rows into user/assistant turns and keep the last ``max_messages``."""
    turns: list[dict[str, str]] = []
    for row in rows:
        turns.append({"role": "user", "content": row.user_message})
        turns.append({"role": "assistant", "content": row.bot_response})
    return turns[-max_messages:] if max_messages > 0 else []


def build_system_prompt(
    documents: list[str],
    excerpts: list[ContextExcerpt],
    assessment: AssessmentContext | None,
) -> str:
    """Assemble the single system message for the free chat call."""
    sections = [FREE_CHAT_PERSONA, COMPANY_CONTEXT]

    if documents:
        listing = "\n".join(f"{i}. {name}" for i, name in enumerate(documents, start=1))
    else:
        listing = NO_DOCUMENTS
    sections.append(f"Available Research Documents in Database:\n{listing}")

    if excerpts:
        quoted = "\n\n".join(
            f"[Excerpt {i} from {excerpt.filename}]\n{excerpt.content}"
            for i, excerpt in enumerate(excerpts, start=1)
        )
        sections.append(f"Relevant excerpts from research:\n\n{quoted}")

    if assessment is not None:
        sections.append(
            ASSESSMENT_BLOCK.format(
                total_score=assessment.total_score,
                max_score=MAX_TOTAL_SCORE,
                feedback_range=assessment.feedback_range,
                answers=assessment.answers,
            )
        )

    sections.append(FREE_CHAT_ROLE)
    return "\n\n".join(sections)


async def reply(
    ledger: SessionLedger,
    store: SupabaseClient,
    llm_client,
    session_id: str,
    message: str,
) -> str:
    """Produce and record one free chat reply.

    Args:
        ledger: Session ledger for history, assessment lookup, and recording.
        store: Supabase client for the document search.
        llm_client: Client for embeddings and the chat completion.
        session_id: Session the message belongs to.
        message: User message; no validation is applied.

    Returns:
        The assistant's reply text.

    Raises:
        LLMError: If the chat completion fails.
        SupabaseError: If the exchange cannot be recorded.
    """
    settings = get_settings()

    assessment = await get_assessment_context(ledger, session_id)
    excerpts = await find_relevant_context(message, store, llm_client)
    documents = await get_available_pdfs(store)
    record_excerpts(len(excerpts))

    try:
        history_rows = await ledger.recent_free_chat(session_id, settings.history_rows)
    except Exception as e:
        logger.warning("free_chat_history_unavailable", session_id=session_id, error=str(e))
        history_rows = []
    history = build_history(history_rows, settings.history_messages)

    messages = [
        {"role": "system", "content": build_system_prompt(documents, excerpts, assessment)},
        *history,
        {"role": "user", "content": message},
    ]

    response = await llm_client.chat(
        messages=messages,
        model=settings.chat_model,
        temperature=settings.chat_temperature,
        max_tokens=settings.chat_max_tokens,
        purpose="free_chat",
    )

    await ledger.append(
        Interaction(
            session_id=session_id,
            user_message=message,
            bot_response=response.content,
            interaction_type="free_chat",
            metadata=InteractionMetadata(
                phase=PHASE_FREE_CHAT,
                context_used=bool(excerpts),
                assessment_score=assessment.total_score if assessment else None,
            ),
        )
    )
    logger.info(
        "free_chat_reply",
        session_id=session_id,
        excerpts=len(excerpts),
        history_messages=len(history),
        has_assessment=assessment is not None,
    )
    return response.content
