"""Append-only session ledger backed by the interactions table.

Every turn is one immutable row. Session state (score sequence, phase,
final result) is derived by querying rows, never stored separately.
"""

import structlog

from cyclica_api.config import get_settings
from cyclica_api.models import (
    PHASE_FREE_CHAT,
    PHASE_QUESTIONNAIRE,
    QUESTIONNAIRE_COMPLETE,
    SESSION_START,
    Interaction,
)
from cyclica_api.supabase_client import SupabaseClient

logger = structlog.get_logger()


class SessionLedger:
    """Typed access to the interaction log for one table."""

    def __init__(self, store: SupabaseClient, table: str | None = None):
        self._store = store
        self._table = table or get_settings().interactions_table

    async def append(self, interaction: Interaction) -> Interaction:
        """Write one row and return it as stored.

        Raises:
            SupabaseError: If the insert fails.
        """
        stored = await self._store.insert(self._table, interaction.to_row())
        logger.info(
            "ledger_append",
            session_id=interaction.session_id,
            interaction_type=interaction.interaction_type,
            phase=interaction.metadata.phase,
            question_number=interaction.question_number,
        )
        return Interaction.model_validate(stored)

    async def latest_questionnaire_row(self, session_id: str) -> Interaction | None:
        """Most recent questionnaire-typed row, including the completion row."""
        rows = await self._store.select(
            self._table,
            filters={"session_id": session_id, "interaction_type": "questionnaire"},
            order="created_at",
            descending=True,
            limit=1,
        )
        return Interaction.model_validate(rows[0]) if rows else None

    async def questionnaire_answers(self, session_id: str) -> list[Interaction]:
        """Answered questions in the order they were submitted."""
        rows = await self._store.select(
            self._table,
            filters={"session_id": session_id, "metadata->>phase": PHASE_QUESTIONNAIRE},
            order="created_at",
        )
        return [
            Interaction.model_validate(row)
            for row in rows
            if row.get("user_message") and row["user_message"] != SESSION_START
        ]

    async def completion_row(self, session_id: str) -> Interaction | None:
        """The ``QUESTIONNAIRE_COMPLETE`` row, if the questionnaire was finished."""
        rows = await self._store.select(
            self._table,
            filters={"session_id": session_id, "user_message": QUESTIONNAIRE_COMPLETE},
            order="created_at",
            limit=1,
        )
        return Interaction.model_validate(rows[0]) if rows else None

    async def recent_free_chat(self, session_id: str, limit: int) -> list[Interaction]:
        """The last ``limit`` free chat rows, oldest first."""
        rows = await self._store.select(
            self._table,
            filters={"session_id": session_id, "metadata->>phase": PHASE_FREE_CHAT},
            order="created_at",
            descending=True,
            limit=limit,
        )
        return [Interaction.model_validate(row) for row in reversed(rows)]
