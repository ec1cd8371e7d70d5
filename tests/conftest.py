"""Pytest configuration and fixtures."""

import json
import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
import pytest_asyncio

# Set test environment variables before importing app modules
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("ENVIRONMENT", "development")
# Increase rate limit for testing
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")
# In-memory collaborators
os.environ.setdefault("MOCK_LLM", "true")
os.environ.setdefault("MOCK_SUPABASE", "true")

from cyclica_api.config import Settings  # noqa: E402
from cyclica_api.llm_client import LLMResponse  # noqa: E402


@pytest.fixture(autouse=True)
def reset_caches() -> Iterator[None]:
    """Reset cached settings and global clients before each test."""
    from cyclica_api.config import get_settings
    from cyclica_api.llm_client import reset_llm_client
    from cyclica_api.session_locks import reset_lock_registry
    from cyclica_api.supabase_client import reset_supabase_client

    get_settings.cache_clear()
    reset_llm_client()
    reset_supabase_client()
    reset_lock_registry()

    # Reset rate limiter storage
    try:
        from cyclica_api.main import limiter

        if hasattr(limiter, "_storage") and limiter._storage:
            limiter._storage.reset()
    except (ImportError, AttributeError):
        pass

    yield
    get_settings.cache_clear()
    reset_llm_client()
    reset_supabase_client()
    reset_lock_registry()


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Callable[..., Settings]:
    """Fixture to set test settings."""

    def _mock_settings(**kwargs: str) -> Settings:
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        from cyclica_api.config import get_settings

        get_settings.cache_clear()
        return get_settings()

    return _mock_settings


class FakeLLMClient:
    """Test double recording chat calls and returning scripted responses.

    ``scores`` are consumed in order by scoring calls; free chat calls return
    ``reply``. Set ``fail`` to make every call raise.
    """

    def __init__(
        self,
        scores: list[int] | None = None,
        reply: str = "Thanks for sharing that.",
        fail: Exception | None = None,
    ):
        self.scores = list(scores or [])
        self.reply = reply
        self.fail = fail
        self.calls: list[dict[str, Any]] = []
        self.embed_calls: list[str] = []

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int | None = None,
        purpose: str = "chat",
    ) -> LLMResponse:
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "purpose": purpose,
            }
        )
        if self.fail:
            raise self.fail
        if purpose == "scoring":
            score = self.scores.pop(0) if self.scores else 2
            content = json.dumps({"score": score, "reasoning": f"scored {score}"})
        else:
            content = self.reply
        return LLMResponse(content=content, tokens_used=10, finish_reason="stop")

    async def embed(self, text: str, model: str) -> list[float]:
        self.embed_calls.append(text)
        if self.fail:
            raise self.fail
        return [0.1, 0.2, 0.3]

    @property
    def scoring_calls(self) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["purpose"] == "scoring"]

    @property
    def chat_calls(self) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["purpose"] == "free_chat"]


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    """LLM double scoring every answer 2."""
    return FakeLLMClient()


@pytest_asyncio.fixture
async def store():
    """Connected in-memory Supabase client."""
    from cyclica_api.supabase_client import SupabaseClient

    client = SupabaseClient()
    await client.connect()
    return client


@pytest.fixture
def ledger(store):
    """Session ledger over the in-memory store."""
    from cyclica_api.ledger import SessionLedger

    return SessionLedger(store)
