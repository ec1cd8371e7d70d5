"""OpenAI-compatible LLM client for chat completions and embeddings."""

import hashlib
import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from cyclica_api.config import get_settings
from cyclica_api.observability import log_llm_response, track_llm_request

logger = structlog.get_logger()

MOCK_EMBEDDING_DIMENSIONS = 16


class LLMError(Exception):
    """Base exception for LLM client errors."""

    pass


class LLMAuthError(LLMError):
    """Raised when authentication fails or no key is configured."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limit is exceeded."""

    pass


@dataclass
class LLMResponse:
    """Non-streaming response from the LLM."""

    content: str
    tokens_used: int
    finish_reason: str | None = None


class LLMClient:
    """Async client for an OpenAI-compatible API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key. Defaults to config value.
            base_url: API base URL. Defaults to config value.
            timeout: Request timeout in seconds. Defaults to config value.
        """
        settings = get_settings()
        self._api_key = api_key or settings.openai_api_key
        self._base_url = base_url or settings.openai_base_url
        self._timeout = timeout or settings.llm_timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "LLMClient":
        """Enter async context."""
        await self.connect()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        """Exit async context."""
        await self.close()

    async def connect(self) -> None:
        """Create the HTTP client.

        In mock mode (MOCK_LLM=true) without a usable key, skips creating a
        real HTTP client since all requests will be served by mock handlers.
        """
        settings = get_settings()
        if settings.mock_llm and not self.is_configured:
            logger.info("LLM client in mock mode, skipping HTTP client creation")
            return

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(self._timeout, connect=10.0),
        )
        logger.info("LLM client connected", base_url=self._base_url)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("LLM client closed")

    def _check_mock_policy(self) -> bool:
        """Return True when requests should be served by mock handlers.

        Raises:
            LLMAuthError: If no key is configured and MOCK_LLM=false.
        """
        if self.is_configured:
            return False
        if get_settings().mock_llm:
            return True
        error_msg = (
            "FATAL: OpenAI API key not configured with MOCK_LLM=false. "
            "Either set OPENAI_API_KEY or set MOCK_LLM=true for testing."
        )
        logger.error(error_msg)
        raise LLMAuthError(error_msg)

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float,
        max_tokens: int | None = None,
        purpose: str = "chat",
    ) -> LLMResponse:
        """Send a chat completion request.

        Args:
            messages: Full message list (system, history, user).
            model: Model ID to use.
            temperature: Sampling temperature.
            max_tokens: Optional cap on the response length.
            purpose: Label used for logs and metrics.

        Returns:
            LLM response with content and token usage.

        Raises:
            LLMError: If the request fails.
            LLMAuthError: If MOCK_LLM=false but API key missing.
        """
        if self._check_mock_policy():
            logger.info("MOCK_LLM=true: Using mock LLM response", purpose=purpose)
            return self._mock_chat(messages, purpose)

        if not self._client:
            await self.connect()

        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        with track_llm_request(model=model, purpose=purpose, messages=messages) as request_log:
            try:
                response = await self._client.post("/chat/completions", json=payload)
                response.raise_for_status()
                data = response.json()

                choice = data["choices"][0]
                content = choice["message"]["content"] or ""
                tokens_used = (data.get("usage") or {}).get("total_tokens", 0)
                finish_reason = choice.get("finish_reason")
            except httpx.HTTPStatusError as e:
                log_llm_response(request_log, error=f"HTTP {e.response.status_code}")
                self._handle_http_error(e)
                raise
            except (httpx.HTTPError, KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
                log_llm_response(request_log, error=str(e))
                raise LLMError(f"Chat completion failed: {e}") from e

            log_llm_response(
                request_log,
                tokens_total=tokens_used,
                finish_reason=finish_reason or "stop",
            )
        return LLMResponse(
            content=content,
            tokens_used=tokens_used,
            finish_reason=finish_reason,
        )

    async def embed(self, text: str, model: str) -> list[float]:
        """Create an embedding vector for the given text.

        Raises:
            LLMError: If the request fails.
            LLMAuthError: If MOCK_LLM=false but API key missing.
        """
        if self._check_mock_policy():
            logger.info("MOCK_LLM=true: Using mock embedding")
            return self._mock_embed(text)

        if not self._client:
            await self.connect()

        with track_llm_request(
            model=model,
            purpose="embedding",
            messages=[{"role": "user", "content": text}],
        ) as request_log:
            try:
                response = await self._client.post(
                    "/embeddings",
                    json={"model": model, "input": text},
                )
                response.raise_for_status()
                embedding = response.json()["data"][0]["embedding"]
            except httpx.HTTPStatusError as e:
                log_llm_response(request_log, error=f"HTTP {e.response.status_code}")
                self._handle_http_error(e)
                raise
            except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
                log_llm_response(request_log, error=str(e))
                raise LLMError(f"Embedding failed: {e}") from e

            log_llm_response(request_log, finish_reason="stop")

        logger.info("embedding_created", model=model, dimensions=len(embedding))
        return embedding

    def _handle_http_error(self, error: httpx.HTTPStatusError) -> None:
        """Translate HTTP errors from the API into client exceptions."""
        status = error.response.status_code
        try:
            detail = error.response.json().get("error", {}).get("message", str(error))
        except (ValueError, AttributeError):
            detail = str(error)

        logger.error("LLM API error", status=status, detail=detail)

        if status == 401:
            raise LLMAuthError(f"Authentication failed: {detail}")
        elif status == 429:
            raise LLMRateLimitError(f"Rate limit exceeded: {detail}")
        else:
            raise LLMError(f"API error ({status}): {detail}")

    def _mock_chat(self, messages: list[dict[str, str]], purpose: str) -> LLMResponse:
        """Return a canned response shaped for the calling purpose."""
        if purpose == "scoring":
            content = json.dumps(
                {
                    "score": 2,
                    "reasoning": "Mock evaluation (MOCK_LLM=true). Set OPENAI_API_KEY for real scoring.",
                }
            )
        else:
            user_message = messages[-1]["content"] if messages else ""
            content = (
                "This is a mock reply (MOCK_LLM=true). "
                f"In production, this would be a real response to: '{user_message[:50]}'. "
                "Set OPENAI_API_KEY to enable real LLM responses."
            )
        return LLMResponse(content=content, tokens_used=50, finish_reason="stop")

    def _mock_embed(self, text: str) -> list[float]:
        """Deterministic pseudo-embedding derived from the text hash."""
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [byte / 255.0 for byte in digest[:MOCK_EMBEDDING_DIMENSIONS]]

    @property
    def is_configured(self) -> bool:
        """Check if the client is properly configured with an API key."""
        return bool(self._api_key and self._api_key.startswith("sk-"))


# Global client instance
_llm_client: LLMClient | None = None


async def get_llm_client() -> LLMClient:
    """Get or create the global LLM client instance."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
        await _llm_client.connect()
    return _llm_client


async def close_llm_client() -> None:
    """Close the global LLM client."""
    global _llm_client
    if _llm_client:
        await _llm_client.close()
        _llm_client = None


def reset_llm_client() -> None:
    """Reset the global LLM client (for testing)."""
    global _llm_client
    _llm_client = None
