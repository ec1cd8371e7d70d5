"""Observability utilities: trace IDs, LLM metrics, and payload logging.

This module provides:
- Trace ID generation and propagation via context vars
- Prometheus metrics for LLM calls (tokens, latency, errors) by purpose
- Structured logging helpers for LLM request/response correlation
"""

import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass

import structlog
from prometheus_client import Counter, Gauge, Histogram

logger = structlog.get_logger()

# =============================================================================
# Trace ID Context
# =============================================================================

# Context variable for trace ID propagation across async calls
trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")


def generate_trace_id() -> str:
    """Generate cryptographically secure trace ID for request tracking."""
    return secrets.token_hex(16)


def get_trace_id() -> str:
    """Get current trace ID from context, or empty string if not set."""
    return trace_id_ctx.get()


def set_trace_id(trace_id: str) -> None:
    """Set trace ID in context."""
    trace_id_ctx.set(trace_id)


# =============================================================================
# Prometheus Metrics
# =============================================================================

# purpose: scoring, free_chat, embedding
llm_requests_total = Counter(
    "llm_requests_total",
    "Total LLM API requests",
    ["model", "purpose", "status"],
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total tokens used in LLM calls",
    ["model", "purpose"],
)

llm_latency_seconds = Histogram(
    "llm_latency_seconds",
    "LLM response latency in seconds",
    ["model", "purpose"],
    buckets=[0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

llm_active_requests = Gauge(
    "llm_active_requests",
    "Currently active LLM requests",
    ["model"],
)

retrieval_excerpts = Histogram(
    "retrieval_excerpts",
    "Number of context excerpts retrieved per free chat message",
    buckets=[0, 1, 2, 3, 5, 10],
)

answer_scores_total = Counter(
    "answer_scores_total",
    "Questionnaire answer scores recorded",
    ["score"],
)


def record_excerpts(count: int) -> None:
    """Record how many excerpts a retrieval returned."""
    retrieval_excerpts.observe(count)


def record_answer_score(score: int) -> None:
    """Record a per-question score."""
    answer_scores_total.labels(score=str(score)).inc()


# =============================================================================
# LLM Payload Logging
# =============================================================================


@dataclass
class LLMRequestLog:
    """Structured log data for LLM requests."""

    trace_id: str
    model: str
    purpose: str
    system_prompt_chars: int
    user_message_preview: str  # First 100 chars
    history_messages: int
    timestamp: float = 0.0

    def __post_init__(self) -> None:
        if self.timestamp == 0.0:
            self.timestamp = time.time()


def log_llm_request(
    model: str,
    purpose: str,
    messages: list[dict[str, str]],
) -> LLMRequestLog:
    """Log an LLM request and return a handle for correlating the response."""
    system_prompt = next((m["content"] for m in messages if m["role"] == "system"), "")
    user_message = messages[-1]["content"] if messages else ""
    history = [m for m in messages[:-1] if m["role"] != "system"]

    log_data = LLMRequestLog(
        trace_id=get_trace_id(),
        model=model,
        purpose=purpose,
        system_prompt_chars=len(system_prompt),
        user_message_preview=user_message[:100] + ("..." if len(user_message) > 100 else ""),
        history_messages=len(history),
    )

    logger.info(
        "llm_request",
        trace_id=log_data.trace_id,
        model=log_data.model,
        purpose=log_data.purpose,
        system_prompt_chars=log_data.system_prompt_chars,
        user_message_preview=log_data.user_message_preview,
        history_messages=log_data.history_messages,
    )

    llm_active_requests.labels(model=model).inc()
    return log_data


@contextmanager
def track_llm_request(
    model: str,
    purpose: str,
    messages: list[dict[str, str]],
) -> Iterator[LLMRequestLog]:
    """Log an LLM request and keep it counted as active until the block exits."""
    request_log = log_llm_request(model=model, purpose=purpose, messages=messages)
    try:
        yield request_log
    finally:
        llm_active_requests.labels(model=model).dec()


def log_llm_response(
    request_log: LLMRequestLog,
    tokens_total: int = 0,
    finish_reason: str = "unknown",
    error: str | None = None,
) -> None:
    """Log an LLM response with metrics and correlation."""
    latency_ms = int((time.time() - request_log.timestamp) * 1000)

    if error:
        logger.error(
            "llm_response",
            trace_id=request_log.trace_id,
            model=request_log.model,
            purpose=request_log.purpose,
            latency_ms=latency_ms,
            error=error,
        )
        status = "error"
    else:
        logger.info(
            "llm_response",
            trace_id=request_log.trace_id,
            model=request_log.model,
            purpose=request_log.purpose,
            tokens_total=tokens_total,
            latency_ms=latency_ms,
            finish_reason=finish_reason,
        )
        status = "success"

    llm_requests_total.labels(
        model=request_log.model,
        purpose=request_log.purpose,
        status=status,
    ).inc()

    if tokens_total > 0:
        llm_tokens_total.labels(model=request_log.model, purpose=request_log.purpose).inc(
            tokens_total
        )

    llm_latency_seconds.labels(
        model=request_log.model,
        purpose=request_log.purpose,
    ).observe(latency_ms / 1000.0)
