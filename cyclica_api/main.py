"""FastAPI application entrypoint for the Cyclica cultural fit API."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from cyclica_api import __version__
from cyclica_api.config import get_settings
from cyclica_api.free_chat import reply
from cyclica_api.ledger import SessionLedger
from cyclica_api.llm_client import close_llm_client, get_llm_client
from cyclica_api.models import (
    PHASE_FREE_CHAT,
    PHASE_QUESTIONNAIRE,
    ChatReplyResponse,
    ChatRequest,
    ErrorResponse,
    NextQuestionResponse,
    QuestionnaireCompleteResponse,
    QuestionsResponse,
    QuestionSummary,
    StartSessionResponse,
    StatusResponse,
)
from cyclica_api.observability import generate_trace_id, set_trace_id
from cyclica_api.questionnaire import (
    QuestionnaireError,
    UnknownQuestionError,
    start_session as start_questionnaire_session,
    submit_answer,
)
from cyclica_api.questions import QUESTIONS
from cyclica_api.supabase_client import close_supabase_client, get_supabase_client

# Configure structlog
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()
settings = get_settings()

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

ENDPOINTS = ["/start-session", "/chat", "/get-questions"]

START_SESSION_ERRORS = {500: {"model": ErrorResponse, "description": "Session could not be created"}}
CHAT_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid chat request"},
    409: {"model": ErrorResponse, "description": "Answer conflicts with questionnaire state"},
    500: {"model": ErrorResponse, "description": "Unexpected failure"},
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Cyclica API", version=__version__)

    try:
        await get_supabase_client()
        logger.info("Supabase client initialized")
    except Exception as e:
        logger.error("Failed to initialize Supabase client", error=str(e))

    try:
        await get_llm_client()
        logger.info("LLM client initialized")
    except Exception as e:
        logger.warning("Failed to initialize LLM client", error=str(e))

    yield

    logger.info("Shutting down Cyclica API")
    await close_supabase_client()
    await close_llm_client()


# Create FastAPI app
app = FastAPI(
    title="Cyclica Cultural Fit Assessment API",
    description="Cultural fit questionnaire with LLM scoring and retrieval-augmented chat",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Trace ID middleware for request correlation
@app.middleware("http")
async def trace_id_middleware(request: Request, call_next):
    """Add trace ID to every request for log correlation."""
    trace_id = request.headers.get("X-Trace-ID", generate_trace_id())
    set_trace_id(trace_id)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trace_id=trace_id)

    response = await call_next(request)
    response.headers["X-Trace-ID"] = trace_id
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP errors as ``{"error": ...}``."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def _internal_error(path: str, exc: Exception) -> JSONResponse:
    """Log an unexpected failure and return a generic 500 with the error detail."""
    logger.error(
        "Unhandled error",
        path=path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for routes without their own boundary."""
    return _internal_error(request.url.path, exc)


# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add Prometheus metrics
Instrumentator().instrument(app).expose(app)


async def _get_ledger() -> SessionLedger:
    return SessionLedger(await get_supabase_client())


# =============================================================================
# Status Endpoints
# =============================================================================


@app.get("/", response_model=StatusResponse)
async def root() -> StatusResponse:
    """Health check listing the supported endpoints."""
    return StatusResponse(
        message="Cyclica Cultural Fit Assessment API",
        endpoints=ENDPOINTS,
    )


@app.get("/get-questions", response_model=QuestionsResponse)
async def get_questions() -> QuestionsResponse:
    """Questionnaire items in order, without their scoring rubric."""
    return QuestionsResponse(
        questions=[QuestionSummary(id=q.id, question=q.question) for q in QUESTIONS]
    )


# =============================================================================
# Session Endpoints
# =============================================================================


@app.post("/start-session", response_model=StartSessionResponse, responses=START_SESSION_ERRORS)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def start_session(request: Request) -> StartSessionResponse:
    """Create a session and return the first question."""
    try:
        ledger = await _get_ledger()
        return await start_questionnaire_session(ledger)
    except Exception as e:
        logger.error("Error creating session", error=str(e))
        raise HTTPException(status_code=500, detail="Failed to create session") from e


@app.post(
    "/chat",
    response_model=NextQuestionResponse | QuestionnaireCompleteResponse | ChatReplyResponse,
    responses=CHAT_ERRORS,
)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def chat(request: Request, chat_request: ChatRequest):
    """
    Questionnaire answers and free chat messages.

    - **session_id**: Session from /start-session
    - **message**: Answer or chat message
    - **question_id**: Required in the questionnaire phase
    - **phase**: `questionnaire` or `free_chat`
    """
    if not chat_request.session_id or not chat_request.message:
        raise HTTPException(status_code=400, detail="session_id and message are required")

    logger.info(
        "Chat request received",
        session_id=chat_request.session_id,
        phase=chat_request.phase,
        question_id=chat_request.question_id,
        message_length=len(chat_request.message),
    )

    try:
        if chat_request.phase == PHASE_QUESTIONNAIRE:
            return await _answer_question(chat_request)
        if chat_request.phase == PHASE_FREE_CHAT:
            return await _free_chat(chat_request)
    except HTTPException:
        raise
    except Exception as e:
        return _internal_error(request.url.path, e)

    raise HTTPException(
        status_code=400,
        detail="Invalid phase. Use 'questionnaire' or 'free_chat'",
    )


async def _answer_question(
    chat_request: ChatRequest,
) -> NextQuestionResponse | QuestionnaireCompleteResponse:
    """Questionnaire phase: score the answer and advance."""
    if chat_request.question_id is None:
        raise HTTPException(
            status_code=400,
            detail="question_id is required for the questionnaire phase",
        )

    ledger = await _get_ledger()
    llm_client = await get_llm_client()
    try:
        return await submit_answer(
            ledger,
            llm_client,
            chat_request.session_id,
            chat_request.question_id,
            chat_request.message,
        )
    except UnknownQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except QuestionnaireError as e:
        logger.warning(
            "Questionnaire answer rejected",
            session_id=chat_request.session_id,
            question_id=chat_request.question_id,
            reason=str(e),
        )
        raise HTTPException(status_code=409, detail=str(e)) from e


async def _free_chat(chat_request: ChatRequest) -> ChatReplyResponse:
    """Free chat phase: retrieval-augmented reply."""
    store = await get_supabase_client()
    llm_client = await get_llm_client()
    message = await reply(
        SessionLedger(store),
        store,
        llm_client,
        chat_request.session_id,
        chat_request.message,
    )
    return ChatReplyResponse(message=message)


# =============================================================================
# Entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cyclica_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
