"""FastAPI REST API for the Lexa research assistant.

The rendering surface talks to a conversation through three calls: read the
turn list (with the busy flag and last error), submit a message, and accept
the pending search proposal.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from ..core.leychile import LeyChileClient
from ..core.logbus import LogBuffer, install_log_channel, log_channel
from ..core.models import GeminiClient
from ..research.engine import ResearchConversation
from .config import ServiceConfig, get_config
from .models import (
    ErrorResponse,
    HealthResponse,
    LogEventView,
    MessageRequest,
    SessionView,
)
from .sessions import SessionStore

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

router = APIRouter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    config: ServiceConfig = app.state.config

    errors = config.validate()
    if errors and not config.debug:
        for error in errors:
            logger.error(f"Config error: {error}")

    logger.info(f"Lexa service v{VERSION} starting...")
    logger.info(f"LeyChile backend: {config.leychile_base_url}")

    cleanup_task = asyncio.create_task(_cleanup_loop(app))

    yield

    cleanup_task.cancel()
    store: Optional[SessionStore] = app.state.store
    if store is not None:
        await store.backend.close()
    logger.info("Shutting down...")


async def _cleanup_loop(app: FastAPI):
    """Background task that drops idle conversations."""
    while True:
        await asyncio.sleep(60)  # Check every minute
        store: Optional[SessionStore] = app.state.store
        if store is None:
            continue
        try:
            store.expire(app.state.config.session_ttl_seconds)
        except Exception as e:
            logger.error(f"Cleanup error: {e}")


def create_app(
    config: Optional[ServiceConfig] = None,
    client: Optional[GeminiClient] = None,
    backend: Optional[LeyChileClient] = None,
) -> FastAPI:
    """Create FastAPI application.

    client and backend are built from config on first use when not given.
    """
    config = config or get_config()

    app = FastAPI(
        title="Lexa API",
        description="Legal research conversations over the LeyChile repository",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_log_channel()
    app.state.config = config
    app.state.client = client
    app.state.backend = backend
    app.state.store = None
    app.state.log_buffer = LogBuffer(log_channel, config.log_buffer_size)
    app.state.started_at = time.time()

    app.include_router(router)
    return app


def get_store(request: Request) -> SessionStore:
    """Build the session store lazily so the app starts without credentials."""
    app = request.app
    if app.state.store is None:
        config: ServiceConfig = app.state.config
        try:
            client = app.state.client or GeminiClient(api_key=config.gemini_api_key or None)
        except ValueError as e:
            raise HTTPException(status_code=503, detail=str(e))
        backend = app.state.backend or LeyChileClient(
            base_url=config.leychile_base_url,
            max_results=config.max_results,
            timeout=config.backend_timeout_seconds,
        )
        app.state.store = SessionStore(client, backend, config.engine_config())
    return app.state.store


def get_conversation(session_id: str, store: SessionStore = Depends(get_store)) -> ResearchConversation:
    conversation = store.get(session_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return conversation


# === ENDPOINTS ===


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request):
    """Health check endpoint."""
    config: ServiceConfig = request.app.state.config
    store: Optional[SessionStore] = request.app.state.store
    return HealthResponse(
        status="healthy",
        version=VERSION,
        gemini_configured=bool(config.gemini_api_key or request.app.state.client),
        active_sessions=len(store) if store is not None else 0,
        uptime_seconds=round(time.time() - request.app.state.started_at, 2),
    )


@router.post("/sessions", response_model=SessionView, status_code=201, tags=["Conversation"])
async def create_session(store: SessionStore = Depends(get_store)):
    """Start a new conversation."""
    conversation = store.create()
    return SessionView.from_session(conversation.session)


@router.get("/sessions/{session_id}", response_model=SessionView, tags=["Conversation"])
async def get_session(conversation: ResearchConversation = Depends(get_conversation)):
    """Current turns, busy flag and last error."""
    return SessionView.from_session(conversation.session)


@router.post(
    "/sessions/{session_id}/messages",
    response_model=SessionView,
    responses={409: {"model": ErrorResponse}},
    tags=["Conversation"],
)
async def submit_message(
    body: MessageRequest,
    conversation: ResearchConversation = Depends(get_conversation),
):
    """Submit a user message and run the turn to completion."""
    if conversation.busy:
        raise HTTPException(status_code=409, detail="A turn is already in progress")
    try:
        await conversation.submit_message(body.content)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return SessionView.from_session(conversation.session)


@router.post(
    "/sessions/{session_id}/confirm",
    response_model=SessionView,
    responses={409: {"model": ErrorResponse}},
    tags=["Conversation"],
)
async def confirm_plan(conversation: ResearchConversation = Depends(get_conversation)):
    """Accept the search proposal awaiting confirmation."""
    if conversation.busy:
        raise HTTPException(status_code=409, detail="A turn is already in progress")
    try:
        await conversation.accept_pending_plan()
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return SessionView.from_session(conversation.session)


@router.delete("/sessions/{session_id}", status_code=204, tags=["Conversation"])
async def delete_session(session_id: str, store: SessionStore = Depends(get_store)):
    """Forget a conversation."""
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")


@router.get("/logs", response_model=list[LogEventView], tags=["System"])
async def recent_logs(request: Request, limit: int = Query(100, ge=1, le=1000)):
    """Most recent structured log events, oldest first."""
    buffer: LogBuffer = request.app.state.log_buffer
    return [LogEventView(**event.to_dict()) for event in buffer.recent(limit)]


# Default app instance for uvicorn
app = create_app()
