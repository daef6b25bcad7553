"""
Core API backend for AuraSpend.

This module exposes the conversation orchestrator through a RESTful API used by front-ends.
It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **GET /tools** - the tool catalog the model can use.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions** - list all active sessions.
- **GET /sessions/{id}/messages** - current transcript and loop state.
- **POST /sessions/{id}/messages** - send a user message: {"text": "..."}
- **POST /sessions/{id}/tool-calls/{message_id}/confirm** - run a pending tool call.
- **POST /sessions/{id}/tool-calls/{message_id}/cancel** - cancel a pending tool call.
- **DELETE /sessions/{id}/messages** - clear the history (and its persisted copy).
"""

import asyncio
import logging
import uuid
from typing import (
    Dict,
    List,
)

from fastapi import (
    FastAPI,
    HTTPException,
)
from fastapi.middleware.cors import CORSMiddleware

from auraspend.agent.chat_client import load_chat_client
from auraspend.agent.orchestrator import (
    ChatOrchestrator,
    ConversationState,
)
from auraspend.agent.rate_limit import RateLimiter
from auraspend.api.models import (
    ConversationResponse,
    MessageRequest,
    SessionResponse,
    ToolInfo,
)
from auraspend.common import (
    AnsiColors,
    colored_print,
)
from auraspend.config import settings
from auraspend.finance.backend import InMemoryFinanceBackend
from auraspend.memory.memory_store import ConversationStore
from auraspend.tools.finance_tools import build_finance_registry

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


class Session:
    """An orchestrator plus the rate limiter guarding its outgoing messages."""

    def __init__(self, session_id: str, orchestrator: ChatOrchestrator):
        self.session_id = session_id
        self.orchestrator = orchestrator
        self.limiter = RateLimiter(
            window=settings.RATE_LIMIT_WINDOW,
            max_calls=settings.RATE_LIMIT_MAX_CALLS,
            cooldown=settings.RATE_LIMIT_COOLDOWN,
        )
        self.restored = False
        # Held while the persisted transcript loads; no request sees a half-restored session.
        self.restore_lock = asyncio.Lock()


# Session storage (in-memory; each transcript is persisted by its own store)
sessions: Dict[str, Session] = {}

# One finance backend and tool catalog shared by every session
finance_backend = InMemoryFinanceBackend()
registry = build_finance_registry(finance_backend)

app = FastAPI(title="AuraSpend API", version="0.1.0", description="AuraSpend assistant API")

# Allow the mobile / web front-ends to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def store_name(session_id: str) -> str:
    """The default session uses the plain store name; others get a suffix."""
    if session_id == DEFAULT_SESSION:
        return settings.CHAT_STORE_NAME
    return f"{settings.CHAT_STORE_NAME}-{session_id}"


def create_session(session_id: str | None = None) -> Session:
    """Create a session with a fresh orchestrator."""
    session_id = session_id or str(uuid.uuid4())
    orchestrator = ChatOrchestrator(
        registry,
        load_chat_client(),
        ConversationStore.named(store_name(session_id)),
    )
    session = Session(session_id, orchestrator)
    sessions[session_id] = session
    logger.info("Created session %s", session_id)
    return session


async def get_session(session_id: str) -> Session:
    """Return the session, restoring its persisted transcript on first use."""
    session = sessions.get(session_id)
    if session is None:
        if session_id != DEFAULT_SESSION:
            raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
        session = create_session(DEFAULT_SESSION)
    if not session.restored:
        async with session.restore_lock:
            if not session.restored:
                await session.orchestrator.restore()
                session.restored = True
    return session


def conversation_response(session: Session) -> ConversationResponse:
    orchestrator = session.orchestrator
    return ConversationResponse(
        session_id=session.session_id,
        state=orchestrator.state,
        messages=list(orchestrator.messages),
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.get("/tools", response_model=List[ToolInfo], summary="List available tools")
async def list_tools() -> List[ToolInfo]:
    """Return the tool catalog in prompt order."""
    return [
        ToolInfo(name=t.name, description=t.description, parameters=t.parameter_schema())
        for t in registry.list()
    ]


@app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
async def new_session() -> SessionResponse:
    """Create a new conversation session."""
    session = create_session()
    return SessionResponse(session_id=session.session_id)


@app.get("/sessions", response_model=List[str], summary="List active sessions")
async def list_sessions() -> List[str]:
    """List all active session IDs."""
    return list(sessions.keys())


@app.get(
    "/sessions/{session_id}/messages",
    response_model=ConversationResponse,
    summary="Get the transcript",
)
async def get_messages(session_id: str) -> ConversationResponse:
    session = await get_session(session_id)
    return conversation_response(session)


@app.post(
    "/sessions/{session_id}/messages",
    response_model=ConversationResponse,
    summary="Send a user message",
)
async def post_message(session_id: str, req: MessageRequest) -> ConversationResponse:
    """Send a message and wait for the model's reply (plain text or staged tool calls)."""
    session = await get_session(session_id)
    if not req.text.strip():
        raise HTTPException(status_code=422, detail="Message is empty")
    if session.orchestrator.state is ConversationState.AWAITING_MODEL_REPLY:
        raise HTTPException(status_code=409, detail="A reply is already in progress")
    if not session.limiter.try_call():
        raise HTTPException(status_code=429, detail="Too many messages, slow down")
    if not await session.orchestrator.submit_user_message(req.text):
        raise HTTPException(status_code=409, detail="A reply is already in progress")
    return conversation_response(session)


@app.post(
    "/sessions/{session_id}/tool-calls/{message_id}/confirm",
    response_model=ConversationResponse,
    summary="Confirm a pending tool call",
)
async def confirm_tool_call(session_id: str, message_id: str) -> ConversationResponse:
    session = await get_session(session_id)
    if not await session.orchestrator.confirm(message_id):
        raise HTTPException(status_code=409, detail=f"Tool call '{message_id}' is not pending")
    return conversation_response(session)


@app.post(
    "/sessions/{session_id}/tool-calls/{message_id}/cancel",
    response_model=ConversationResponse,
    summary="Cancel a pending tool call",
)
async def cancel_tool_call(session_id: str, message_id: str) -> ConversationResponse:
    session = await get_session(session_id)
    if not await session.orchestrator.cancel(message_id):
        raise HTTPException(status_code=409, detail=f"Tool call '{message_id}' is not pending")
    return conversation_response(session)


@app.delete(
    "/sessions/{session_id}/messages",
    response_model=ConversationResponse,
    summary="Clear the history",
)
async def clear_messages(session_id: str) -> ConversationResponse:
    session = await get_session(session_id)
    await session.orchestrator.clear_history()
    session.limiter.reset()
    return conversation_response(session)


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting AuraSpend API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.debug("API settings: %s", settings.model_dump())

    colored_print(f"AuraSpend API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "auraspend.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m auraspend.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
