from __future__ import annotations

import datetime as _dt
import os
import time
import uuid
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .conversation import ConversationState
from .errors import ActionInProgress
from .logging_config import get_logger
from .models import (
    AskRequest,
    AskResponse,
    ChatMessage,
    ConfigStatus,
    ConversationSnapshot,
    LoadSheetRequest,
    SessionResponse,
)
from .service import SheetChatService

logger = get_logger(__name__)

# * Lazy initialization - built on first request
_service: Optional[SheetChatService] = None

app = FastAPI(title="Sheet Chat API")

default_allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

extra_origins = os.environ.get("CORS_ALLOWED_ORIGINS")
if extra_origins:
    default_allowed_origins.extend(
        origin.strip() for origin in extra_origins.split(",") if origin.strip()
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=default_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_service() -> SheetChatService:
    """Build the chat service on first use."""
    global _service
    if _service is None:
        _service = SheetChatService()
    return _service


def _require_session(session_id: str, service: SheetChatService) -> ConversationState:
    state = service.get_session(session_id)
    if state is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return state


# * ============================================================================
# * Request/Response Logging Middleware
# * ============================================================================

@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """
    Log every request with a short request_id and its duration.
    """
    request_id = str(uuid.uuid4())[:8]
    start_time = time.time()
    method = request.method
    path = request.url.path

    logger.info(
        f"→ {method} {path}",
        extra={"request_id": request_id, "method": method, "endpoint": path},
    )

    try:
        response = await call_next(request)
    except Exception as exc:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"✗ {method} {path} - Unhandled exception: {exc}",
            exc_info=True,
            extra={
                "request_id": request_id,
                "method": method,
                "endpoint": path,
                "duration_ms": duration_ms,
            },
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "request_id": request_id},
        )

    duration_ms = int((time.time() - start_time) * 1000)
    status_code = response.status_code
    log = logger.warning if status_code >= 400 else logger.info
    log(
        f"← {method} {path} {status_code}",
        extra={
            "request_id": request_id,
            "method": method,
            "endpoint": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(ActionInProgress)
async def action_in_progress_handler(request: Request, exc: ActionInProgress):
    return JSONResponse(status_code=409, content={"detail": exc.user_message, "action": exc.action})


# * ============================================================================
# * Root & Health Check Endpoints
# * ============================================================================

@app.get("/")
async def root():
    """Root endpoint - returns API info."""
    return {
        "name": "Sheet Chat API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "config": "GET /config",
            "create_session": "POST /sessions",
            "session": "GET /sessions/{session_id}",
            "load_sheet": "POST /sessions/{session_id}/sheet",
            "clear_sheet": "DELETE /sessions/{session_id}/sheet",
            "ask": "POST /sessions/{session_id}/messages",
            "messages": "GET /sessions/{session_id}/messages",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat()}


@app.get("/config", response_model=ConfigStatus)
def config_status(service: SheetChatService = Depends(get_service)) -> ConfigStatus:
    """Which features are available, with a banner for each missing credential."""
    return ConfigStatus(
        sheets_enabled=service.config.sheets_enabled,
        analyzer_enabled=service.analyzer.configured,
        model=service.config.gemini_model,
        banners=service.config.banners(),
    )


# * ============================================================================
# * Session Endpoints
# * ============================================================================

@app.post("/sessions", response_model=SessionResponse, status_code=201)
def create_session(service: SheetChatService = Depends(get_service)) -> SessionResponse:
    state = service.create_session()
    logger.info("Session created", extra={"session_id": state.session_id})
    return SessionResponse(sessionId=state.session_id, conversation=state.snapshot())


@app.get("/sessions/{session_id}", response_model=ConversationSnapshot)
def get_session(session_id: str, service: SheetChatService = Depends(get_service)) -> ConversationSnapshot:
    return _require_session(session_id, service).snapshot()


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str, service: SheetChatService = Depends(get_service)) -> None:
    if not service.store.drop(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")


# * ============================================================================
# * Sheet Endpoints
# * ============================================================================

@app.post("/sessions/{session_id}/sheet", response_model=ConversationSnapshot)
def load_sheet(
    session_id: str,
    request: LoadSheetRequest,
    service: SheetChatService = Depends(get_service),
) -> ConversationSnapshot:
    """
    Load a sheet into the session. A failed load is not an HTTP error: the
    snapshot's load state carries the message for the status region.
    """
    state = _require_session(session_id, service)
    state.load_sheet(request.url, request.range_spec)
    return state.snapshot()


@app.delete("/sessions/{session_id}/sheet", response_model=ConversationSnapshot)
def clear_sheet(session_id: str, service: SheetChatService = Depends(get_service)) -> ConversationSnapshot:
    state = _require_session(session_id, service)
    state.clear_sheet()
    return state.snapshot()


# * ============================================================================
# * Chat Endpoints
# * ============================================================================

@app.post("/sessions/{session_id}/messages", response_model=AskResponse)
def ask(
    session_id: str,
    request: AskRequest,
    service: SheetChatService = Depends(get_service),
) -> AskResponse:
    state = _require_session(session_id, service)
    appended = state.ask(request.question)
    logger.info(
        f"Question answered with {len(appended)} new message(s)",
        extra={"session_id": session_id},
    )
    return AskResponse(messages=appended, conversation=state.snapshot())


@app.get("/sessions/{session_id}/messages", response_model=List[ChatMessage])
def list_messages(session_id: str, service: SheetChatService = Depends(get_service)) -> List[ChatMessage]:
    return _require_session(session_id, service).messages
