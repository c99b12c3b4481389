"""HTTP routes for the tutor chat.

Exposes:

- POST   /chat-api                           -> one chat turn
- GET    /chat-api/session/{session_id}/stats -> session counters
- DELETE /chat-api/session/{session_id}       -> acknowledged; sessions expire on their own
"""

import logging
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from exceptions.exceptions import SessionNotFoundError

from ..agents.chat_orchestrator import ChatOrchestrator
from ..models.api_models import (
    ChatErrorResponse,
    ChatRequest,
    ChatResponse,
    SessionCleanupResponse,
    SessionStatsResponse,
)
from ..models.session_models import SessionStats
from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)

# Router for all chat endpoints
router = APIRouter()


# Module-level references, to be initialized by the server.
_SESSION_STORE: Optional[SessionStore] = None
_ORCHESTRATOR: Optional[ChatOrchestrator] = None


def init_routes(session_store: SessionStore, orchestrator: ChatOrchestrator) -> None:
    """Initialize module-level references used by the route handlers."""
    global _SESSION_STORE, _ORCHESTRATOR
    _SESSION_STORE = session_store
    _ORCHESTRATOR = orchestrator


def _require_session_store() -> SessionStore:
    if _SESSION_STORE is None:
        raise HTTPException(
            status_code=500,
            detail="SessionStore is not configured on the server.",
        )
    return _SESSION_STORE


def _require_orchestrator() -> ChatOrchestrator:
    if _ORCHESTRATOR is None:
        raise HTTPException(
            status_code=500,
            detail="ChatOrchestrator is not configured on the server.",
        )
    return _ORCHESTRATOR


def _parse_session_id(session_id: str) -> Optional[str]:
    try:
        return str(UUID(session_id))
    except ValueError:
        return None


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": True, "message": message})


def get_session_stats(session_store: SessionStore, session_id: str) -> SessionStats:
    stats = session_store.stats(session_id)
    if stats is None:
        raise SessionNotFoundError(session_id)
    return stats


@router.post(
    "",
    response_model=ChatResponse,
    responses={500: {"model": ChatErrorResponse}},
)
async def chat(request: ChatRequest) -> Union[ChatResponse, JSONResponse]:
    """Handle one learner message.

    Delegates to ChatOrchestrator. A structured failure (model error or
    unexpected exception) becomes a 500 carrying the apology text and the
    session id, so the learner can retry in the same session.
    """
    orchestrator = _require_orchestrator()

    logger.info(
        "[CHAT] Request topic=%r context=%s session_id=%s message_length=%d",
        request.topic,
        request.context.value,
        request.session_id,
        len(request.message),
    )

    result = await orchestrator.handle_chat(request)

    if isinstance(result, ChatErrorResponse):
        return JSONResponse(
            status_code=500,
            content=result.model_dump(by_alias=True, exclude_none=True),
        )

    logger.info(
        "[CHAT] Response session_id=%s reply_length=%d response_time=%dms",
        result.session_id,
        len(result.reply),
        result.metadata.response_time,
    )
    return result


@router.get(
    "/session/{session_id}/stats",
    response_model=SessionStatsResponse,
    responses={400: {"description": "Invalid session ID"}, 404: {"description": "Session not found"}},
)
async def session_stats(session_id: str) -> Union[SessionStatsResponse, JSONResponse]:
    """Return counters for a live session (404 once it has expired)."""
    session_store = _require_session_store()
    normalized = _parse_session_id(session_id)
    if normalized is None:
        return _error_response(400, "Invalid session ID format")

    try:
        stats = get_session_stats(session_store, normalized)
    except SessionNotFoundError as e:
        logger.warning("[CHAT] HTTP 404 for stats query: %s", e)
        return _error_response(404, "Session not found")

    return SessionStatsResponse(session_id=normalized, stats=stats)


@router.delete("/session/{session_id}", response_model=SessionCleanupResponse)
async def session_cleanup(session_id: str) -> SessionCleanupResponse:
    """
    Acknowledge a cleanup request. Sessions are not deleted individually;
    they expire after the configured TTL.
    """
    _require_session_store()
    return SessionCleanupResponse(message="Session cleanup requested", session_id=session_id)
