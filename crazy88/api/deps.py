"""
Shared helpers for API routers
"""
from fastapi import HTTPException

from crazy88 import state
from crazy88.core.session import get_active_session
from crazy88.errors import Crazy88Error
from crazy88.models import CompletionResult


# Failure code → HTTP status; anything unlisted is a 400
STATUS_CODES = {
    "already_completed": 409,
    "phase_closed": 409,
    "timer_running": 409,
    "timer_not_running": 409,
    "not_completed": 409,
    "unknown_team": 404,
    "unknown_assignment": 404,
    "unknown_session": 404,
    "no_submission": 404,
    "file_too_large": 413,
    "invalid_media_type": 415,
    "store_error": 503,
    "upload_failed": 502,
}


def active_session_id() -> str:
    """Request-scoped session id: the currently active game session"""
    return get_active_session(state.get_db())


def http_error(err: Crazy88Error) -> HTTPException:
    return HTTPException(
        status_code=STATUS_CODES.get(err.code, 400),
        detail={"error": err.code, "message": err.message},
    )


def completion_response(result: CompletionResult) -> dict:
    """Return a successful result, or raise the HTTP error matching its failure"""
    if not result.success:
        raise HTTPException(
            status_code=STATUS_CODES.get(result.error, 400),
            detail={"error": result.error, "message": result.message},
        )
    return result.model_dump()
