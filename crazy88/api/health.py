"""
Health check and clock status endpoints
"""
from fastapi import APIRouter

from crazy88 import state
from crazy88.api.deps import active_session_id


router = APIRouter(tags=["health"])


@router.get("/")
def health_check():
    """Health check endpoint"""
    return {
        "status": "ok",
        "message": "Crazy 88 Game Server",
        "version": "1.0.0",
        "session_id": active_session_id(),
    }


@router.get("/clock")
def get_clock():
    """Clock record with derived phase and remaining time"""
    return state.CLOCK.view(active_session_id()).model_dump()
