"""
Admin endpoints: timer controls, game modifiers, session reset and teams
"""
import logging

from fastapi import APIRouter, HTTPException

from crazy88 import state
from crazy88.api.deps import active_session_id, http_error
from crazy88.core.session import reset_session
from crazy88.errors import ValidationError
from crazy88.services import team_registry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _clock_control(action):
    try:
        clock = action(active_session_id())
    except ValidationError as e:
        raise http_error(e)
    return state.CLOCK.view(clock.session_id).model_dump()


# ==================== TIMER ====================

@router.post("/clock/duration")
def set_duration(request: dict):
    """
    Set the game duration (only while the timer is not running)

    Request:
        {"minutes": 90}  or  {"seconds": 5400}
    """
    if "seconds" in request:
        seconds = request.get("seconds")
    elif "minutes" in request:
        minutes = request.get("minutes")
        seconds = minutes * 60 if isinstance(minutes, (int, float)) else None
    else:
        seconds = None

    if not isinstance(seconds, (int, float)):
        raise HTTPException(status_code=400, detail="minutes or seconds required")

    return _clock_control(lambda sid: state.CLOCK.set_duration(sid, int(seconds)))


@router.post("/clock/start")
def start_timer():
    return _clock_control(state.CLOCK.start)


@router.post("/clock/pause")
def pause_timer():
    return _clock_control(state.CLOCK.pause)


@router.post("/clock/resume")
def resume_timer():
    return _clock_control(state.CLOCK.resume)


@router.post("/clock/stop")
def stop_timer():
    """Hard reset of the timer"""
    return _clock_control(state.CLOCK.stop)


@router.post("/double-points")
def toggle_double_points():
    return _clock_control(state.CLOCK.toggle_double_points)


@router.post("/announcement")
def set_announcement(request: dict):
    """
    Request:
        {"text": "Dinner at 18:00"}   (empty text clears it)
    """
    text = request.get("text")
    view = _clock_control(lambda sid: state.CLOCK.set_announcement(sid, text))
    logger.info(f"📢 Announcement: {view['announcement'] or '(cleared)'}")
    return view


# ==================== SESSION ====================

@router.post("/reset")
def reset_game(request: dict):
    """
    Start a new game session

    Request:
        {"keep_teams": true}
    """
    keep_teams = bool(request.get("keep_teams", True))
    new_session_id = reset_session(state.get_db(), keep_teams=keep_teams)
    return {
        "success": True,
        "session_id": new_session_id,
        "keep_teams": keep_teams,
        "message": "New game session started",
    }


# ==================== TEAMS ====================

@router.get("/teams")
def list_teams():
    teams = team_registry.list_teams(state.get_db(), active_session_id())
    return {"teams": [t.model_dump() for t in teams]}


@router.post("/teams")
def create_team(payload: dict):
    """
    Request:
        {"name": "De Snelle Jongens", "category": "MR"}
    """
    name = payload.get("name") or payload.get("team_name")
    category = payload.get("category")
    if not name or not category:
        raise HTTPException(status_code=400, detail="name and category are required")
    try:
        team = team_registry.register_team(state.get_db(), active_session_id(), name, category)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return team.model_dump()


@router.delete("/teams/{team_id}")
def delete_team(team_id: str):
    if not team_registry.delete_team(state.get_db(), team_id):
        raise HTTPException(status_code=404, detail=f"Team {team_id} not found")
    return {"success": True, "team_id": team_id}
