"""
Team-facing read endpoints: statuses, progress and assignment details
"""
from fastapi import APIRouter, HTTPException

from crazy88 import catalog, state
from crazy88.api.deps import active_session_id
from crazy88.core import ledger
from crazy88.services.team_registry import get_team_in_session


router = APIRouter(prefix="/teams", tags=["team"])


def _require_team(team_id: str, session_id: str):
    team = get_team_in_session(state.get_db(), team_id, session_id)
    if team is None:
        raise HTTPException(status_code=404, detail=f"Team {team_id} not found")
    return team


@router.get("/{team_id}/statuses")
def team_statuses(team_id: str):
    """Every status record of the team in the active session"""
    session_id = active_session_id()
    _require_team(team_id, session_id)
    records = ledger.get_team_statuses(state.get_db(), team_id, session_id)
    return {"team_id": team_id, "statuses": [r.model_dump() for r in records]}


@router.get("/{team_id}/progress")
def team_progress(team_id: str):
    session_id = active_session_id()
    team = _require_team(team_id, session_id)
    summary = ledger.get_progress_summary(
        state.get_db(), team_id, session_id,
        total_assignments=state.SETTINGS.scoring.total_assignments,
    )
    return {"team": team.model_dump(), **summary.model_dump()}


@router.get("/{team_id}/assignments/{assignment_number}")
def assignment_status(team_id: str, assignment_number: int):
    """Assignment details with the team's status, submission and score"""
    session_id = active_session_id()
    _require_team(team_id, session_id)
    assignment = catalog.get_assignment(state.get_db(), assignment_number)
    if assignment is None:
        raise HTTPException(status_code=404, detail=f"Assignment {assignment_number} not found")

    view = ledger.get_status_view(state.get_db(), team_id, assignment_number, session_id)
    return {"assignment": assignment.model_dump(), **view.model_dump()}
