"""
Jury endpoints: direct awards and creativity bonus
"""
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from crazy88 import state
from crazy88.api.deps import active_session_id, completion_response
from crazy88.models import CompletionMethod


router = APIRouter(prefix="/jury", tags=["jury"])


class AwardRequest(BaseModel):
    team_id: str
    assignment_number: int
    points: Optional[int] = None     # default: base points, doubled while double points is on
    notes: Optional[str] = None


@router.post("/award")
def award(body: AwardRequest):
    """Jury marks an assignment completed without a submission"""
    result = state.WRITERS.award_via_jury(
        active_session_id(), body.team_id, body.assignment_number,
        method=CompletionMethod.jury, points=body.points, notes=body.notes,
    )
    return completion_response(result)


@router.post("/creativity")
def creativity(body: AwardRequest):
    """Fixed creativity bonus; refused for assignments that already have points"""
    result = state.WRITERS.award_via_jury(
        active_session_id(), body.team_id, body.assignment_number,
        method=CompletionMethod.creativity, notes=body.notes,
    )
    return completion_response(result)


class RevokeRequest(BaseModel):
    team_id: str
    assignment_number: int
    notes: Optional[str] = None


@router.post("/revoke")
def revoke(body: RevokeRequest):
    """Withdraw a completion: the score is removed and the assignment starts over"""
    result = state.WRITERS.revoke_completion(
        active_session_id(), body.team_id, body.assignment_number, notes=body.notes,
    )
    return completion_response(result)
