"""
Review endpoints: approve, reject, flag, bulk actions and score resync
"""
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from crazy88 import state
from crazy88.api.deps import active_session_id, completion_response
from crazy88.core.scores import list_logbook
from crazy88.core.submissions import list_submissions
from crazy88.models import ReviewKey, SubmissionState, TeamCategory


router = APIRouter(prefix="/review", tags=["review"])


class ReviewRequest(BaseModel):
    team_id: str
    assignment_number: int
    custom_points: Optional[int] = None
    notes: Optional[str] = None


class BulkReviewRequest(BaseModel):
    action: str                      # "approve" | "reject"
    items: List[ReviewKey]
    notes: Optional[str] = None


@router.get("/submissions")
def submissions(status: Optional[SubmissionState] = None):
    """Submissions of the active session, oldest first"""
    items = list_submissions(state.get_db(), active_session_id(), status)
    return {"submissions": [s.model_dump() for s in items]}


@router.get("/logbook")
def logbook(category: Optional[TeamCategory] = None):
    """Every awarded score of the active session, newest first"""
    rows = list_logbook(state.get_db(), active_session_id(), category)
    return {"count": len(rows), "entries": [r.model_dump() for r in rows]}


@router.post("/approve")
def approve(body: ReviewRequest):
    result = state.WRITERS.approve_via_review(
        active_session_id(), body.team_id, body.assignment_number,
        custom_points=body.custom_points, notes=body.notes,
    )
    return completion_response(result)


@router.post("/reject")
def reject(body: ReviewRequest):
    result = state.WRITERS.reject_assignment(
        active_session_id(), body.team_id, body.assignment_number, notes=body.notes,
    )
    return completion_response(result)


@router.post("/flag")
def flag(body: ReviewRequest):
    result = state.WRITERS.flag_for_review(
        active_session_id(), body.team_id, body.assignment_number, notes=body.notes,
    )
    return completion_response(result)


@router.post("/bulk")
def bulk(body: BulkReviewRequest):
    """
    Request:
        {"action": "approve", "items": [{"team_id": "...", "assignment_number": 12}]}
    """
    if body.action not in ("approve", "reject"):
        raise HTTPException(status_code=400, detail="action must be 'approve' or 'reject'")

    results = state.WRITERS.bulk_review(
        active_session_id(), body.items, approve=body.action == "approve", notes=body.notes,
    )
    succeeded = sum(1 for r in results if r.success)
    return {
        "success": succeeded == len(results),
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
        "results": [r.model_dump() for r in results],
    }


@router.post("/resync")
def resync():
    """Repair the score ledger from every approved status record"""
    report = state.WRITERS.resync_approved(active_session_id())
    return {"success": report.failed == 0, **report.model_dump()}
