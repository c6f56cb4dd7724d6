"""
Submission records - evidence uploaded by teams

One row per (team, assignment, session); a resubmission overwrites the row in place.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from crazy88.core.ledger import submission_info
from crazy88.db.database import Database, upsert
from crazy88.db.tables import SubmissionRecord
from crazy88.errors import TransientStoreError
from crazy88.models import SubmissionInfo, SubmissionState
from crazy88.utils import new_id, utcnow


logger = logging.getLogger(__name__)

SUBMISSION_KEY = ("team_id", "assignment_number", "session_id")


def get_submission(db: Database, team_id: str, assignment_number: int,
                   session_id: str) -> Optional[SubmissionInfo]:
    with db.session() as s:
        row = s.execute(
            select(SubmissionRecord).where(
                SubmissionRecord.team_id == team_id,
                SubmissionRecord.assignment_number == assignment_number,
                SubmissionRecord.session_id == session_id,
            )
        ).scalar_one_or_none()
        return submission_info(row) if row else None


def list_submissions(db: Database, session_id: str,
                     status: Optional[SubmissionState] = None) -> List[SubmissionInfo]:
    with db.session() as s:
        stmt = select(SubmissionRecord).where(SubmissionRecord.session_id == session_id)
        if status is not None:
            stmt = stmt.where(SubmissionRecord.status == SubmissionState(status).value)
        stmt = stmt.order_by(SubmissionRecord.submitted_at)
        return [submission_info(row) for row in s.execute(stmt).scalars().all()]


def record_submission(db: Database, team_id: str, assignment_number: int, session_id: str,
                      evidence_url: str, evidence_type: str, evidence_size: int,
                      content_type: Optional[str] = None) -> str:
    """
    Create or overwrite the pending submission for a key

    The row id is kept on resubmission so status records keep pointing at it.

    Returns:
        Submission id

    Raises:
        TransientStoreError: If the write failed
    """
    existing = get_submission(db, team_id, assignment_number, session_id)
    values = {
        "id": existing.id if existing else new_id(),
        "team_id": team_id,
        "assignment_number": assignment_number,
        "session_id": session_id,
        "status": SubmissionState.pending.value,
        "points_awarded": 0,
        "evidence_url": evidence_url,
        "evidence_type": evidence_type,
        "evidence_size": evidence_size,
        "content_type": content_type,
        "submitted_at": utcnow(),
        "reviewed_at": None,
        "jury_notes": None,
    }
    try:
        with db.session() as s:
            return upsert(s, SubmissionRecord, values, SUBMISSION_KEY)
    except SQLAlchemyError as e:
        raise TransientStoreError(
            f"Submission write failed for team={team_id} #{assignment_number}: {e}"
        ) from e


def mark_reviewed(db: Database, submission_id: str, status: SubmissionState,
                  points: int = 0, notes: Optional[str] = None) -> bool:
    """Record the review outcome on a submission; failures are logged, not raised"""
    try:
        with db.session() as s:
            row = s.get(SubmissionRecord, submission_id)
            if row is None:
                return False
            row.status = SubmissionState(status).value
            row.points_awarded = points if status == SubmissionState.approved else 0
            row.reviewed_at = utcnow()
            if notes is not None:
                row.jury_notes = notes
    except SQLAlchemyError as e:
        logger.error(f"❌ Submission review write failed for {submission_id}: {e}")
        return False
    return True
