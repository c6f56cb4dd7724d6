"""
Assignment status ledger - single source of truth for completion

One record per (team_id, assignment_number, session_id). The only mutating primitive
is upsert_status(), which fully replaces the record for its key. Callers never
read-modify-write; they always pass the complete target state.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from crazy88.db.database import Database, upsert
from crazy88.db.tables import AssignmentStatusRecord, ScoreRecord, SubmissionRecord
from crazy88.models import (
    AssignmentState, AssignmentStatusView, CompletionMethod, COMPLETED_STATES,
    ProgressSummary, ScoreEntry, StatusRecord, SubmissionInfo
)
from crazy88.utils import as_utc, utcnow


logger = logging.getLogger(__name__)

STATUS_KEY = ("team_id", "assignment_number", "session_id")


def _record(row: AssignmentStatusRecord) -> StatusRecord:
    return StatusRecord(
        team_id=row.team_id,
        assignment_number=row.assignment_number,
        session_id=row.session_id,
        status=AssignmentState(row.status),
        points_awarded=row.points_awarded,
        completion_method=CompletionMethod(row.completion_method) if row.completion_method else None,
        submission_id=row.submission_id,
        score_id=row.score_id,
        notes=row.notes,
        completed_by=row.completed_by,
        completed_at=as_utc(row.completed_at),
        updated_at=as_utc(row.updated_at),
    )


def submission_info(row: SubmissionRecord) -> SubmissionInfo:
    return SubmissionInfo(
        id=row.id,
        team_id=row.team_id,
        assignment_number=row.assignment_number,
        session_id=row.session_id,
        status=row.status,
        points_awarded=row.points_awarded,
        evidence_url=row.evidence_url,
        evidence_type=row.evidence_type,
        evidence_size=row.evidence_size,
        content_type=row.content_type,
        submitted_at=as_utc(row.submitted_at),
        reviewed_at=as_utc(row.reviewed_at),
        jury_notes=row.jury_notes,
    )


def score_entry(row: ScoreRecord) -> ScoreEntry:
    return ScoreEntry(
        id=row.id,
        team_id=row.team_id,
        assignment_number=row.assignment_number,
        session_id=row.session_id,
        points=row.points,
        created_via=row.created_via,
        created_at=as_utc(row.created_at),
    )


def upsert_status(
    db: Database,
    team_id: str,
    assignment_number: int,
    session_id: str,
    status: AssignmentState,
    points: int,
    method: Optional[CompletionMethod],
    submission_id: Optional[str] = None,
    score_id: Optional[int] = None,
    notes: Optional[str] = None,
    completed_by: Optional[str] = None,
) -> bool:
    """
    Insert or fully replace the status record for a key

    completed_at is set to now when the new status is approved or completed_jury and
    cleared otherwise. Points are forced to 0 outside the completed states.

    Returns:
        True on success, False if the datastore rejected the write
    """
    status = AssignmentState(status)
    now = utcnow()
    completed = status in COMPLETED_STATES
    values = {
        "team_id": team_id,
        "assignment_number": assignment_number,
        "session_id": session_id,
        "status": status.value,
        "points_awarded": max(0, int(points)) if completed else 0,
        "completion_method": CompletionMethod(method).value if method else None,
        "submission_id": submission_id,
        "score_id": score_id,
        "notes": notes,
        "completed_by": completed_by or "system",
        "completed_at": now if completed else None,
        "updated_at": now,
    }

    try:
        with db.session() as s:
            upsert(s, AssignmentStatusRecord, values, STATUS_KEY)
    except SQLAlchemyError as e:
        logger.error(
            f"❌ Status write failed: team={team_id} #{assignment_number} "
            f"session={session_id} status={status.value}: {e}"
        )
        return False

    logger.info(
        f"✅ Status: team={team_id} #{assignment_number} → {status.value} "
        f"({values['points_awarded']} pts, {values['completion_method']})"
    )
    return True


def get_status(db: Database, team_id: str, assignment_number: int,
               session_id: str) -> Optional[StatusRecord]:
    """Status record for a key, or None (equivalent to not_started)"""
    with db.session() as s:
        row = s.execute(
            select(AssignmentStatusRecord).where(
                AssignmentStatusRecord.team_id == team_id,
                AssignmentStatusRecord.assignment_number == assignment_number,
                AssignmentStatusRecord.session_id == session_id,
            )
        ).scalar_one_or_none()
        return _record(row) if row else None


def get_state(db: Database, team_id: str, assignment_number: int,
              session_id: str) -> AssignmentState:
    record = get_status(db, team_id, assignment_number, session_id)
    return record.status if record else AssignmentState.not_started


def is_completed(db: Database, team_id: str, assignment_number: int, session_id: str) -> bool:
    return get_state(db, team_id, assignment_number, session_id) in COMPLETED_STATES


def get_team_statuses(db: Database, team_id: str, session_id: str) -> List[StatusRecord]:
    """All status records of a team, ordered by assignment number"""
    with db.session() as s:
        rows = s.execute(
            select(AssignmentStatusRecord)
            .where(
                AssignmentStatusRecord.team_id == team_id,
                AssignmentStatusRecord.session_id == session_id,
            )
            .order_by(AssignmentStatusRecord.assignment_number)
        ).scalars().all()
        return [_record(row) for row in rows]


def get_completed_numbers(db: Database, team_id: str, session_id: str) -> List[int]:
    return [
        r.assignment_number
        for r in get_team_statuses(db, team_id, session_id)
        if r.status in COMPLETED_STATES
    ]


def summarize(records: List[StatusRecord], total_assignments: int = 88) -> ProgressSummary:
    """Fold status records into counts and a point total"""
    summary = ProgressSummary(total_assignments=total_assignments)
    for r in records:
        if r.status in COMPLETED_STATES:
            summary.completed += 1
            summary.total_points += r.points_awarded
        elif r.status == AssignmentState.submitted:
            summary.submitted += 1
        elif r.status == AssignmentState.rejected:
            summary.rejected += 1
    return summary


def get_progress_summary(db: Database, team_id: str, session_id: str,
                         total_assignments: int = 88) -> ProgressSummary:
    return summarize(get_team_statuses(db, team_id, session_id), total_assignments)


def get_status_view(db: Database, team_id: str, assignment_number: int,
                    session_id: str) -> AssignmentStatusView:
    """Status of one assignment assembled with its submission and score"""
    with db.session() as s:
        key = dict(team_id=team_id, assignment_number=assignment_number, session_id=session_id)
        status = s.execute(select(AssignmentStatusRecord).filter_by(**key)).scalar_one_or_none()
        submission = s.execute(select(SubmissionRecord).filter_by(**key)).scalar_one_or_none()
        score = s.execute(select(ScoreRecord).filter_by(**key)).scalar_one_or_none()

        view = AssignmentStatusView(assignment_number=assignment_number)
        if status:
            view.status = AssignmentState(status.status)
            view.points = status.points_awarded
            view.completion_method = (
                CompletionMethod(status.completion_method) if status.completion_method else None
            )
        if submission:
            view.submission = submission_info(submission)
        if score:
            view.score = score_entry(score)
        return view


def list_status_records(db: Database, session_id: str,
                        status: Optional[AssignmentState] = None) -> List[StatusRecord]:
    with db.session() as s:
        stmt = select(AssignmentStatusRecord).where(AssignmentStatusRecord.session_id == session_id)
        if status is not None:
            stmt = stmt.where(AssignmentStatusRecord.status == AssignmentState(status).value)
        stmt = stmt.order_by(AssignmentStatusRecord.team_id, AssignmentStatusRecord.assignment_number)
        return [_record(row) for row in s.execute(stmt).scalars().all()]
