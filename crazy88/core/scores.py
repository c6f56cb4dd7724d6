"""
Score ledger - lean projection of awarded points

A score entry exists only while the matching status record is completed, and its
points equal that record's points_awarded. The scoreboard reads only this table.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from crazy88.db.database import Database, upsert
from crazy88.db.tables import ScoreRecord, Team
from crazy88.errors import TransientStoreError
from crazy88.models import ScoreEntry, ScoreRow, ScoreSource, TeamCategory
from crazy88.core.ledger import score_entry
from crazy88.utils import as_utc, utcnow


logger = logging.getLogger(__name__)

SCORE_KEY = ("team_id", "assignment_number", "session_id")


def upsert_score(db: Database, team_id: str, assignment_number: int, session_id: str,
                 points: int, created_via: ScoreSource,
                 created_at: Optional[datetime] = None) -> int:
    """
    Insert or overwrite the score entry for a key

    Returns:
        Score id

    Raises:
        TransientStoreError: If the write failed
    """
    now = utcnow()
    values = {
        "team_id": team_id,
        "assignment_number": assignment_number,
        "session_id": session_id,
        "points": int(points),
        "created_via": ScoreSource(created_via).value,
        "updated_at": now,
    }
    if created_at is not None:
        values["created_at"] = created_at
    try:
        with db.session() as s:
            return upsert(s, ScoreRecord, values, SCORE_KEY)
    except SQLAlchemyError as e:
        raise TransientStoreError(
            f"Score write failed for team={team_id} #{assignment_number}: {e}"
        ) from e


def delete_score(db: Database, team_id: str, assignment_number: int, session_id: str) -> int:
    """
    Remove the score entry for a key

    Returns:
        Number of rows deleted (0 or 1)

    Raises:
        TransientStoreError: If the delete failed
    """
    try:
        with db.session() as s:
            result = s.execute(
                delete(ScoreRecord).where(
                    ScoreRecord.team_id == team_id,
                    ScoreRecord.assignment_number == assignment_number,
                    ScoreRecord.session_id == session_id,
                )
            )
            return result.rowcount or 0
    except SQLAlchemyError as e:
        raise TransientStoreError(
            f"Score delete failed for team={team_id} #{assignment_number}: {e}"
        ) from e


def get_score(db: Database, team_id: str, assignment_number: int,
              session_id: str) -> Optional[ScoreEntry]:
    with db.session() as s:
        row = s.execute(
            select(ScoreRecord).where(
                ScoreRecord.team_id == team_id,
                ScoreRecord.assignment_number == assignment_number,
                ScoreRecord.session_id == session_id,
            )
        ).scalar_one_or_none()
        return score_entry(row) if row else None


def list_scores(db: Database, session_id: str) -> List[ScoreEntry]:
    with db.session() as s:
        rows = s.execute(
            select(ScoreRecord)
            .where(ScoreRecord.session_id == session_id)
            .order_by(ScoreRecord.id)
        ).scalars().all()
        return [score_entry(row) for row in rows]


def fetch_score_rows(db: Database, session_id: str) -> List[ScoreRow]:
    """Score ledger joined with teams, oldest first"""
    with db.session() as s:
        rows = s.execute(
            select(ScoreRecord, Team)
            .join(Team, Team.id == ScoreRecord.team_id)
            .where(ScoreRecord.session_id == session_id)
            .order_by(ScoreRecord.created_at, ScoreRecord.id)
        ).all()
        return [
            ScoreRow(
                id=score.id,
                team_id=team.id,
                team_name=team.name,
                team_category=TeamCategory(team.category),
                assignment_number=score.assignment_number,
                points=score.points,
                created_at=as_utc(score.created_at),
                created_via=ScoreSource(score.created_via),
            )
            for score, team in rows
        ]


def list_logbook(db: Database, session_id: str,
                 category: Optional[TeamCategory] = None) -> List[ScoreRow]:
    """
    Every awarded score of a session, newest first

    Args:
        db: Database
        session_id: Game session
        category: Only teams of this category

    Returns:
        List of ScoreRow
    """
    rows = fetch_score_rows(db, session_id)
    if category is not None:
        category = TeamCategory(category)
        rows = [r for r in rows if r.team_category == category]
    return sorted(rows, key=lambda r: (r.created_at, r.id or 0), reverse=True)
