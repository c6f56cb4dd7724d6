"""
Game session lifecycle

A session is one run of the game. Teams, statuses, scores and submissions are all
scoped to a session id, which is passed explicitly to every core operation.
"""
import logging
from typing import Optional

from sqlalchemy import delete, select, update

from crazy88.db.database import Database
from crazy88.db.tables import (
    AssignmentStatusRecord, GameSession, ScoreRecord, SubmissionRecord, Team
)
from crazy88.utils import new_id


logger = logging.getLogger(__name__)


def create_session(db: Database) -> str:
    """Create a fresh active session, deactivating any other"""
    session_id = new_id()
    with db.session() as s:
        s.execute(update(GameSession).where(GameSession.is_active.is_(True)).values(is_active=False))
        s.add(GameSession(id=session_id, is_active=True))
    logger.info(f"✅ Game session {session_id} created")
    return session_id


def find_active_session(db: Database) -> Optional[str]:
    with db.session() as s:
        return s.execute(
            select(GameSession.id)
            .where(GameSession.is_active.is_(True))
            .order_by(GameSession.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()


def get_active_session(db: Database) -> str:
    """Active session id, created lazily on first use"""
    return find_active_session(db) or create_session(db)


def reset_session(db: Database, keep_teams: bool = True) -> str:
    """
    Start a new game session

    The old session's statuses, scores and submissions are deleted. Teams move to the
    new session when keep_teams is set, otherwise they are deleted too.

    Args:
        db: Database
        keep_teams: Carry teams over to the new session

    Returns:
        New session id
    """
    old_id = find_active_session(db)
    new_session_id = new_id()

    with db.session() as s:
        s.add(GameSession(id=new_session_id, is_active=True))
        s.flush()

        if old_id:
            s.execute(delete(AssignmentStatusRecord).where(AssignmentStatusRecord.session_id == old_id))
            s.execute(delete(ScoreRecord).where(ScoreRecord.session_id == old_id))
            s.execute(delete(SubmissionRecord).where(SubmissionRecord.session_id == old_id))

            if keep_teams:
                s.execute(update(Team).where(Team.session_id == old_id).values(session_id=new_session_id))
            else:
                s.execute(delete(Team).where(Team.session_id == old_id))

            s.execute(update(GameSession).where(GameSession.id == old_id).values(
                is_active=False, is_running=False
            ))

    logger.info(
        f"🔄 Session reset: {old_id} → {new_session_id} "
        f"({'teams kept' if keep_teams else 'teams cleared'})"
    )
    return new_session_id
