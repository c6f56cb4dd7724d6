"""Team registration utilities"""
import logging
import uuid
from typing import List, Optional

from sqlalchemy import select

from crazy88.db.database import Database
from crazy88.db.tables import Team
from crazy88.models import TeamCategory, TeamInfo


logger = logging.getLogger(__name__)


def _generate_team_id(team_name: str) -> str:
    slug = team_name.strip().lower().replace(' ', '-')[:20]
    unique_suffix = uuid.uuid4().hex[:6]
    return f"team-{slug}-{unique_suffix}" if slug else f"team-{unique_suffix}"


def _info(row: Team) -> TeamInfo:
    return TeamInfo(id=row.id, name=row.name, category=TeamCategory(row.category),
                    session_id=row.session_id)


def register_team(db: Database, session_id: str, team_name: str, category: str) -> TeamInfo:
    clean_name = team_name.strip()
    if not clean_name:
        raise ValueError("team_name required")
    try:
        category = TeamCategory(category)
    except ValueError:
        valid = ", ".join(c.value for c in TeamCategory)
        raise ValueError(f"category must be one of: {valid}")

    row = Team(id=_generate_team_id(clean_name), name=clean_name,
               category=category.value, session_id=session_id)
    with db.session() as s:
        s.add(row)
    logger.info(f"✅ Team registered: {row.id} ({clean_name}, {category.value})")
    return _info(row)


def get_team(db: Database, team_id: str) -> Optional[TeamInfo]:
    with db.session() as s:
        row = s.get(Team, team_id)
        return _info(row) if row else None


def get_team_in_session(db: Database, team_id: str, session_id: str) -> Optional[TeamInfo]:
    team = get_team(db, team_id)
    if team is None or team.session_id != session_id:
        return None
    return team


def list_teams(db: Database, session_id: str) -> List[TeamInfo]:
    with db.session() as s:
        rows = s.execute(
            select(Team).where(Team.session_id == session_id).order_by(Team.category, Team.name)
        ).scalars().all()
        return [_info(row) for row in rows]


def delete_team(db: Database, team_id: str) -> bool:
    """Delete a team together with its statuses, scores and submissions"""
    with db.session() as s:
        row = s.get(Team, team_id)
        if row is None:
            return False
        s.delete(row)
    logger.info(f"🗑️ Team deleted: {team_id}")
    return True
