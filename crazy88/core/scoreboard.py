"""
Scoreboard aggregation and fenced polling refresh
"""
import asyncio
import itertools
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from crazy88 import catalog
from crazy88.config import ScoreboardSettings
from crazy88.core.scores import fetch_score_rows
from crazy88.db.database import Database
from crazy88.db.tables import GameSession
from crazy88.models import (
    CategoryStats, FastestTeam, MomentumLeader, PopularAssignment, RecentActivity, ScoreboardSnapshot,
    ScoreRow, TeamCategory, TeamInfo, TeamStanding
)
from crazy88.services.team_registry import list_teams
from crazy88.utils import as_utc, utcnow


logger = logging.getLogger(__name__)

CREATIVITY_POINTS = 5


def rank_key(standing: TeamStanding):
    """Total desc, completions desc, name asc; id breaks exact name ties"""
    return (-standing.total_points, -standing.assignments_completed, standing.name, standing.team_id)


def aggregate(
    rows: List[ScoreRow],
    teams: Iterable[TeamInfo],
    assignment_numbers: Iterable[int],
    now: Optional[datetime] = None,
    settings: Optional[ScoreboardSettings] = None,
    creativity_points: int = CREATIVITY_POINTS,
    started_at: Optional[datetime] = None,
) -> ScoreboardSnapshot:
    """
    Compute standings and statistics from score ledger rows

    Pure function: the same rows always give the same snapshot.

    Args:
        rows: Score ledger joined with teams
        teams: All teams of the session (teams without points are ranked too)
        assignment_numbers: Active catalog numbers, for the uncompleted list
        now: Reference time for the momentum window
        settings: Limits and window sizes
        creativity_points: Point value counted as creativity bonus
        started_at: Timer start, for the completions-per-minute rate

    Returns:
        ScoreboardSnapshot
    """
    settings = settings or ScoreboardSettings()
    now = as_utc(now) or utcnow()

    standings: Dict[str, TeamStanding] = {}
    for team in teams:
        standings[team.id] = TeamStanding(team_id=team.id, name=team.name, category=team.category)

    assignment_counts: Counter = Counter()
    for row in rows:
        standing = standings.get(row.team_id)
        if standing is None:
            standing = TeamStanding(team_id=row.team_id, name=row.team_name, category=row.team_category)
            standings[row.team_id] = standing

        standing.total_points += row.points
        standing.assignments_completed += 1
        if row.points == creativity_points:
            standing.creativity_points += row.points
        else:
            standing.normal_points += row.points

        assignment_counts[row.assignment_number] += 1

    ranked = sorted(standings.values(), key=rank_key)
    for idx, standing in enumerate(ranked):
        standing.rank = idx + 1

    # Popular assignments: most completions first, lowest number on ties
    popular = [
        PopularAssignment(assignment_number=number, completion_count=count)
        for number, count in sorted(assignment_counts.items(), key=lambda x: (-x[1], x[0]))
    ][:settings.popular_limit]

    # Category totals and averages over every team in the category
    categories: Dict[str, CategoryStats] = {}
    for category in TeamCategory:
        members = [s for s in ranked if s.category == category]
        total = sum(s.total_points for s in members)
        categories[category.value] = CategoryStats(
            category=category,
            team_count=len(members),
            total_points=total,
            average_points=round(total / len(members), 2) if members else 0.0,
            leader=members[0] if members else None,
        )

    # Momentum: most completions inside the rolling window
    cutoff = now - timedelta(minutes=settings.momentum_window_minutes)
    recent_counts: Counter = Counter(
        row.team_id for row in rows if as_utc(row.created_at) > cutoff
    )
    momentum = None
    if recent_counts:
        position = {s.team_id: s.rank for s in ranked}
        team_id, count = min(recent_counts.items(), key=lambda x: (-x[1], position[x[0]]))
        momentum = MomentumLeader(team_id=team_id, name=standings[team_id].name, completions=count)

    creativity_leader = None
    with_creativity = [s for s in ranked if s.creativity_points > 0]
    if with_creativity:
        creativity_leader = min(with_creativity, key=lambda s: (-s.creativity_points, s.rank))

    # Fastest: completions per minute since the timer started (at least one minute)
    fastest = None
    started_at = as_utc(started_at)
    active = [s for s in ranked if s.assignments_completed > 0]
    if started_at is not None and active:
        minutes = max(1.0, (now - started_at).total_seconds() / 60)
        best = min(active, key=lambda s: (-s.assignments_completed, s.rank))
        fastest = FastestTeam(
            team_id=best.team_id,
            name=best.name,
            assignments_completed=best.assignments_completed,
            completions_per_minute=round(best.assignments_completed / minutes, 3),
        )

    completed_numbers = set(assignment_counts)
    uncompleted = [n for n in sorted(assignment_numbers) if n not in completed_numbers]

    recent = [
        RecentActivity(
            assignment_number=row.assignment_number,
            team_name=row.team_name,
            team_category=row.team_category,
            points=row.points,
            created_at=as_utc(row.created_at),
        )
        for row in sorted(rows, key=lambda r: as_utc(r.created_at), reverse=True)
    ][:settings.recent_activity_limit]

    return ScoreboardSnapshot(
        generated_at=now,
        teams=ranked,
        popular_assignments=popular,
        categories=categories,
        momentum_leader=momentum,
        creativity_leader=creativity_leader,
        fastest_team=fastest,
        uncompleted_assignments=uncompleted[:settings.uncompleted_preview],
        recent_activity=recent,
        total_completions=len(rows),
        unique_assignments=len(completed_numbers),
    )


class ScoreboardRefresher:
    """
    Holds the current scoreboard and refreshes it on a polling interval

    Every refresh takes the next sequence number when it starts. When its result
    arrives it is committed only if no later refresh has started in the meantime, so
    a slow, stale fetch can never roll the scoreboard back.

    Args:
        fetch: Coroutine producing a fresh snapshot
        interval: Seconds between polls
    """

    def __init__(self, fetch: Callable[[], Awaitable[ScoreboardSnapshot]], interval: float = 15.0):
        self._fetch = fetch
        self.interval = interval
        self._sequence = itertools.count(1)
        self._latest_started = 0
        self.snapshot: Optional[ScoreboardSnapshot] = None
        self.discarded = 0

    @property
    def latest_started(self) -> int:
        return self._latest_started

    async def refresh(self) -> Optional[ScoreboardSnapshot]:
        """
        Run one refresh

        Returns:
            The committed snapshot, or None if the result was stale and discarded
        """
        seq = next(self._sequence)
        self._latest_started = seq

        snapshot = await self._fetch()

        if seq != self._latest_started:
            self.discarded += 1
            logger.debug(f"Scoreboard refresh #{seq} discarded (#{self._latest_started} is newer)")
            return None

        snapshot.sequence = seq
        self.snapshot = snapshot
        return snapshot

    async def current(self) -> ScoreboardSnapshot:
        """Last committed snapshot, fetching one if nothing has been committed yet"""
        if self.snapshot is None:
            await self.refresh()
        return self.snapshot or ScoreboardSnapshot()

    async def run(self) -> None:
        """Poll forever; cancelled by the application lifespan"""
        while True:
            try:
                await self.refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"❌ Scoreboard refresh failed: {e}", exc_info=True)
            await asyncio.sleep(self.interval)


def load_snapshot(db: Database, session_id: str, settings: Optional[ScoreboardSettings] = None,
                  creativity_points: int = CREATIVITY_POINTS) -> ScoreboardSnapshot:
    """Read the score ledger and teams of a session and aggregate them"""
    rows = fetch_score_rows(db, session_id)
    teams = list_teams(db, session_id)
    numbers = [a.number for a in catalog.list_assignments(db)]
    with db.session() as s:
        game = s.get(GameSession, session_id)
        started_at = game.start_time if game else None
    snapshot = aggregate(rows, teams, numbers, settings=settings,
                         creativity_points=creativity_points, started_at=started_at)
    snapshot.session_id = session_id
    return snapshot
