"""
Session clock: phase derivation and timer controls

The phase is never stored. It is derived from the clock record on every read:

  setup     duration == 0
  running   is_running
  paused    stopped with time left on the clock
  grace     time ran out at most grace_seconds ago
  finished  time ran out more than grace_seconds ago
  ready     duration set, never started

Completion writers may only execute in running, paused and grace.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Optional

from crazy88.db.database import Database
from crazy88.db.tables import GameSession
from crazy88.errors import ValidationError
from crazy88.models import ClockState, ClockView, Phase, WRITABLE_PHASES
from crazy88.utils import as_utc, utcnow


logger = logging.getLogger(__name__)

GRACE_SECONDS = 300


def _seconds(delta: timedelta) -> float:
    return delta.total_seconds()


def derive_phase(clock: ClockState, now: Optional[datetime] = None,
                 grace_seconds: int = GRACE_SECONDS) -> Phase:
    """
    Derive the temporal phase of a clock record

    Args:
        clock: Clock record
        now: Evaluation time (defaults to current UTC time)
        grace_seconds: Length of the window after expiry in which completions are accepted

    Returns:
        Phase

    Example:
        duration=600, start_time=now-650s, is_running=False → grace (50s into the window)
        duration=600, start_time=now-901s, is_running=False → finished
    """
    now = as_utc(now) or utcnow()

    if clock.duration <= 0:
        return Phase.setup
    if clock.is_running:
        return Phase.running
    if clock.start_time is None:
        return Phase.ready

    start = as_utc(clock.start_time)
    stopped = as_utc(clock.stopped_at) or now
    remaining = clock.duration - _seconds(stopped - start)
    if remaining > 0:
        return Phase.paused

    over = _seconds(now - (start + timedelta(seconds=clock.duration)))
    if over <= grace_seconds:
        return Phase.grace
    return Phase.finished


def remaining_seconds(clock: ClockState, now: Optional[datetime] = None) -> int:
    """Whole seconds left on the clock (0 once expired)"""
    now = as_utc(now) or utcnow()

    if clock.duration <= 0:
        return 0
    if clock.start_time is None:
        return clock.duration

    start = as_utc(clock.start_time)
    end = now if clock.is_running else (as_utc(clock.stopped_at) or now)
    elapsed = math.floor(_seconds(end - start))
    return max(0, clock.duration - elapsed)


def accepts_completions(clock: ClockState, now: Optional[datetime] = None,
                        grace_seconds: int = GRACE_SECONDS) -> bool:
    return derive_phase(clock, now, grace_seconds) in WRITABLE_PHASES


def clock_view(clock: ClockState, now: Optional[datetime] = None,
               grace_seconds: int = GRACE_SECONDS) -> ClockView:
    phase = derive_phase(clock, now, grace_seconds)
    return ClockView(
        **clock.model_dump(),
        phase=phase,
        remaining_seconds=remaining_seconds(clock, now),
        accepts_completions=phase in WRITABLE_PHASES,
    )


def _to_state(row: GameSession) -> ClockState:
    return ClockState(
        session_id=row.id,
        duration=row.duration,
        start_time=as_utc(row.start_time),
        stopped_at=as_utc(row.stopped_at),
        is_running=row.is_running,
        double_points_active=row.double_points_active,
        announcement=row.announcement,
    )


class SessionClock:
    """
    Timer controls for game sessions

    Each control is a single read-check-update transaction on the session's clock
    record. Invalid transitions raise ValidationError without writing.
    """

    def __init__(self, db: Database, grace_seconds: int = GRACE_SECONDS,
                 now_fn: Callable[[], datetime] = utcnow):
        self.db = db
        self.grace_seconds = grace_seconds
        self.now_fn = now_fn

    def _load(self, s, session_id: str) -> GameSession:
        row = s.get(GameSession, session_id, with_for_update=True)
        if row is None:
            raise ValidationError(f"Unknown game session {session_id}", code="unknown_session")
        return row

    # ==================== READS ====================

    def get(self, session_id: str) -> ClockState:
        with self.db.session() as s:
            return _to_state(self._load(s, session_id))

    def view(self, session_id: str) -> ClockView:
        return clock_view(self.get(session_id), self.now_fn(), self.grace_seconds)

    def phase(self, session_id: str) -> Phase:
        return derive_phase(self.get(session_id), self.now_fn(), self.grace_seconds)

    def require_open(self, session_id: str) -> ClockState:
        """
        Gate for completion writers

        Raises:
            ValidationError: If the current phase does not accept completions
        """
        clock = self.get(session_id)
        phase = derive_phase(clock, self.now_fn(), self.grace_seconds)
        if phase not in WRITABLE_PHASES:
            raise ValidationError(
                f"Completions are closed in phase '{phase.value}'", code="phase_closed"
            )
        return clock

    # ==================== CONTROLS ====================

    def set_duration(self, session_id: str, seconds: int) -> ClockState:
        if seconds < 0:
            raise ValidationError("Duration must be zero or positive")
        with self.db.session() as s:
            row = self._load(s, session_id)
            if row.is_running:
                raise ValidationError("Cannot change duration while the timer is running",
                                      code="timer_running")
            row.duration = int(seconds)
            row.start_time = None
            row.stopped_at = None
            state = _to_state(row)
        logger.info(f"⏱️ Session {session_id}: duration set to {seconds}s")
        return state

    def start(self, session_id: str) -> ClockState:
        with self.db.session() as s:
            row = self._load(s, session_id)
            if row.duration <= 0:
                raise ValidationError("Set a duration before starting", code="no_duration")
            if row.is_running:
                raise ValidationError("Timer already running", code="timer_running")
            row.start_time = self.now_fn()
            row.stopped_at = None
            row.is_running = True
            state = _to_state(row)
        logger.info(f"▶️ Session {session_id}: timer started ({state.duration}s)")
        return state

    def pause(self, session_id: str) -> ClockState:
        """
        Stop the timer, keeping the remaining time as the new duration baseline

        A pause after the time has already run out is recorded as a natural expiry,
        so the grace window still applies.
        """
        now = self.now_fn()
        with self.db.session() as s:
            row = self._load(s, session_id)
            if not row.is_running or row.start_time is None:
                raise ValidationError("Timer is not running", code="timer_not_running")

            elapsed = math.floor(_seconds(now - as_utc(row.start_time)))
            remaining = max(0, row.duration - elapsed)
            row.is_running = False
            row.stopped_at = now
            if remaining > 0:
                row.duration = remaining
                row.start_time = now
            state = _to_state(row)
        logger.info(f"⏸️ Session {session_id}: timer paused with {remaining}s left")
        return state

    def resume(self, session_id: str) -> ClockState:
        with self.db.session() as s:
            row = self._load(s, session_id)
            if row.is_running:
                raise ValidationError("Timer already running", code="timer_running")
            if row.duration <= 0:
                raise ValidationError("Nothing to resume", code="no_duration")
            row.start_time = self.now_fn()
            row.stopped_at = None
            row.is_running = True
            state = _to_state(row)
        logger.info(f"▶️ Session {session_id}: timer resumed ({state.duration}s left)")
        return state

    def stop(self, session_id: str) -> ClockState:
        """Hard reset of the timer"""
        with self.db.session() as s:
            row = self._load(s, session_id)
            row.is_running = False
            row.start_time = None
            row.stopped_at = None
            row.duration = 0
            state = _to_state(row)
        logger.info(f"🛑 Session {session_id}: timer stopped and reset")
        return state

    def expire_if_elapsed(self, session_id: str) -> bool:
        """
        Flip a running timer off once it reaches zero

        start_time and duration are kept, so the derived phase moves into grace.

        Returns:
            True if the timer was stopped by this call
        """
        now = self.now_fn()
        with self.db.session() as s:
            row = self._load(s, session_id)
            if not row.is_running or row.start_time is None:
                return False
            end = as_utc(row.start_time) + timedelta(seconds=row.duration)
            if now < end:
                return False
            row.is_running = False
            row.stopped_at = end
        logger.info(f"⏰ Session {session_id}: time is up, grace period started")
        return True

    def toggle_double_points(self, session_id: str) -> ClockState:
        with self.db.session() as s:
            row = self._load(s, session_id)
            row.double_points_active = not row.double_points_active
            state = _to_state(row)
        logger.info(
            f"🔁 Session {session_id}: double points {'ON' if state.double_points_active else 'OFF'}"
        )
        return state

    def set_announcement(self, session_id: str, text: Optional[str]) -> ClockState:
        with self.db.session() as s:
            row = self._load(s, session_id)
            row.announcement = (text or "").strip() or None
            state = _to_state(row)
        return state
