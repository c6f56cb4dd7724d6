"""
Data models for the Crazy 88 game server
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AssignmentState(str, Enum):
    """Authoritative completion state of one (team, assignment, session) key"""
    not_started = "not_started"
    submitted = "submitted"
    approved = "approved"
    completed_jury = "completed_jury"
    rejected = "rejected"


COMPLETED_STATES = frozenset({AssignmentState.approved, AssignmentState.completed_jury})


class CompletionMethod(str, Enum):
    jury = "jury"
    review = "review"
    creativity = "creativity"


class ScoreSource(str, Enum):
    """How a score ledger entry was written"""
    jury = "jury"
    creativity = "creativity"
    review = "review"
    sync = "sync"


class SubmissionState(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    needs_review = "needs_review"


class TeamCategory(str, Enum):
    AVFV = "AVFV"
    MR = "MR"
    JEM = "JEM"


class Phase(str, Enum):
    """Temporal phase of the session clock, derived on every read"""
    setup = "setup"
    ready = "ready"
    running = "running"
    paused = "paused"
    grace = "grace"
    finished = "finished"


# Phases in which completion writers may execute
WRITABLE_PHASES = frozenset({Phase.running, Phase.paused, Phase.grace})


class ClockState(BaseModel):
    """Snapshot of a game session's clock record"""
    session_id: str
    duration: int = 0                         # seconds
    start_time: Optional[datetime] = None
    stopped_at: Optional[datetime] = None     # moment the clock last stopped running
    is_running: bool = False
    double_points_active: bool = False
    announcement: Optional[str] = None


class ClockView(ClockState):
    """Clock record plus derived values, as shown to clients"""
    phase: Phase
    remaining_seconds: int
    accepts_completions: bool


class TeamInfo(BaseModel):
    id: str
    name: str
    category: TeamCategory
    session_id: str


class AssignmentInfo(BaseModel):
    number: int
    title: str = ""
    description: str = ""
    points_base: int = 1
    requires_photo: bool = False
    requires_video: bool = False
    requires_audio: bool = False
    is_active: bool = True


class StatusRecord(BaseModel):
    """Read model of an AssignmentStatusRecord row"""
    team_id: str
    assignment_number: int
    session_id: str
    status: AssignmentState
    points_awarded: int = 0
    completion_method: Optional[CompletionMethod] = None
    submission_id: Optional[str] = None
    score_id: Optional[int] = None
    notes: Optional[str] = None
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScoreEntry(BaseModel):
    id: int
    team_id: str
    assignment_number: int
    session_id: str
    points: int
    created_via: ScoreSource
    created_at: Optional[datetime] = None


class SubmissionInfo(BaseModel):
    id: str
    team_id: str
    assignment_number: int
    session_id: str
    status: SubmissionState
    points_awarded: int = 0
    evidence_url: Optional[str] = None
    evidence_type: Optional[str] = None
    evidence_size: Optional[int] = None
    content_type: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    jury_notes: Optional[str] = None


class AssignmentStatusView(BaseModel):
    """Status of one assignment with its satellite records attached"""
    assignment_number: int
    status: AssignmentState = AssignmentState.not_started
    points: int = 0
    completion_method: Optional[CompletionMethod] = None
    submission: Optional[SubmissionInfo] = None
    score: Optional[ScoreEntry] = None


class ProgressSummary(BaseModel):
    total_assignments: int
    completed: int = 0
    submitted: int = 0
    rejected: int = 0
    total_points: int = 0


class CompletionResult(BaseModel):
    """Outcome of a completion writer"""
    success: bool
    team_id: str
    assignment_number: int
    status: Optional[AssignmentState] = None
    points: int = 0
    score_synced: bool = True
    error: Optional[str] = None          # "phase_closed" | "already_completed" | ... | "store_error"
    message: str = ""


class ResyncReport(BaseModel):
    checked: int = 0
    synced: int = 0
    skipped: int = 0
    failed: int = 0


class ReviewKey(BaseModel):
    team_id: str
    assignment_number: int


class ScoreRow(BaseModel):
    """One score ledger entry joined with its team"""
    id: Optional[int] = None
    team_id: str
    team_name: str
    team_category: TeamCategory
    assignment_number: int
    points: int
    created_at: datetime
    created_via: Optional[ScoreSource] = None


class TeamStanding(BaseModel):
    rank: int = 0
    team_id: str
    name: str
    category: TeamCategory
    total_points: int = 0
    assignments_completed: int = 0
    creativity_points: int = 0
    normal_points: int = 0


class PopularAssignment(BaseModel):
    assignment_number: int
    completion_count: int


class CategoryStats(BaseModel):
    category: TeamCategory
    team_count: int = 0
    total_points: int = 0
    average_points: float = 0.0
    leader: Optional[TeamStanding] = None     # best ranked team of the category


class MomentumLeader(BaseModel):
    team_id: str
    name: str
    completions: int


class FastestTeam(BaseModel):
    team_id: str
    name: str
    assignments_completed: int
    completions_per_minute: float


class RecentActivity(BaseModel):
    assignment_number: int
    team_name: str
    team_category: TeamCategory
    points: int
    created_at: datetime


class ScoreboardSnapshot(BaseModel):
    session_id: Optional[str] = None
    generated_at: Optional[datetime] = None
    sequence: int = 0
    teams: List[TeamStanding] = Field(default_factory=list)
    popular_assignments: List[PopularAssignment] = Field(default_factory=list)
    categories: Dict[str, CategoryStats] = Field(default_factory=dict)
    momentum_leader: Optional[MomentumLeader] = None
    creativity_leader: Optional[TeamStanding] = None
    fastest_team: Optional[FastestTeam] = None
    uncompleted_assignments: List[int] = Field(default_factory=list)
    recent_activity: List[RecentActivity] = Field(default_factory=list)
    total_completions: int = 0
    unique_assignments: int = 0


class UploadResult(BaseModel):
    submission_id: str
    evidence_url: str
    evidence_type: str
    original_size: int
    stored_size: int
    attempts: int
    completion: CompletionResult
