"""
SQLAlchemy tables for the game datastore

The composite unique key (team_id, assignment_number, session_id) on the status,
score and submission tables is the concurrency control: every writer upserts on it.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from crazy88.utils import utcnow


class Base(DeclarativeBase):
    pass


class GameSession(Base):
    """One run of the game, carrying its clock record"""
    __tablename__ = "game_sessions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    stopped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_running: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    double_points_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    announcement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Team(Base):
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    session_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    statuses: Mapped[List["AssignmentStatusRecord"]] = relationship(
        back_populates="team", cascade="all, delete-orphan", passive_deletes=True
    )
    scores: Mapped[List["ScoreRecord"]] = relationship(
        back_populates="team", cascade="all, delete-orphan", passive_deletes=True
    )
    submissions: Mapped[List["SubmissionRecord"]] = relationship(
        back_populates="team", cascade="all, delete-orphan", passive_deletes=True
    )


class Assignment(Base):
    __tablename__ = "assignments"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    points_base: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    requires_photo: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_video: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_audio: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class AssignmentStatusRecord(Base):
    """Authoritative completion state per (team, assignment, session)"""
    __tablename__ = "assignment_status"
    __table_args__ = (
        UniqueConstraint("team_id", "assignment_number", "session_id", name="uq_status_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[str] = mapped_column(String(64), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    assignment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_method: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    submission_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    score_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # back-reference only
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    team: Mapped[Team] = relationship(back_populates="statuses")


class ScoreRecord(Base):
    """Projection of points actually awarded; read by the scoreboard"""
    __tablename__ = "scores"
    __table_args__ = (
        UniqueConstraint("team_id", "assignment_number", "session_id", name="uq_score_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    team_id: Mapped[str] = mapped_column(String(64), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    assignment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    created_via: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    team: Mapped[Team] = relationship(back_populates="scores")


class SubmissionRecord(Base):
    """Evidence uploaded by a team; overwritten in place on resubmission"""
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("team_id", "assignment_number", "session_id", name="uq_submission_key"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    team_id: Mapped[str] = mapped_column(String(64), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    assignment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    session_id: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    evidence_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    evidence_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    evidence_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    content_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    jury_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    team: Mapped[Team] = relationship(back_populates="submissions")
