"""
Completion writers - every path that changes an assignment's status

  submit_assignment    team upload          not_started|rejected → submitted
  approve_via_review   reviewer             submitted → approved       (+ score)
  award_via_jury       jury / creativity    not_started → completed_jury (+ score)
  reject_assignment    reviewer             submitted|approved → rejected (- score)
  revoke_completion    jury logbook         approved|completed_jury → not_started (- score)
  resync_approved      repair sweep         approved → score rewritten

Scoring writers follow one order: score ledger first, status ledger second. A failed
score write is logged and left for resync_approved(); a failed status write fails the
whole operation, because the status ledger is the fact of record. Nothing here raises
for datastore errors: every writer returns a CompletionResult.
"""
import functools
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from crazy88 import catalog
from crazy88.config import ScoringSettings
from crazy88.core import ledger, scores, submissions
from crazy88.core.clock import SessionClock
from crazy88.db.database import Database
from crazy88.errors import TransientStoreError, ValidationError
from crazy88.models import (
    AssignmentState, CompletionMethod, CompletionResult, COMPLETED_STATES,
    ResyncReport, ReviewKey, ScoreEntry, ScoreSource, SubmissionState
)
from crazy88.services.team_registry import get_team_in_session


logger = logging.getLogger(__name__)


def _failure(team_id: str, assignment_number: int, error: str, message: str,
             status: Optional[AssignmentState] = None) -> CompletionResult:
    return CompletionResult(
        success=False,
        team_id=team_id,
        assignment_number=assignment_number,
        status=status,
        error=error,
        message=message,
    )


def _guarded(func):
    """Turn precondition and datastore exceptions into failed CompletionResults"""
    @functools.wraps(func)
    def wrapper(self, session_id: str, team_id: str, assignment_number: int, *args, **kwargs):
        try:
            return func(self, session_id, team_id, assignment_number, *args, **kwargs)
        except ValidationError as e:
            logger.info(f"⛔ {func.__name__} refused for team={team_id} #{assignment_number}: {e.message}")
            return _failure(team_id, assignment_number, e.code, e.message)
        except (TransientStoreError, SQLAlchemyError) as e:
            logger.error(f"❌ {func.__name__} failed for team={team_id} #{assignment_number}: {e}")
            return _failure(team_id, assignment_number, "store_error", str(e))
    return wrapper


class CompletionWriters:
    """
    The canonical state machine for assignment completion

    Args:
        db: Shared datastore
        clock: Session clock used for the phase gate
        scoring: Point rules (creativity bonus, double points multiplier)
    """

    def __init__(self, db: Database, clock: SessionClock,
                 scoring: Optional[ScoringSettings] = None):
        self.db = db
        self.clock = clock
        self.scoring = scoring or ScoringSettings()

    # ==================== PRECONDITIONS ====================

    def _check_team_and_assignment(self, session_id: str, team_id: str, assignment_number: int):
        if get_team_in_session(self.db, team_id, session_id) is None:
            raise ValidationError(f"Team {team_id} is not part of this session", code="unknown_team")
        assignment = catalog.get_assignment(self.db, assignment_number)
        if assignment is None or not assignment.is_active:
            raise ValidationError(f"Assignment {assignment_number} is not available",
                                  code="unknown_assignment")
        return assignment

    def _current(self, session_id: str, team_id: str, assignment_number: int) -> AssignmentState:
        return ledger.get_state(self.db, team_id, assignment_number, session_id)

    def points_for(self, points_base: int, double_points_active: bool) -> int:
        multiplier = self.scoring.double_points_multiplier if double_points_active else 1
        return points_base * multiplier

    # ==================== SCORE-THEN-STATUS ====================

    def _write_score(self, session_id: str, team_id: str, assignment_number: int,
                     points: int, via: ScoreSource) -> Optional[int]:
        try:
            return scores.upsert_score(self.db, team_id, assignment_number, session_id, points, via)
        except TransientStoreError as e:
            logger.error(f"⚠️ {e} - left for resync")
            return None

    def _restore_score(self, session_id: str, team_id: str, assignment_number: int,
                       prior: Optional[ScoreEntry]) -> None:
        """Undo a score write whose status write failed (best-effort)"""
        try:
            if prior is None:
                scores.delete_score(self.db, team_id, assignment_number, session_id)
            else:
                scores.upsert_score(self.db, team_id, assignment_number, session_id,
                                    prior.points, prior.created_via, created_at=prior.created_at)
        except TransientStoreError as e:
            logger.error(f"⚠️ Could not restore score for team={team_id} #{assignment_number}: {e}")

    def _complete(self, session_id: str, team_id: str, assignment_number: int, *,
                  status: AssignmentState, points: int, method: CompletionMethod,
                  via: ScoreSource, submission_id: Optional[str], notes: Optional[str],
                  completed_by: str) -> CompletionResult:
        prior = scores.get_score(self.db, team_id, assignment_number, session_id)
        score_id = self._write_score(session_id, team_id, assignment_number, points, via)

        ok = ledger.upsert_status(
            self.db, team_id, assignment_number, session_id, status, points, method,
            submission_id=submission_id, score_id=score_id, notes=notes,
            completed_by=completed_by,
        )
        if not ok:
            if score_id is not None:
                self._restore_score(session_id, team_id, assignment_number, prior)
            return _failure(team_id, assignment_number, "store_error",
                            "Status update failed; nothing was awarded")

        return CompletionResult(
            success=True,
            team_id=team_id,
            assignment_number=assignment_number,
            status=status,
            points=points,
            score_synced=score_id is not None,
            message=f"Assignment {assignment_number}: {points} points ({method.value})",
        )

    # ==================== WRITERS ====================

    @_guarded
    def submit_assignment(self, session_id: str, team_id: str, assignment_number: int,
                          submission_id: Optional[str] = None) -> CompletionResult:
        """Team uploaded evidence; the assignment now waits for review"""
        self.clock.require_open(session_id)
        self._check_team_and_assignment(session_id, team_id, assignment_number)

        current = self._current(session_id, team_id, assignment_number)
        if current in COMPLETED_STATES:
            raise ValidationError(f"Assignment {assignment_number} is already completed",
                                  code="already_completed")

        ok = ledger.upsert_status(
            self.db, team_id, assignment_number, session_id,
            AssignmentState.submitted, 0, CompletionMethod.review,
            submission_id=submission_id, completed_by="team",
        )
        if not ok:
            return _failure(team_id, assignment_number, "store_error", "Status update failed",
                            status=current)
        return CompletionResult(
            success=True,
            team_id=team_id,
            assignment_number=assignment_number,
            status=AssignmentState.submitted,
            message=f"Assignment {assignment_number} submitted for review",
        )

    @_guarded
    def approve_via_review(self, session_id: str, team_id: str, assignment_number: int,
                           custom_points: Optional[int] = None,
                           notes: Optional[str] = None) -> CompletionResult:
        """
        Reviewer approves a team's submission

        final points = custom_points, or points_base doubled while double points is on
        """
        clock = self.clock.require_open(session_id)
        assignment = self._check_team_and_assignment(session_id, team_id, assignment_number)

        if custom_points is not None and custom_points < 0:
            raise ValidationError("Points cannot be negative", code="invalid_points")

        submission = submissions.get_submission(self.db, team_id, assignment_number, session_id)
        if submission is None:
            raise ValidationError(f"No submission to review for assignment {assignment_number}",
                                  code="no_submission")

        current = self._current(session_id, team_id, assignment_number)
        if current == AssignmentState.completed_jury:
            raise ValidationError(f"Assignment {assignment_number} was already awarded by the jury",
                                  code="already_completed")

        if custom_points is not None:
            final_points = custom_points
        else:
            final_points = self.points_for(assignment.points_base, clock.double_points_active)

        result = self._complete(
            session_id, team_id, assignment_number,
            status=AssignmentState.approved, points=final_points,
            method=CompletionMethod.review, via=ScoreSource.review,
            submission_id=submission.id, notes=notes, completed_by="review",
        )
        if result.success:
            submissions.mark_reviewed(self.db, submission.id, SubmissionState.approved,
                                      final_points, notes)
        return result

    @_guarded
    def award_via_jury(self, session_id: str, team_id: str, assignment_number: int,
                       method: CompletionMethod = CompletionMethod.jury,
                       points: Optional[int] = None,
                       notes: Optional[str] = None) -> CompletionResult:
        """
        Jury awards an assignment directly, without a submission

        The creativity variant is a fixed bonus. Neither variant may touch an assignment
        that is already completed.
        """
        method = CompletionMethod(method)
        if method == CompletionMethod.review:
            raise ValidationError("Jury awards use method 'jury' or 'creativity'", code="invalid_method")

        clock = self.clock.require_open(session_id)
        assignment = self._check_team_and_assignment(session_id, team_id, assignment_number)

        current = self._current(session_id, team_id, assignment_number)
        if current in COMPLETED_STATES:
            raise ValidationError(f"Assignment {assignment_number} is already completed",
                                  code="already_completed")

        if method == CompletionMethod.creativity:
            if scores.get_score(self.db, team_id, assignment_number, session_id) is not None:
                raise ValidationError(
                    f"Assignment {assignment_number} already has points; "
                    "creativity points cannot be added",
                    code="already_completed",
                )
            final_points = self.scoring.creativity_points
        elif points is not None:
            if points < 0:
                raise ValidationError("Points cannot be negative", code="invalid_points")
            final_points = points
        else:
            final_points = self.points_for(assignment.points_base, clock.double_points_active)

        return self._complete(
            session_id, team_id, assignment_number,
            status=AssignmentState.completed_jury, points=final_points,
            method=method, via=ScoreSource(method.value),
            submission_id=None, notes=notes, completed_by="jury",
        )

    @_guarded
    def reject_assignment(self, session_id: str, team_id: str, assignment_number: int,
                          notes: Optional[str] = None) -> CompletionResult:
        """
        Reviewer rejects a submission; any score for the key is removed

        Only a submitted or review-approved assignment can be rejected. Jury awards are
        withdrawn with revoke_completion().
        """
        self.clock.require_open(session_id)
        self._check_team_and_assignment(session_id, team_id, assignment_number)

        submission = submissions.get_submission(self.db, team_id, assignment_number, session_id)
        if submission is None:
            raise ValidationError(f"No submission to reject for assignment {assignment_number}",
                                  code="no_submission")

        current = self._current(session_id, team_id, assignment_number)
        if current == AssignmentState.completed_jury:
            raise ValidationError(f"Assignment {assignment_number} was awarded by the jury",
                                  code="already_completed")

        score_synced = True
        try:
            scores.delete_score(self.db, team_id, assignment_number, session_id)
        except TransientStoreError as e:
            logger.error(f"⚠️ {e} - left for resync")
            score_synced = False

        ok = ledger.upsert_status(
            self.db, team_id, assignment_number, session_id,
            AssignmentState.rejected, 0, CompletionMethod.review,
            submission_id=submission.id, notes=notes, completed_by="review",
        )
        if not ok:
            return _failure(team_id, assignment_number, "store_error", "Status update failed")

        submissions.mark_reviewed(self.db, submission.id, SubmissionState.rejected, 0, notes)

        return CompletionResult(
            success=True,
            team_id=team_id,
            assignment_number=assignment_number,
            status=AssignmentState.rejected,
            score_synced=score_synced,
            message=f"Assignment {assignment_number} rejected",
        )

    @_guarded
    def revoke_completion(self, session_id: str, team_id: str, assignment_number: int,
                          notes: Optional[str] = None) -> CompletionResult:
        """
        Jury withdraws a completion from the logbook

        The score entry is removed and the status goes back to not_started. A failed
        score delete aborts before the status is touched, and a failed status write puts
        the score back.
        """
        self.clock.require_open(session_id)
        self._check_team_and_assignment(session_id, team_id, assignment_number)

        current = self._current(session_id, team_id, assignment_number)
        prior = scores.get_score(self.db, team_id, assignment_number, session_id)
        if current not in COMPLETED_STATES and prior is None:
            raise ValidationError(f"Assignment {assignment_number} has nothing to revoke",
                                  code="not_completed")

        if prior is not None:
            scores.delete_score(self.db, team_id, assignment_number, session_id)

        ok = ledger.upsert_status(
            self.db, team_id, assignment_number, session_id,
            AssignmentState.not_started, 0, None, notes=notes, completed_by="jury",
        )
        if not ok:
            self._restore_score(session_id, team_id, assignment_number, prior)
            return _failure(team_id, assignment_number, "store_error",
                            "Status update failed; the completion was kept", status=current)

        submission = submissions.get_submission(self.db, team_id, assignment_number, session_id)
        if submission is not None:
            submissions.mark_reviewed(self.db, submission.id, SubmissionState.rejected, 0, notes)

        logger.info(f"↩️ Revoked team={team_id} #{assignment_number} "
                    f"({prior.points if prior else 0} pts removed)")
        return CompletionResult(
            success=True,
            team_id=team_id,
            assignment_number=assignment_number,
            status=AssignmentState.not_started,
            message=f"Assignment {assignment_number} revoked",
        )

    @_guarded
    def flag_for_review(self, session_id: str, team_id: str, assignment_number: int,
                        notes: Optional[str] = None) -> CompletionResult:
        """Park a submission for a second look; the status stays submitted"""
        self.clock.require_open(session_id)
        submission = submissions.get_submission(self.db, team_id, assignment_number, session_id)
        if submission is None:
            raise ValidationError(f"No submission to review for assignment {assignment_number}",
                                  code="no_submission")
        if not submissions.mark_reviewed(self.db, submission.id, SubmissionState.needs_review, 0, notes):
            return _failure(team_id, assignment_number, "store_error", "Submission update failed")
        return CompletionResult(
            success=True,
            team_id=team_id,
            assignment_number=assignment_number,
            status=self._current(session_id, team_id, assignment_number),
            message=f"Assignment {assignment_number} flagged for review",
        )

    def bulk_review(self, session_id: str, keys: List[ReviewKey], approve: bool,
                    notes: Optional[str] = None) -> List[CompletionResult]:
        """Approve or reject many submissions; each key is an independent write"""
        results = []
        for key in keys:
            if approve:
                result = self.approve_via_review(session_id, key.team_id, key.assignment_number,
                                                 notes=notes)
            else:
                result = self.reject_assignment(session_id, key.team_id, key.assignment_number,
                                                notes=notes)
            results.append(result)
        done = sum(1 for r in results if r.success)
        logger.info(f"📦 Bulk {'approve' if approve else 'reject'}: {done}/{len(results)} succeeded")
        return results

    # ==================== REPAIR ====================

    def resync_approved(self, session_id: str) -> ResyncReport:
        """
        Rewrite the score entry of every approved status record that has drifted

        Safe to repeat and to run alongside live writers: each step is an upsert on
        the key, so the last write wins and no duplicates appear.
        """
        report = ResyncReport()
        try:
            records = ledger.list_status_records(self.db, session_id, AssignmentState.approved)
        except SQLAlchemyError as e:
            logger.error(f"❌ Resync could not read the status ledger: {e}")
            report.failed += 1
            return report

        for record in records:
            report.checked += 1
            try:
                current = scores.get_score(self.db, record.team_id, record.assignment_number,
                                           session_id)
                if current is not None and current.points == record.points_awarded:
                    report.skipped += 1
                    continue
                scores.upsert_score(self.db, record.team_id, record.assignment_number, session_id,
                                    record.points_awarded, ScoreSource.sync)
                report.synced += 1
            except (TransientStoreError, SQLAlchemyError) as e:
                logger.error(f"❌ Resync failed for team={record.team_id} "
                             f"#{record.assignment_number}: {e}")
                report.failed += 1

        logger.info(
            f"🔄 Resync {session_id}: checked={report.checked} synced={report.synced} "
            f"skipped={report.skipped} failed={report.failed}"
        )
        return report
