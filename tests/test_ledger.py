"""
Tests for the status ledger, score ledger and session lifecycle
"""
from crazy88.core import ledger, scores, submissions
from crazy88.core.session import find_active_session, reset_session
from crazy88.models import AssignmentState, CompletionMethod, ScoreSource
from crazy88.services.team_registry import delete_team, list_teams


def test_upsert_status_is_idempotent(db, session_id, teams):
    """Writing the same key twice leaves one record with the second write's values"""
    team_id = teams["alpha"].id
    assert ledger.upsert_status(db, team_id, 1, session_id, AssignmentState.submitted, 0,
                                CompletionMethod.review)
    assert ledger.upsert_status(db, team_id, 1, session_id, AssignmentState.approved, 2,
                                CompletionMethod.review, notes="nice")

    records = ledger.get_team_statuses(db, team_id, session_id)
    assert len(records) == 1
    assert records[0].status == AssignmentState.approved
    assert records[0].points_awarded == 2
    assert records[0].notes == "nice"
    assert records[0].completed_at is not None


def test_upsert_status_full_replace(db, session_id, teams):
    """Moving out of a completed state clears points and completed_at"""
    team_id = teams["alpha"].id
    ledger.upsert_status(db, team_id, 1, session_id, AssignmentState.approved, 2,
                         CompletionMethod.review, notes="nice")
    ledger.upsert_status(db, team_id, 1, session_id, AssignmentState.rejected, 5,
                         CompletionMethod.review)

    record = ledger.get_status(db, team_id, 1, session_id)
    assert record.status == AssignmentState.rejected
    assert record.points_awarded == 0
    assert record.completed_at is None
    assert record.notes is None
    assert record.completed_by == "system"


def test_missing_status_is_not_started(db, session_id, teams):
    assert ledger.get_status(db, teams["alpha"].id, 3, session_id) is None
    assert ledger.get_state(db, teams["alpha"].id, 3, session_id) == AssignmentState.not_started


def test_progress_summary(db, session_id, teams):
    team_id = teams["alpha"].id
    ledger.upsert_status(db, team_id, 1, session_id, AssignmentState.approved, 2, CompletionMethod.review)
    ledger.upsert_status(db, team_id, 2, session_id, AssignmentState.completed_jury, 3, CompletionMethod.jury)
    ledger.upsert_status(db, team_id, 3, session_id, AssignmentState.submitted, 0, CompletionMethod.review)
    ledger.upsert_status(db, team_id, 4, session_id, AssignmentState.rejected, 0, CompletionMethod.review)

    summary = ledger.get_progress_summary(db, team_id, session_id, total_assignments=88)
    assert summary.total_assignments == 88
    assert summary.completed == 2
    assert summary.submitted == 1
    assert summary.rejected == 1
    assert summary.total_points == 5
    assert ledger.get_completed_numbers(db, team_id, session_id) == [1, 2]


def test_score_upsert_single_entry_per_key(db, session_id, teams):
    team_id = teams["alpha"].id
    first = scores.upsert_score(db, team_id, 1, session_id, 2, ScoreSource.review)
    second = scores.upsert_score(db, team_id, 1, session_id, 4, ScoreSource.sync)

    assert first == second
    entries = scores.list_scores(db, session_id)
    assert len(entries) == 1
    assert entries[0].points == 4
    assert entries[0].created_via == ScoreSource.sync


def test_delete_score_returns_rowcount(db, session_id, teams):
    team_id = teams["alpha"].id
    scores.upsert_score(db, team_id, 1, session_id, 2, ScoreSource.jury)
    assert scores.delete_score(db, team_id, 1, session_id) == 1
    assert scores.delete_score(db, team_id, 1, session_id) == 0


def test_resubmission_keeps_submission_id(db, session_id, teams):
    team_id = teams["alpha"].id
    first = submissions.record_submission(db, team_id, 1, session_id, "https://a/1.jpg", "photo", 10)
    second = submissions.record_submission(db, team_id, 1, session_id, "https://a/2.jpg", "photo", 20)

    assert first == second
    submission = submissions.get_submission(db, team_id, 1, session_id)
    assert submission.evidence_url == "https://a/2.jpg"
    assert submission.evidence_size == 20


def test_delete_team_cascades(db, session_id, teams):
    """Deleting a team removes its statuses, scores and submissions"""
    team_id = teams["alpha"].id
    ledger.upsert_status(db, team_id, 1, session_id, AssignmentState.approved, 2, CompletionMethod.review)
    scores.upsert_score(db, team_id, 1, session_id, 2, ScoreSource.review)
    submissions.record_submission(db, team_id, 1, session_id, "https://a/1.jpg", "photo", 10)

    assert delete_team(db, team_id) is True
    assert ledger.get_team_statuses(db, team_id, session_id) == []
    assert scores.list_scores(db, session_id) == []
    assert submissions.list_submissions(db, session_id) == []
    assert delete_team(db, team_id) is False


def test_reset_session_keeps_teams(db, session_id, teams):
    team_id = teams["alpha"].id
    scores.upsert_score(db, team_id, 1, session_id, 2, ScoreSource.review)

    new_id = reset_session(db, keep_teams=True)

    assert new_id != session_id
    assert find_active_session(db) == new_id
    assert {t.id for t in list_teams(db, new_id)} == {t.id for t in teams.values()}
    assert scores.list_scores(db, session_id) == []


def test_reset_session_drops_teams(db, session_id, teams):
    new_id = reset_session(db, keep_teams=False)
    assert list_teams(db, new_id) == []
    assert list_teams(db, session_id) == []


def test_same_upsert_twice_matches_single_call(db, session_id, teams):
    """Repeating an identical status write changes nothing but timestamps"""
    team_id = teams["alpha"].id
    args = (db, team_id, 2, session_id, AssignmentState.completed_jury, 3, CompletionMethod.jury)
    kwargs = dict(submission_id=None, score_id=7, notes="great", completed_by="jury")

    assert ledger.upsert_status(*args, **kwargs)
    once = ledger.get_status(db, team_id, 2, session_id)
    assert ledger.upsert_status(*args, **kwargs)
    twice = ledger.get_status(db, team_id, 2, session_id)

    timestamps = {"completed_at", "updated_at"}
    assert twice.model_dump(exclude=timestamps) == once.model_dump(exclude=timestamps)
    assert len(ledger.list_status_records(db, session_id)) == 1
