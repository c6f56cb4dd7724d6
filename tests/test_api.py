"""
HTTP tests for the FastAPI routers
"""
import pytest
from fastapi.testclient import TestClient

from crazy88.config import Settings
from crazy88.main import app, init_state


@pytest.fixture
def client(db, storage, now):
    init_state(Settings(), db, storage, now_fn=now, sleep=lambda seconds: None)
    return TestClient(app)


def test_health(client, session_id):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["session_id"] == session_id


def test_clock_controls(client, session_id):
    response = client.post("/admin/clock/duration", json={"minutes": 10})
    assert response.status_code == 200
    assert response.json()["phase"] == "ready"

    response = client.post("/admin/clock/start")
    assert response.json()["phase"] == "running"
    assert response.json()["remaining_seconds"] == 600

    assert client.post("/admin/clock/start").status_code == 409
    assert client.post("/admin/clock/duration", json={"seconds": 60}).status_code == 409

    response = client.post("/admin/clock/pause")
    assert response.json()["phase"] == "paused"

    assert client.get("/clock").json()["accepts_completions"] is True

    response = client.post("/admin/clock/stop")
    assert response.json()["phase"] == "setup"


def test_duration_requires_value(client, session_id):
    assert client.post("/admin/clock/duration", json={}).status_code == 400


def test_double_points_and_announcement(client, session_id):
    assert client.post("/admin/double-points").json()["double_points_active"] is True
    response = client.post("/admin/announcement", json={"text": "Back at base by 17:00"})
    assert response.json()["announcement"] == "Back at base by 17:00"


def test_team_management(client, session_id):
    response = client.post("/admin/teams", json={"name": "Night Owls", "category": "AVFV"})
    assert response.status_code == 200
    team_id = response.json()["id"]

    assert client.post("/admin/teams", json={"name": "X", "category": "NOPE"}).status_code == 400

    teams = client.get("/admin/teams").json()["teams"]
    assert [t["id"] for t in teams] == [team_id]

    assert client.delete(f"/admin/teams/{team_id}").status_code == 200
    assert client.delete(f"/admin/teams/{team_id}").status_code == 404


def test_upload_and_approve(client, running, teams):
    """Team uploads a photo, reviewer approves it, scoreboard shows the points"""
    team_id = teams["alpha"].id
    response = client.post(
        f"/teams/{team_id}/assignments/1/upload",
        files={"file": ("pyramid.jpg", b"x" * 1000, "image/jpeg")},
    )
    assert response.status_code == 200
    assert response.json()["completion"]["status"] == "submitted"

    pending = client.get("/review/submissions", params={"status": "pending"}).json()["submissions"]
    assert len(pending) == 1

    response = client.post("/review/approve", json={"team_id": team_id, "assignment_number": 1})
    assert response.status_code == 200
    assert response.json()["points"] == 2

    view = client.get(f"/teams/{team_id}/assignments/1").json()
    assert view["status"] == "approved"
    assert view["score"]["points"] == 2
    assert view["assignment"]["title"] == "Human pyramid"

    board = client.get("/api/scoreboard").json()
    assert board["teams"][0]["team_id"] == team_id
    assert board["teams"][0]["total_points"] == 2


def test_upload_wrong_type(client, running, teams):
    response = client.post(
        f"/teams/{teams['alpha'].id}/assignments/2/upload",
        files={"file": ("clip.jpg", b"x" * 100, "image/jpeg")},
    )
    assert response.status_code == 415
    assert response.json()["detail"]["error"] == "invalid_media_type"


def test_upload_storage_down(client, storage, running, teams):
    storage.failures = 10
    response = client.post(
        f"/teams/{teams['alpha'].id}/assignments/3/upload",
        files={"file": ("call.mp3", b"a" * 100, "audio/mpeg")},
    )
    assert response.status_code == 502


def test_jury_award_conflict(client, running, teams):
    body = {"team_id": teams["bravo"].id, "assignment_number": 4}
    assert client.post("/jury/award", json=body).status_code == 200
    response = client.post("/jury/creativity", json=body)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "already_completed"


def test_approve_without_submission(client, running, teams):
    response = client.post("/review/approve", json={"team_id": teams["alpha"].id, "assignment_number": 1})
    assert response.status_code == 404


def test_writes_refused_outside_game(client, session_id, teams):
    body = {"team_id": teams["alpha"].id, "assignment_number": 1}
    response = client.post("/jury/award", json=body)
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "phase_closed"


def test_progress_and_statuses(client, running, teams):
    team_id = teams["alpha"].id
    client.post("/jury/award", json={"team_id": team_id, "assignment_number": 2})
    client.post(
        f"/teams/{team_id}/assignments/3/upload",
        files={"file": ("call.mp3", b"a" * 100, "audio/mpeg")},
    )
    assert client.post("/review/reject", json={"team_id": team_id, "assignment_number": 3}).status_code == 200

    progress = client.get(f"/teams/{team_id}/progress").json()
    assert progress["completed"] == 1
    assert progress["rejected"] == 1
    assert progress["total_points"] == 3
    assert progress["total_assignments"] == 88

    statuses = client.get(f"/teams/{team_id}/statuses").json()["statuses"]
    assert [s["assignment_number"] for s in statuses] == [2, 3]

    assert client.get("/teams/team-ghost/progress").status_code == 404


def test_bulk_and_resync(client, running, teams):
    alpha, bravo = teams["alpha"].id, teams["bravo"].id
    for team_id in (alpha, bravo):
        client.post(
            f"/teams/{team_id}/assignments/4/upload",
            files={"file": ("any.png", b"p" * 50, "image/png")},
        )

    response = client.post("/review/bulk", json={
        "action": "approve",
        "items": [{"team_id": alpha, "assignment_number": 4}, {"team_id": bravo, "assignment_number": 4}],
    })
    assert response.json()["succeeded"] == 2

    response = client.post("/review/resync").json()
    assert response["checked"] == 2
    assert response["skipped"] == 2
    assert response["success"] is True


def test_reset_keeps_teams(client, running, teams):
    response = client.post("/admin/reset", json={"keep_teams": True})
    assert response.status_code == 200
    assert response.json()["session_id"] != running
    assert len(client.get("/admin/teams").json()["teams"]) == 2


def test_bulk_invalid_action(client, running, teams):
    response = client.post("/review/bulk", json={"action": "maybe", "items": []})
    assert response.status_code == 400


def test_reject_without_submission(client, running, teams):
    response = client.post("/review/reject", json={"team_id": teams["alpha"].id, "assignment_number": 1})
    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "no_submission"


def test_logbook_and_revoke(client, running, teams):
    """The logbook lists awarded scores newest first; revoking removes one"""
    alpha, bravo = teams["alpha"].id, teams["bravo"].id
    client.post("/jury/award", json={"team_id": alpha, "assignment_number": 1})
    client.post("/jury/award", json={"team_id": bravo, "assignment_number": 2})

    logbook = client.get("/review/logbook").json()
    assert logbook["count"] == 2
    assert logbook["entries"][0]["team_id"] == bravo

    only_jem = client.get("/review/logbook", params={"category": "JEM"}).json()
    assert [e["team_id"] for e in only_jem["entries"]] == [bravo]

    response = client.post("/jury/revoke", json={"team_id": bravo, "assignment_number": 2})
    assert response.status_code == 200
    assert response.json()["status"] == "not_started"
    assert client.get("/review/logbook").json()["count"] == 1

    response = client.post("/jury/revoke", json={"team_id": bravo, "assignment_number": 2})
    assert response.status_code == 409
