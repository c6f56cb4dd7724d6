"""
Shared fixtures: temporary SQLite database, small catalog, fixed clock, fake storage
"""
from datetime import datetime, timedelta, timezone

import pytest

from crazy88.catalog import load_catalog, seed_catalog
from crazy88.config import UploadSettings
from crazy88.core.clock import SessionClock
from crazy88.core.completion import CompletionWriters
from crazy88.core.session import create_session
from crazy88.db.database import Database
from crazy88.services.storage import ObjectStorage
from crazy88.services.team_registry import register_team
from crazy88.services.upload import UploadPipeline


CATALOG_CSV = """number,title,description,points_base,requires_photo,requires_video,requires_audio,is_active
1,Human pyramid,Build a pyramid of six people,2,1,0,0,1
2,Sing in the square,Sing a song in the town square,3,0,1,0,1
3,Bird call,Record a convincing bird call,1,0,0,1,1
4,Anything goes,Surprise the jury,2,0,0,0,1
5,Retired,No longer playable,1,1,0,0,0
"""


class FixedClock:
    """Controllable replacement for utcnow()"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeStorage(ObjectStorage):
    """In-memory object store that can fail a given number of times first"""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = []
        self.objects = {}

    def upload(self, data, path, content_type=None):
        self.calls.append(path)
        if self.failures > 0:
            self.failures -= 1
            raise ConnectionError("storage unavailable")
        self.objects[path] = (data, content_type)
        return f"https://media.test/{path}"


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "assignments.csv"
    path.write_text(CATALOG_CSV, encoding="utf-8")
    return path


@pytest.fixture
def db(tmp_path, catalog_path):
    database = Database(f"sqlite:///{tmp_path / 'game.db'}")
    database.create_schema()
    seed_catalog(database, load_catalog(str(catalog_path)))
    yield database
    database.dispose()


@pytest.fixture
def now():
    return FixedClock(datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def clock(db, now):
    return SessionClock(db, grace_seconds=300, now_fn=now)


@pytest.fixture
def session_id(db):
    return create_session(db)


@pytest.fixture
def running(clock, session_id):
    """Session with a one hour timer that has just started"""
    clock.set_duration(session_id, 3600)
    clock.start(session_id)
    return session_id


@pytest.fixture
def teams(db, session_id):
    return {
        "alpha": register_team(db, session_id, "Alpha", "MR"),
        "bravo": register_team(db, session_id, "Bravo", "JEM"),
    }


@pytest.fixture
def writers(db, clock):
    return CompletionWriters(db, clock)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def pipeline(writers, storage, sleeps):
    settings = UploadSettings(max_bytes=1024 * 1024, max_attempts=3, backoff_seconds=0.5)
    return UploadPipeline(writers, storage, settings=settings, sleep=sleeps.append)
