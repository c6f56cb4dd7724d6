"""
Global application state
Shared resources accessible across all modules
"""
from typing import Optional

from crazy88.config import Settings
from crazy88.core.clock import SessionClock
from crazy88.core.completion import CompletionWriters
from crazy88.core.scoreboard import ScoreboardRefresher
from crazy88.db.database import Database
from crazy88.services.upload import UploadPipeline

# Loaded at startup (see main.lifespan)
SETTINGS: Settings = Settings()

# Shared datastore; every durable fact lives here
DB: Optional[Database] = None

# Session clock service (phase gate + timer controls)
CLOCK: Optional[SessionClock] = None

# Canonical completion state machine
WRITERS: Optional[CompletionWriters] = None

# Evidence upload pipeline
UPLOADS: Optional[UploadPipeline] = None

# Holds the last committed scoreboard snapshot
SCOREBOARD: Optional[ScoreboardRefresher] = None


def get_db() -> Database:
    if DB is None:
        raise RuntimeError("Database is not initialised")
    return DB
