"""
FastAPI main application
Crazy 88 - Assignment completion and score synchronisation server

Modular architecture with separated API routers in crazy88/api/:
- health.py: Health check and clock state
- admin.py: Timer controls, double points, announcements, reset, teams
- jury.py: Direct jury awards and creativity bonus
- review.py: Approve / reject / flag submissions, bulk review, score resync
- submission.py: Evidence upload for teams
- team.py: Team statuses and progress
- scoreboard.py: Public scoreboard

All routers access shared state via the crazy88.state module.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crazy88 import state
from crazy88.catalog import load_catalog, seed_catalog
from crazy88.config import Settings, load_settings
from crazy88.core.clock import SessionClock
from crazy88.core.completion import CompletionWriters
from crazy88.core.scoreboard import ScoreboardRefresher, load_snapshot
from crazy88.core.session import find_active_session, get_active_session
from crazy88.db.database import Database
from crazy88.services.storage import ObjectStorage, S3ObjectStorage
from crazy88.services.upload import UploadPipeline
from crazy88.utils import utcnow

# Import all API routers
from crazy88.api import admin, health, jury, review, scoreboard, submission, team


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def init_state(settings: Settings, db: Database, storage: ObjectStorage,
               now_fn: Callable = utcnow, sleep: Optional[Callable[[float], None]] = None) -> None:
    """
    Wire the services into the global state

    Args:
        settings: Loaded configuration
        db: Datastore with schema and catalog in place
        storage: Object store for evidence files
        now_fn: Clock source
        sleep: Upload backoff sleep (defaults to time.sleep)
    """
    state.SETTINGS = settings
    state.DB = db
    state.CLOCK = SessionClock(db, grace_seconds=settings.clock.grace_seconds, now_fn=now_fn)
    state.WRITERS = CompletionWriters(db, state.CLOCK, scoring=settings.scoring)

    upload_kwargs = {"sleep": sleep} if sleep is not None else {}
    state.UPLOADS = UploadPipeline(state.WRITERS, storage, settings=settings.upload, **upload_kwargs)

    async def fetch():
        session_id = await asyncio.to_thread(get_active_session, db)
        return await asyncio.to_thread(
            load_snapshot, db, session_id, settings.scoreboard, settings.scoring.creativity_points
        )

    state.SCOREBOARD = ScoreboardRefresher(fetch, interval=settings.scoreboard.poll_seconds)


async def tick_clock(interval: float) -> None:
    """Stop the active session's timer once it runs out"""
    while True:
        try:
            session_id = await asyncio.to_thread(find_active_session, state.get_db())
            if session_id:
                await asyncio.to_thread(state.CLOCK.expire_if_elapsed, session_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Clock tick failed: {e}", exc_info=True)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    settings = load_settings()

    db = Database(settings.database_url)
    db.create_schema()
    try:
        catalog = load_catalog(settings.catalog_path)
        seed_catalog(db, catalog)
    except Exception as e:
        logger.error(f"❌ Failed to load assignment catalog: {e}")
        raise

    init_state(settings, db, S3ObjectStorage(settings.storage))
    session_id = get_active_session(db)
    logger.info(f"✅ Server started with {len(catalog)} assignments (session {session_id})")

    # Timer ticker and scoreboard poller run as separate tasks
    tasks = [
        asyncio.create_task(tick_clock(settings.clock.tick_seconds)),
        asyncio.create_task(state.SCOREBOARD.run()),
    ]

    yield

    # Shutdown
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    db.dispose()
    logger.info("🛑 Server shutting down")


# Create FastAPI app
app = FastAPI(
    title="Crazy 88 - Game Server",
    description="Assignment completion state machine and score synchronisation for Crazy 88",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== INCLUDE ROUTERS ====================

# Health check (GET /, GET /clock)
app.include_router(health.router)

# Admin endpoints (POST /admin/clock/start, /admin/reset, /admin/teams, ...)
app.include_router(admin.router)

# Jury endpoints (POST /jury/award, /jury/creativity)
app.include_router(jury.router)

# Review endpoints (POST /review/approve, /review/reject, /review/resync, ...)
app.include_router(review.router)

# Evidence upload (POST /teams/{team_id}/assignments/{n}/upload)
app.include_router(submission.router)

# Team reads (GET /teams/{team_id}/statuses, /progress, /assignments/{n})
app.include_router(team.router)

# Scoreboard (GET /api/scoreboard)
app.include_router(scoreboard.router)


# ==================== RUN SERVER ====================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
