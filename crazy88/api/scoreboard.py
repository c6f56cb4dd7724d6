"""
Public scoreboard endpoint
"""
from fastapi import APIRouter

from crazy88 import state


router = APIRouter(prefix="/api", tags=["scoreboard"])


@router.get("/scoreboard")
async def get_scoreboard():
    """
    Last committed scoreboard snapshot

    The snapshot is refreshed in the background every poll interval; the first call
    after startup fetches one directly.
    """
    snapshot = await state.SCOREBOARD.current()
    return snapshot.model_dump()


@router.post("/scoreboard/refresh")
async def refresh_scoreboard():
    """Force a refresh outside the polling interval"""
    snapshot = await state.SCOREBOARD.refresh()
    if snapshot is None:
        return {"success": False, "message": "A newer refresh superseded this one"}
    return {"success": True, **snapshot.model_dump()}
