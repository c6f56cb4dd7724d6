"""
Submission endpoint: teams upload evidence for an assignment
"""
import logging

from fastapi import APIRouter, File, UploadFile

from crazy88 import state
from crazy88.api.deps import active_session_id, http_error
from crazy88.errors import Crazy88Error


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teams", tags=["submission"])


@router.post("/{team_id}/assignments/{assignment_number}/upload")
def upload_evidence(team_id: str, assignment_number: int, file: UploadFile = File(...)):
    """
    Upload a photo, video or audio file as evidence

    The file is checked (size, type, assignment, team, timer) before it is sent to
    storage. On success the assignment moves to `submitted` and waits for review.

    Returns:
        Upload result with the submission id and the completion outcome
    """
    data = file.file.read()
    content_type = file.content_type or "application/octet-stream"

    try:
        result = state.UPLOADS.process(
            active_session_id(), team_id, assignment_number,
            filename=file.filename or "", content_type=content_type, data=data,
        )
    except Crazy88Error as e:
        logger.warning(f"⚠️ Upload rejected for team {team_id} #{assignment_number}: {e.message}")
        raise http_error(e)

    return {"success": result.completion.success, **result.model_dump()}
