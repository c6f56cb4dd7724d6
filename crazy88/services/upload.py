"""
Upload pipeline - turns a team's evidence file into a submission

  validate → reduce → upload (bounded retry) → submission record → submit_assignment

Validation happens before any network call. When the upload retry budget runs out an
UploadError is raised and nothing is written to the datastore.
"""
import logging
import mimetypes
import time
from pathlib import PurePosixPath
from typing import Callable, Optional, Set, Tuple

from crazy88 import catalog
from crazy88.config import UploadSettings
from crazy88.core import ledger, submissions
from crazy88.core.completion import CompletionWriters
from crazy88.errors import UploadError, ValidationError
from crazy88.models import AssignmentInfo, COMPLETED_STATES, UploadResult
from crazy88.services.media import MediaProcessor, media_kind
from crazy88.services.storage import ObjectStorage
from crazy88.services.team_registry import get_team_in_session
from crazy88.utils import utcnow


logger = logging.getLogger(__name__)

ALL_KINDS = {"photo", "video", "audio"}


def allowed_kinds(assignment: AssignmentInfo) -> Set[str]:
    """Evidence types an assignment accepts; any type when none is required"""
    kinds = set()
    if assignment.requires_photo:
        kinds.add("photo")
    if assignment.requires_video:
        kinds.add("video")
    if assignment.requires_audio:
        kinds.add("audio")
    return kinds or set(ALL_KINDS)


def object_path(team_id: str, assignment_number: int, filename: str, content_type: str) -> str:
    suffix = PurePosixPath(filename or "").suffix.lower()
    if content_type == "image/jpeg" and suffix not in (".jpg", ".jpeg"):
        suffix = ".jpg"
    if not suffix:
        suffix = mimetypes.guess_extension(content_type or "") or ".bin"
    stamp = int(utcnow().timestamp() * 1000)
    return f"{team_id}/{assignment_number}_{stamp}{suffix}"


class UploadPipeline:
    """
    Validate, shrink and store a team's evidence, then submit the assignment

    Args:
        writers: Completion writers (also provides db and clock)
        storage: Object store adapter
        settings: Size limit and retry policy
        media: Media reducer
        sleep: Backoff sleep, replaceable in tests
    """

    def __init__(self, writers: CompletionWriters, storage: ObjectStorage,
                 settings: Optional[UploadSettings] = None,
                 media: Optional[MediaProcessor] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.writers = writers
        self.db = writers.db
        self.storage = storage
        self.settings = settings or UploadSettings()
        self.media = media or MediaProcessor(self.settings)
        self.sleep = sleep

    def validate(self, session_id: str, team_id: str, assignment_number: int,
                 content_type: str, size: int) -> str:
        """
        Check the file and the assignment before anything leaves the process

        Returns:
            Evidence type of the file (photo, video or audio)

        Raises:
            ValidationError: On any failed precondition
        """
        if size <= 0:
            raise ValidationError("Empty file", code="empty_file")
        if size > self.settings.max_bytes:
            raise ValidationError(
                f"File is {size} bytes, the limit is {self.settings.max_bytes}", code="file_too_large"
            )

        assignment = catalog.get_assignment(self.db, assignment_number)
        if assignment is None or not assignment.is_active:
            raise ValidationError(f"Assignment {assignment_number} is not available",
                                  code="unknown_assignment")

        kind = media_kind(content_type)
        accepted = allowed_kinds(assignment)
        if kind not in accepted:
            raise ValidationError(
                f"{content_type or 'unknown type'} not accepted for assignment {assignment_number} "
                f"(expects {', '.join(sorted(accepted))})",
                code="invalid_media_type",
            )

        if get_team_in_session(self.db, team_id, session_id) is None:
            raise ValidationError(f"Team {team_id} is not part of this session", code="unknown_team")

        self._check_writable(session_id, team_id, assignment_number)
        return kind

    def _check_writable(self, session_id: str, team_id: str, assignment_number: int) -> None:
        self.writers.clock.require_open(session_id)
        if ledger.get_state(self.db, team_id, assignment_number, session_id) in COMPLETED_STATES:
            raise ValidationError(f"Assignment {assignment_number} is already completed",
                                  code="already_completed")

    def upload_with_retry(self, data: bytes, path: str, content_type: str) -> Tuple[str, int]:
        """
        Upload with a fixed attempt cap and linear backoff between attempts

        Returns:
            (url, attempts)

        Raises:
            UploadError: When every attempt failed
        """
        attempts = self.settings.max_attempts
        last_error = None
        for attempt in range(1, attempts + 1):
            try:
                url = self.storage.upload(data, path, content_type)
                return url, attempt
            except Exception as e:
                last_error = e
                logger.warning(f"⚠️ Upload attempt {attempt}/{attempts} failed for {path}: {e}")
                if attempt < attempts:
                    self.sleep(self.settings.backoff_seconds * attempt)

        raise UploadError(f"Upload failed after {attempts} attempts: {last_error}", attempts=attempts)

    def process(self, session_id: str, team_id: str, assignment_number: int,
                filename: str, content_type: str, data: bytes) -> UploadResult:
        """
        Run the whole pipeline for one file

        Raises:
            ValidationError: File or assignment precondition failed (no network call made)
            UploadError: Retry budget exhausted (no datastore write made)
            TransientStoreError: Submission record could not be written
        """
        kind = self.validate(session_id, team_id, assignment_number, content_type, len(data))

        reduced = self.media.reduce(data, content_type)
        path = object_path(team_id, assignment_number, filename, reduced.content_type)
        url, attempts = self.upload_with_retry(reduced.data, path, reduced.content_type)

        # The phase can close while media is processed; gate again before writing
        self._check_writable(session_id, team_id, assignment_number)

        submission_id = submissions.record_submission(
            self.db, team_id, assignment_number, session_id,
            evidence_url=url, evidence_type=kind, evidence_size=len(reduced.data),
            content_type=reduced.content_type,
        )
        completion = self.writers.submit_assignment(session_id, team_id, assignment_number,
                                                    submission_id=submission_id)
        if not completion.success:
            logger.warning(
                f"⚠️ Submission {submission_id} stored but not submitted "
                f"(team {team_id} #{assignment_number}): {completion.error}"
            )

        logger.info(
            f"📤 Team {team_id} #{assignment_number}: {kind} uploaded "
            f"({len(data)} → {len(reduced.data)} bytes, {attempts} attempt(s))"
        )
        return UploadResult(
            submission_id=submission_id,
            evidence_url=url,
            evidence_type=kind,
            original_size=len(data),
            stored_size=len(reduced.data),
            attempts=attempts,
            completion=completion,
        )
