"""
Tests for the evidence upload pipeline and media reduction
"""
import io

import pytest
from PIL import Image

from crazy88.config import UploadSettings
from crazy88.core import ledger, submissions
from crazy88.errors import UploadError, ValidationError
from crazy88.models import AssignmentInfo, AssignmentState
from crazy88.services.media import MediaProcessor, image_tier, media_kind, reduce_image
from crazy88.services.storage import ObjectStorage
from crazy88.services.upload import UploadPipeline, allowed_kinds, object_path


def _jpeg(width, height):
    out = io.BytesIO()
    Image.new("RGB", (width, height), (200, 40, 40)).save(out, format="JPEG")
    return out.getvalue()


def test_upload_creates_submission(db, pipeline, storage, running, teams):
    """A valid photo is stored, recorded and moves the assignment to submitted"""
    team_id = teams["alpha"].id
    result = pipeline.process(running, team_id, 1, "pyramid.jpg", "image/jpeg", b"x" * 2048)

    assert result.attempts == 1
    assert result.evidence_type == "photo"
    assert result.completion.success
    assert result.evidence_url.startswith("https://media.test/")
    assert len(storage.objects) == 1

    submission = submissions.get_submission(db, team_id, 1, running)
    assert submission.id == result.submission_id
    assert ledger.get_state(db, team_id, 1, running) == AssignmentState.submitted


def test_oversized_file_rejected_before_network(pipeline, storage, running, teams):
    with pytest.raises(ValidationError) as exc:
        pipeline.process(running, teams["alpha"].id, 1, "big.jpg", "image/jpeg", b"x" * (1024 * 1024 + 1))
    assert exc.value.code == "file_too_large"
    assert storage.calls == []


def test_wrong_media_type_rejected_before_network(pipeline, storage, running, teams):
    """Assignment 2 needs a video"""
    with pytest.raises(ValidationError) as exc:
        pipeline.process(running, teams["alpha"].id, 2, "photo.jpg", "image/jpeg", b"x" * 100)
    assert exc.value.code == "invalid_media_type"
    assert storage.calls == []


def test_empty_file_rejected(pipeline, storage, running, teams):
    with pytest.raises(ValidationError) as exc:
        pipeline.process(running, teams["alpha"].id, 1, "empty.jpg", "image/jpeg", b"")
    assert exc.value.code == "empty_file"
    assert storage.calls == []


def test_upload_refused_when_phase_closed(pipeline, storage, clock, session_id, teams):
    clock.set_duration(session_id, 600)
    with pytest.raises(ValidationError) as exc:
        pipeline.process(session_id, teams["alpha"].id, 1, "p.jpg", "image/jpeg", b"x" * 100)
    assert exc.value.code == "phase_closed"
    assert storage.calls == []


def test_upload_refused_after_completion(pipeline, writers, storage, running, teams):
    writers.award_via_jury(running, teams["alpha"].id, 1)
    with pytest.raises(ValidationError) as exc:
        pipeline.process(running, teams["alpha"].id, 1, "p.jpg", "image/jpeg", b"x" * 100)
    assert exc.value.code == "already_completed"
    assert storage.calls == []


def test_retry_with_linear_backoff(pipeline, storage, sleeps, running, teams):
    """Two failures then success: three attempts, backoff 0.5s then 1.0s"""
    storage.failures = 2
    result = pipeline.process(running, teams["alpha"].id, 3, "call.m4a", "audio/mp4", b"a" * 500)

    assert result.attempts == 3
    assert len(storage.calls) == 3
    assert sleeps == [0.5, 1.0]


def test_retry_exhausted_writes_nothing(db, pipeline, storage, sleeps, running, teams):
    storage.failures = 5
    team_id = teams["alpha"].id

    with pytest.raises(UploadError) as exc:
        pipeline.process(running, team_id, 1, "p.jpg", "image/jpeg", b"x" * 100)

    assert exc.value.attempts == 3
    assert len(storage.calls) == 3
    assert sleeps == [0.5, 1.0]
    assert submissions.get_submission(db, team_id, 1, running) is None
    assert ledger.get_status(db, team_id, 1, running) is None


def test_allowed_kinds():
    assert allowed_kinds(AssignmentInfo(number=1, requires_photo=True)) == {"photo"}
    assert allowed_kinds(AssignmentInfo(number=2)) == {"photo", "video", "audio"}


def test_object_path():
    path = object_path("team-a", 12, "IMG_0001.HEIC", "image/jpeg")
    assert path.startswith("team-a/12_")
    assert path.endswith(".jpg")


def test_media_kind():
    assert media_kind("image/png") == "photo"
    assert media_kind("video/quicktime") == "video"
    assert media_kind("audio/mpeg") == "audio"
    assert media_kind("application/pdf") is None
    assert media_kind(None) is None


# ==================== MEDIA REDUCTION ====================

def test_image_tiers():
    assert image_tier(500 * 1024) is None
    assert image_tier(2 * 1024 * 1024) == (1920, 80)
    assert image_tier(5 * 1024 * 1024) == (1600, 70)
    assert image_tier(9 * 1024 * 1024) == (1280, 60)


def test_reduce_image_limits_longest_edge():
    reduced = reduce_image(_jpeg(3000, 1500), 1280, 60)
    with Image.open(io.BytesIO(reduced)) as img:
        assert img.size == (1280, 640)
        assert img.format == "JPEG"


def test_small_image_kept_as_is():
    data = _jpeg(100, 100)
    result = MediaProcessor().reduce(data, "image/jpeg")
    assert result.data == data
    assert result.reduced is False


def test_unreadable_image_falls_back_to_original():
    """Reduction is best effort: a broken file is uploaded unchanged"""
    data = b"\x00" * (2 * 1024 * 1024)
    result = MediaProcessor().reduce(data, "image/jpeg")
    assert result.data == data
    assert result.content_type == "image/jpeg"


def test_audio_is_never_reduced():
    data = b"a" * 10
    assert MediaProcessor().reduce(data, "audio/mpeg").data == data


def test_phase_closing_during_upload_writes_nothing(db, writers, clock, running, teams, now):
    """If the game ends while the file is being stored, no submission is recorded"""

    class SlowStorage(ObjectStorage):
        def __init__(self):
            self.calls = []

        def upload(self, data, path, content_type=None):
            self.calls.append(path)
            now.advance(3600 + 301)
            clock.expire_if_elapsed(running)
            return f"https://media.test/{path}"

    storage = SlowStorage()
    pipeline = UploadPipeline(writers, storage, settings=UploadSettings(max_bytes=1024))
    team_id = teams["alpha"].id

    with pytest.raises(ValidationError) as exc:
        pipeline.process(running, team_id, 1, "p.jpg", "image/jpeg", b"x" * 100)

    assert exc.value.code == "phase_closed"
    assert len(storage.calls) == 1
    assert submissions.get_submission(db, team_id, 1, running) is None
    assert ledger.get_status(db, team_id, 1, running) is None
