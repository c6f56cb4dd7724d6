"""
Best-effort media size reduction before upload

Images are re-encoded to a bounded size with Pillow. Large or long videos are replaced
by a frame collage (or a single thumbnail) rendered by ffmpeg. Every step falls back to
the original bytes on failure: reduction never blocks a submission.
"""
import io
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import BaseModel

from crazy88.config import UploadSettings


logger = logging.getLogger(__name__)

# (minimum original size in bytes, longest edge in px, JPEG quality)
IMAGE_TIERS: List[Tuple[int, int, int]] = [
    (8 * 1024 * 1024, 1280, 60),
    (4 * 1024 * 1024, 1600, 70),
    (1 * 1024 * 1024, 1920, 80),
]

COLLAGE_TILES = 4
COLLAGE_WIDTH = 480


class MediaError(RuntimeError):
    pass


class ReducedMedia(BaseModel):
    data: bytes
    content_type: str
    reduced: bool = False
    note: str = ""


def media_kind(content_type: Optional[str]) -> Optional[str]:
    """Map a MIME type to the evidence type it satisfies (photo, video, audio)"""
    major = (content_type or "").split("/", 1)[0].lower()
    return {"image": "photo", "video": "video", "audio": "audio"}.get(major)


def image_tier(size: int) -> Optional[Tuple[int, int]]:
    """Longest edge and JPEG quality for an image of this size, or None to keep it"""
    for min_bytes, max_edge, quality in IMAGE_TIERS:
        if size >= min_bytes:
            return max_edge, quality
    return None


def reduce_image(data: bytes, max_edge: int, quality: int) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        img = ImageOps.exif_transpose(img)
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        img.thumbnail((max_edge, max_edge), Image.LANCZOS)
        out = io.BytesIO()
        img.save(out, format="JPEG", quality=quality, optimize=True)
        return out.getvalue()


def _run(cmd: List[str], timeout: int) -> subprocess.CompletedProcess:
    try:
        p = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise MediaError(f"{cmd[0]} timeout ({timeout}s)") from e
    except FileNotFoundError as e:
        raise MediaError(f"{cmd[0]} not installed") from e
    if p.returncode != 0:
        raise MediaError(f"{cmd[0]} failed: {p.stderr[-500:]}")
    return p


def read_duration(path: Path, ffprobe_bin: str, timeout: int) -> float:
    p = _run([
        ffprobe_bin, "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ], timeout)
    try:
        return float(p.stdout.strip())
    except ValueError as e:
        raise MediaError(f"ffprobe returned no duration: {p.stdout!r}") from e


def render_collage(src: Path, dest: Path, duration: float, settings: UploadSettings) -> None:
    """One JPEG with COLLAGE_TILES frames spread over the clip"""
    step = max(duration / COLLAGE_TILES, 0.1)
    _run([
        settings.ffmpeg_bin, "-y", "-i", str(src),
        "-vf", f"fps=1/{step:.3f},scale={COLLAGE_WIDTH}:-2,tile=2x2",
        "-frames:v", "1", "-q:v", "3",
        str(dest),
    ], settings.ffmpeg_timeout)


def render_thumbnail(src: Path, dest: Path, at_seconds: float, settings: UploadSettings) -> None:
    _run([
        settings.ffmpeg_bin, "-y",
        "-ss", f"{at_seconds:.3f}",
        "-i", str(src),
        "-frames:v", "1", "-q:v", "2",
        str(dest),
    ], settings.ffmpeg_timeout)


class MediaProcessor:
    """Shrinks evidence files; CPU-bound, run off the event loop"""

    def __init__(self, settings: Optional[UploadSettings] = None):
        self.settings = settings or UploadSettings()

    def reduce(self, data: bytes, content_type: str) -> ReducedMedia:
        kind = media_kind(content_type)
        try:
            if kind == "photo":
                return self._reduce_image(data, content_type)
            if kind == "video":
                return self._reduce_video(data, content_type)
        except (MediaError, OSError, UnidentifiedImageError, Image.DecompressionBombError) as e:
            logger.warning(f"⚠️ Media reduction skipped ({content_type}, {len(data)} bytes): {e}")
        return ReducedMedia(data=data, content_type=content_type)

    def _reduce_image(self, data: bytes, content_type: str) -> ReducedMedia:
        tier = image_tier(len(data))
        if tier is None:
            return ReducedMedia(data=data, content_type=content_type)

        max_edge, quality = tier
        reduced = reduce_image(data, max_edge, quality)
        if len(reduced) >= len(data):
            return ReducedMedia(data=data, content_type=content_type)

        logger.info(f"🗜️ Image {len(data)} → {len(reduced)} bytes ({max_edge}px, q{quality})")
        return ReducedMedia(data=reduced, content_type="image/jpeg", reduced=True,
                            note=f"image {max_edge}px q{quality}")

    def _reduce_video(self, data: bytes, content_type: str) -> ReducedMedia:
        settings = self.settings
        with tempfile.TemporaryDirectory(prefix="crazy88-") as tmp:
            src = Path(tmp) / "input"
            src.write_bytes(data)
            duration = read_duration(src, settings.ffprobe_bin, settings.ffmpeg_timeout)

            if len(data) < settings.video_surrogate_bytes and duration <= settings.video_surrogate_seconds:
                return ReducedMedia(data=data, content_type=content_type)

            dest = Path(tmp) / "surrogate.jpg"
            try:
                render_collage(src, dest, duration, settings)
                note = "video collage"
            except MediaError as e:
                logger.warning(f"⚠️ Collage failed, using single thumbnail: {e}")
                render_thumbnail(src, dest, duration / 2, settings)
                note = "video thumbnail"

            surrogate = dest.read_bytes()

        logger.info(f"🎞️ Video {len(data)} bytes / {duration:.0f}s → {note} ({len(surrogate)} bytes)")
        return ReducedMedia(data=surrogate, content_type="image/jpeg", reduced=True, note=note)
