"""Episode thumbnails extracted from local video files with ffmpeg.

Design constraints:
  - Never show a console window (CREATE_NO_WINDOW on Windows).
  - 30-second timeout per invocation, one file at a time.
  - One retry at 10 seconds when seeking to the requested timestamp
    fails (the video is shorter than that).
  - Graceful degradation: returns ``None`` on any failure.
"""

import hashlib
import logging
import subprocess
from pathlib import Path
from typing import Iterable

from .progress import ProgressTracker
from .runtime import get_ffmpeg_path, check_executable, subprocess_kwargs

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_TIMESTAMP = 120  # seconds into the video
FALLBACK_TIMESTAMP = 10
_TIMEOUT = 30
THUMBNAIL_WIDTH = 480
PROGRESS_HEADER = "Generating thumbnails"


def thumbnail_filename(video_path: str, timestamp: int) -> str:
    """``md5("<path>_<timestamp>").jpg``"""
    digest = hashlib.md5(f"{video_path}_{timestamp}".encode("utf-8")).hexdigest()
    return f"{digest}.jpg"


class ThumbnailGenerator:
    """Extracts one still frame per video into a cache directory."""

    def __init__(self, cache_dir: str | Path, ffmpeg_path: str | None = None):
        self.cache_dir = Path(cache_dir)
        self.ffmpeg_path = ffmpeg_path or get_ffmpeg_path()
        # None means "not checked yet"
        self._available: bool | None = None

    def is_available(self) -> bool:
        """Probe ``ffmpeg -version`` once per generator."""
        if self._available is None:
            self._available = check_executable(self.ffmpeg_path)
        return self._available

    def generate(
        self,
        video_path: str | Path,
        timestamp: int = DEFAULT_TIMESTAMP,
        progress: ProgressTracker | None = None,
    ) -> str | None:
        """
        Extract a frame from *video_path* at *timestamp* seconds.

        An existing thumbnail for the same (path, timestamp) is reused.

        Returns:
            Path to the JPEG thumbnail, or None when ffmpeg is missing or
            extraction failed
        """
        video_path = str(video_path)
        result = None
        if self.is_available():
            result = self._extract(video_path, timestamp)
            if result is None and timestamp > FALLBACK_TIMESTAMP:
                log.debug("Retrying %s at %ds", Path(video_path).name, FALLBACK_TIMESTAMP)
                result = self._extract(video_path, FALLBACK_TIMESTAMP)
        if progress is not None:
            progress.advance(PROGRESS_HEADER, Path(video_path).name)
        return result

    def generate_many(
        self,
        video_paths: Iterable[str],
        timestamp: int = DEFAULT_TIMESTAMP,
        progress: ProgressTracker | None = None,
    ) -> dict[str, str | None]:
        """Generate thumbnails sequentially."""
        paths = list(video_paths)
        if progress is not None and paths:
            progress.start(PROGRESS_HEADER, len(paths))
        return {p: self.generate(p, timestamp, progress) for p in paths}

    # -- internal ---------------------------------------------------------

    def _extract(self, video_path: str, timestamp: int) -> str | None:
        output = self.cache_dir / thumbnail_filename(video_path, timestamp)
        if output.is_file():
            return str(output)

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.ffmpeg_path,
            "-ss", str(timestamp),
            "-i", video_path,
            "-vframes", "1",
            "-q:v", "2",
            "-vf", f"scale={THUMBNAIL_WIDTH}:-1",
            "-y",
            str(output),
        ]
        try:
            result = subprocess.run(cmd, **subprocess_kwargs(_TIMEOUT))
        except subprocess.TimeoutExpired:
            log.debug("ffmpeg timeout at %ds: %s", timestamp, video_path)
            return None
        except (FileNotFoundError, OSError) as exc:
            log.debug("ffmpeg error: %s", exc)
            return None

        if result.returncode != 0 or not output.is_file():
            return None
        return str(output)
