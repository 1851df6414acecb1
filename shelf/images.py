"""On-disk cache of remote artwork (posters, banners, episode stills)."""
import hashlib
import json
import logging
import shutil
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable
from urllib.parse import urlparse

import requests

from .models import SeriesRecord
from .progress import ProgressTracker

log = logging.getLogger(__name__)

INDEX_FILE = "cache-index.json"
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif"}
DEFAULT_EXTENSION = ".jpg"
BATCH_SIZE = 5
BATCH_PAUSE = 0.1
DOWNLOAD_TIMEOUT = 15
PROGRESS_HEADER = "Image caching"

HEADERS = {
    "User-Agent": "AnimeShelf/1.0",
    "Accept": "image/*",
}


def cache_filename(url: str) -> str:
    """``md5(url)`` plus the URL's image extension (``.jpg`` by default)."""
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    ext = Path(urlparse(url).path).suffix.lower()
    if ext not in IMAGE_EXTENSIONS:
        ext = DEFAULT_EXTENSION
    return f"{digest}{ext}"


class ImageCache:
    """Downloads images once and serves them from a local directory.

    ``cache-index.json`` maps each original URL to its local file.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cache_dir = Path(cache_dir)
        self.session = session or requests.Session()
        self._sleep = sleep
        self._lock = threading.Lock()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._index: dict[str, dict[str, Any]] = self._load_index()

    @property
    def index_path(self) -> Path:
        return self.cache_dir / INDEX_FILE

    # -- index ------------------------------------------------------------

    def _load_index(self) -> dict[str, dict[str, Any]]:
        if self.index_path.exists():
            try:
                with open(self.index_path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                log.warning("Image cache index unreadable, rebuilding: %s", e)
        return {}

    def _save_index(self) -> None:
        try:
            with open(self.index_path, "w", encoding="utf-8") as f:
                json.dump(self._index, f, indent=2, ensure_ascii=False)
        except OSError as e:
            log.warning("Could not write image cache index: %s", e)

    # -- public API -------------------------------------------------------

    def get_cached_path(self, url: str | None) -> str | None:
        """Local path of a cached URL, or None when it is not cached."""
        if not url:
            return None
        with self._lock:
            entry = self._index.get(url)
        if entry and Path(entry["local_path"]).is_file():
            return entry["local_path"]
        return None

    def is_cached(self, url: str | None) -> bool:
        return self.get_cached_path(url) is not None

    def cache_image(self, url: str | None, progress: ProgressTracker | None = None) -> str | None:
        """
        Download *url* into the cache unless it is already there.

        Returns:
            The local file path, or None when the download failed
        """
        if not url:
            return None

        local = self.get_cached_path(url)
        if local is None:
            local = self._download(url)
        if progress is not None:
            progress.advance(PROGRESS_HEADER, cache_filename(url))
        return local

    def _download(self, url: str) -> str | None:
        try:
            response = self.session.get(url, headers=HEADERS, timeout=DOWNLOAD_TIMEOUT)
        except requests.exceptions.RequestException as e:
            log.warning("Image download failed for %s: %s", url, e)
            return None
        if not response.ok:
            log.warning("Image download failed for %s: HTTP %s", url, response.status_code)
            return None

        local_path = self.cache_dir / cache_filename(url)
        try:
            local_path.write_bytes(response.content)
        except OSError as e:
            log.warning("Could not store image %s: %s", local_path, e)
            return None

        with self._lock:
            self._index[url] = {
                "original_url": url,
                "local_path": str(local_path),
                "cached_at": datetime.now().isoformat(timespec="seconds"),
            }
            self._save_index()
        return str(local_path)

    def cache_images(
        self,
        urls: Iterable[str | None],
        progress: ProgressTracker | None = None,
    ) -> dict[str, str | None]:
        """
        Cache several images, at most ``BATCH_SIZE`` downloads at a time
        with a short pause between batches.

        Returns:
            Mapping of each URL to its local path (None on failure)
        """
        unique = list(dict.fromkeys(u for u in urls if u))
        results: dict[str, str | None] = {}
        if not unique:
            return results
        if progress is not None:
            progress.start(PROGRESS_HEADER, len(unique))

        with ThreadPoolExecutor(max_workers=BATCH_SIZE) as pool:
            for start in range(0, len(unique), BATCH_SIZE):
                batch = unique[start:start + BATCH_SIZE]
                paths = pool.map(lambda u: self.cache_image(u, progress), batch)
                results.update(zip(batch, paths))
                if start + BATCH_SIZE < len(unique):
                    self._sleep(BATCH_PAUSE)
        return results

    def clear(self) -> None:
        """Remove every cached image and reset the index."""
        with self._lock:
            shutil.rmtree(self.cache_dir, ignore_errors=True)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._index = {}
            self._save_index()

    def stats(self) -> tuple[int, int]:
        """Return ``(file_count, size_bytes)`` of the cached images."""
        count = 0
        size = 0
        for path in self.cache_dir.iterdir():
            if path.name == INDEX_FILE or not path.is_file():
                continue
            try:
                size += path.stat().st_size
            except OSError:
                continue
            count += 1
        return count, size

    def delete_series_images(self, record: SeriesRecord) -> int:
        """Delete the cached poster, banner and episode stills of a record.

        Returns:
            Number of files removed
        """
        urls = [record.poster, record.banner] + [ep.thumbnail for ep in record.episodes]
        deleted = 0
        with self._lock:
            for url in filter(None, urls):
                entry = self._index.pop(url, None)
                if entry is None:
                    continue
                path = Path(entry["local_path"])
                try:
                    path.unlink()
                    deleted += 1
                except FileNotFoundError:
                    pass
                except OSError as e:
                    log.warning("Could not delete cached image %s: %s", path, e)
            self._save_index()
        log.info("Deleted %d cached image(s) for %s", deleted, record.id)
        return deleted
