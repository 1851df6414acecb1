"""Library scan orchestration.

A scan classifies the configured roots, reconciles every media unit one
after the other and writes the metadata store once at the end.  Only one
scan runs at a time; ``cancel()`` stops a scan at the next unit boundary.
"""
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable

import requests

from .errors import ScanError
from .images import ImageCache
from .models import MediaUnit
from .progress import ProgressTracker
from .providers import build_providers
from .reconcile import ReconcileState, ReconciliationEngine
from .scanner import classify
from .settings import SettingsManager
from .store import MetadataStore
from .thumbnails import ThumbnailGenerator

log = logging.getLogger(__name__)

SCAN_PROGRESS = "Scanning media"
IMAGE_CACHE_DIR = "image-cache"
THUMBNAIL_DIR = "thumbnails"


@dataclass
class ScanResult:
    """Summary of one scan."""
    roots: list[str] = field(default_factory=list)
    failed_roots: list[str] = field(default_factory=list)
    units: int = 0
    processed: int = 0
    persisted: int = 0
    purged: int = 0
    cache_hits: int = 0
    local_only: int = 0
    cancelled: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class Library:
    """Owns the scan lifecycle for one metadata store."""

    def __init__(
        self,
        settings: SettingsManager,
        store: MetadataStore,
        engine: ReconciliationEngine,
        progress: ProgressTracker | None = None,
        images: ImageCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
        log_fn: Callable[[str], None] | None = None,
    ):
        self.settings = settings
        self.store = store
        self.engine = engine
        self.progress = progress or ProgressTracker()
        self.images = images if images is not None else engine.images
        self._sleep = sleep
        self._log = log_fn or (lambda msg: None)
        self._lock = threading.Lock()
        self._cancel = threading.Event()

    @classmethod
    def from_settings(
        cls,
        settings: SettingsManager,
        progress: ProgressTracker | None = None,
        log_fn: Callable[[str], None] | None = None,
        session: requests.Session | None = None,
    ) -> "Library":
        """Wire the default collaborators, keeping all data next to the settings file."""
        data_dir = settings.directory
        session = session or requests.Session()
        providers = build_providers(
            settings.get("provider_order"),
            tvdb_api_key=settings.get("tvdb_api_key"),
            session=session,
        )
        images = ImageCache(data_dir / IMAGE_CACHE_DIR, session=session) if settings.get("cache_images") else None
        thumbnails = ThumbnailGenerator(data_dir / THUMBNAIL_DIR) if settings.get("generate_thumbnails") else None
        engine = ReconciliationEngine(
            providers,
            images=images,
            thumbnails=thumbnails,
            log_fn=log_fn,
            search_limit=settings.get("search_limit"),
            thumbnail_timestamp=settings.get("thumbnail_timestamp"),
        )
        return cls(
            settings,
            MetadataStore(data_dir),
            engine,
            progress=progress,
            images=images,
            log_fn=log_fn,
        )

    # -- Public API ------------------------------------------------

    @property
    def is_scanning(self) -> bool:
        return self._lock.locked()

    def cancel(self) -> None:
        """
        Stop the running scan before its next media unit.

        A cancel issued while no scan is running applies to the next one.
        """
        self._cancel.set()

    def scan(self, folder: str | Path) -> ScanResult:
        """
        Scan one folder.

        Raises:
            ScanError: If the folder cannot be read (the store is untouched)
        """
        with self._lock:
            try:
                result = ScanResult(roots=[str(folder)])
                units = classify(folder)
                return self._process(units, result)
            finally:
                self._cancel.clear()

    def scan_all(self) -> ScanResult:
        """
        Scan every configured folder source.

        A source that cannot be read is logged and skipped.

        Raises:
            ScanError: If no configured source could be read
        """
        with self._lock:
            try:
                roots = self.settings.folder_sources()
                result = ScanResult(roots=roots)
                units: list[MediaUnit] = []
                for root in roots:
                    try:
                        units.extend(classify(root))
                    except ScanError as e:
                        log.error("%s", e)
                        self._log(f"[ERROR] {e}")
                        result.failed_roots.append(root)
                if roots and len(result.failed_roots) == len(roots):
                    raise ScanError("None of the configured folders could be read")
                return self._process(units, result)
            finally:
                self._cancel.clear()

    def delete_series(self, series_id: str) -> bool:
        """Remove a record and its cached images.  False if it did not exist."""
        with self._lock:
            record = self.store.delete(series_id)
        if record is None:
            return False
        if self.images is not None:
            self.images.delete_series_images(record)
        self._log(f"Deleted {series_id}")
        return True

    # -- internal --------------------------------------------------

    def _process(self, units: list[MediaUnit], result: ScanResult) -> ScanResult:
        result.units = len(units)
        self._log(f"Found {len(units)} media unit(s)")

        existing = self.store.load()
        updated = {}
        purged = set()
        delay = self.settings.get("unit_delay")

        self.progress.start(SCAN_PROGRESS, len(units))
        try:
            for index, unit in enumerate(units):
                if self._cancel.is_set():
                    result.cancelled = True
                    log.info("Scan cancelled after %d of %d unit(s)", index, len(units))
                    self._log("Scan cancelled.")
                    break

                r = self.engine.run(unit, existing.get(unit.id), self.progress)
                result.processed += 1
                if r.record is not None:
                    updated[unit.id] = r.record
                    result.persisted += 1
                else:
                    purged.add(unit.id)
                    result.purged += 1
                if ReconcileState.CACHE_HIT in r.history:
                    result.cache_hits += 1
                if ReconcileState.LOCAL_ONLY in r.history:
                    result.local_only += 1
                self.progress.advance(SCAN_PROGRESS, unit.name)

                if r.queried_providers and index < len(units) - 1:
                    self._sleep(delay)
        finally:
            self.progress.close()

        merged = {**existing, **updated}
        for series_id in purged:
            merged.pop(series_id, None)
        written = self.store.save(merged)

        self.settings.mark_scanned()
        self.settings.save()
        log.info(
            "Scan finished: %d unit(s), %d record(s) updated, %d in store",
            result.units, result.persisted, written,
        )
        return result
