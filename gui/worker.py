"""Background worker that runs library scans off the UI thread."""
from pathlib import Path

from PySide6.QtCore import QObject, Signal

from shelf.errors import ShelfError
from shelf.library import SCAN_PROGRESS, Library
from shelf.progress import ProgressTracker
from shelf.settings import SettingsManager


class ScanWorker(QObject):
    """Worker for scanning folder sources and fetching metadata.

    The host shell moves the worker to a ``QThread``, connects
    ``thread.started`` to :meth:`run` and may call :meth:`cancel` from
    the UI thread at any time; the scan stops at the next media unit.
    """

    # Signals
    started = Signal()
    progress = Signal(int, int)  # current, total (media units)
    status_update = Signal(str)  # non-blocking status bar message
    log = Signal(str)
    finished = Signal(dict)  # ScanResult.to_dict()
    error = Signal(str)

    def __init__(
        self,
        settings: SettingsManager,
        folder_path: str | None = None,
        library: Library | None = None,
    ):
        super().__init__()
        self.folder_path = Path(folder_path) if folder_path else None
        self._tracker = ProgressTracker(self._on_progress)
        self._library = library or Library.from_settings(
            settings, progress=self._tracker, log_fn=self.log.emit,
        )
        if library is not None:
            library.progress = self._tracker

    def cancel(self):
        """Cancel the operation."""
        self._library.cancel()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self):
        """Execute the scan operation."""
        try:
            self.started.emit()
            if self.folder_path is not None:
                self.log.emit(f"Scanning: {self.folder_path}")
                result = self._library.scan(self.folder_path)
            else:
                self.log.emit("Scanning all folder sources")
                result = self._library.scan_all()

            if result.cancelled:
                self.log.emit("Scan cancelled.")
            self.finished.emit(result.to_dict())

        except ShelfError as e:
            self.error.emit(str(e))
        except Exception as e:
            self.error.emit(f"Unexpected error: {e}")

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def _on_progress(self, header: str, current: int, total: int, label: str) -> None:
        if header == SCAN_PROGRESS:
            self.progress.emit(current, total)
        elif label:
            self.status_update.emit(f"{header}: {label}")
