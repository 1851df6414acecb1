"""Progress reporting for long-running scan phases."""
import logging
import threading
from dataclasses import dataclass
from typing import Callable

log = logging.getLogger(__name__)

ProgressListener = Callable[[str, int, int, str], None]


@dataclass
class ProgressBar:
    """State of one named progress phase."""
    header: str
    total: int
    current: int = 0
    label: str = ""

    @property
    def done(self) -> bool:
        return self.total > 0 and self.current >= self.total


class ProgressTracker:
    """Tracks any number of named progress phases for one scan.

    Created by the caller, passed to the components that report
    progress, and closed when the scan ends.  Each change is forwarded to
    the optional *listener* as ``(header, current, total, label)``.

    Usage:
        with ProgressTracker(listener) as progress:
            progress.start("Image caching", 12)
            progress.advance("Image caching", "poster.jpg")
    """

    def __init__(self, listener: ProgressListener | None = None):
        self.listener = listener
        self._bars: dict[str, ProgressBar] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "ProgressTracker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def start(self, header: str, total: int) -> None:
        with self._lock:
            bar = self._bars[header] = ProgressBar(header, total)
        self._notify(bar)

    def advance(self, header: str, label: str = "") -> None:
        """Count one finished item.  Unknown headers start an open-ended bar."""
        with self._lock:
            bar = self._bars.setdefault(header, ProgressBar(header, 0))
            bar.current += 1
            bar.total = max(bar.total, bar.current)
            bar.label = label
        self._notify(bar)

    def snapshot(self) -> dict[str, tuple[int, int]]:
        """Return ``{header: (current, total)}`` for every active phase."""
        with self._lock:
            return {h: (b.current, b.total) for h, b in self._bars.items()}

    def close(self) -> None:
        with self._lock:
            self._bars.clear()

    def _notify(self, bar: ProgressBar) -> None:
        log.debug("%s: %d/%d %s", bar.header, bar.current, bar.total, bar.label)
        if self.listener is not None:
            self.listener(bar.header, bar.current, bar.total, bar.label)
