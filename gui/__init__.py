"""AnimeShelf Qt integration: background workers for desktop shells."""
from .worker import ScanWorker

__all__ = [
    "ScanWorker",
]
