"""
AnimeShelf - anime library scanner

Infers series, seasons and episodes from folder and file names and
fetches metadata from AniList, MyAnimeList and TVDB.
"""
from .models import (
    VideoFile,
    MediaUnit,
    ProviderEpisode,
    ProviderCandidate,
    EpisodeEntry,
    FileEpisode,
    SeriesRecord,
)
from .parser import tokenize, extract_season_number, extract_part_number
from .cleaner import extract_series_name
from .identifiers import generate_id, generate_movie_id
from .scanner import classify, classify_many
from .reconcile import ReconciliationEngine, ReconcileState
from .library import Library, ScanResult
from .store import MetadataStore
from .settings import SettingsManager
from .errors import ShelfError, ScanError, ProviderError, RateLimitError

__version__ = "1.0.0"
__all__ = [
    "VideoFile",
    "MediaUnit",
    "ProviderEpisode",
    "ProviderCandidate",
    "EpisodeEntry",
    "FileEpisode",
    "SeriesRecord",
    "tokenize",
    "extract_season_number",
    "extract_part_number",
    "extract_series_name",
    "generate_id",
    "generate_movie_id",
    "classify",
    "classify_many",
    "ReconciliationEngine",
    "ReconcileState",
    "Library",
    "ScanResult",
    "MetadataStore",
    "SettingsManager",
    "ShelfError",
    "ScanError",
    "ProviderError",
    "RateLimitError",
]
