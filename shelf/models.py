"""Data models for the library core."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Literal

EpisodeNumber = int | float


def is_whole(number: EpisodeNumber) -> bool:
    """True for whole episode numbers (6, 6.0); False for specials like 6.5."""
    return float(number).is_integer()


def format_episode_number(number: EpisodeNumber) -> str:
    """Render 6 as "6" and 6.5 as "6.5"."""
    if is_whole(number):
        return str(int(number))
    return f"{float(number):.1f}"


@dataclass(frozen=True)
class VideoFile:
    """A video file found while scanning a folder."""
    filename: str
    path: str
    title: str
    episode: EpisodeNumber
    season: int | None = None
    subtitle_path: str | None = None
    subtitle_paths: tuple[str, ...] = ()
    parent_folder: str = ""

    @property
    def is_canonical(self) -> bool:
        return is_whole(self.episode)

    @property
    def sort_key(self) -> tuple[int, float]:
        return (self.season or 0, float(self.episode))


@dataclass(frozen=True)
class MediaUnit:
    """One series or movie discovered by the directory classifier."""
    id: str
    name: str
    kind: Literal["series", "movie"]
    folder_path: str
    files: tuple[VideoFile, ...] = ()
    season: int | None = None
    part: int | None = None

    @property
    def canonical_episode_count(self) -> int:
        """Number of files with a whole episode number."""
        return sum(1 for f in self.files if f.is_canonical)


@dataclass
class ProviderEpisode:
    """Represents an episode as reported by a metadata provider."""
    episode: EpisodeNumber
    season: int | None = None
    title: str = ""
    description: str | None = None
    air_date: str | None = None
    thumbnail: str | None = None


@dataclass
class ProviderCandidate:
    """Represents a search result from a metadata provider."""
    provider: str
    id: int
    title: str
    alt_titles: list[str] = field(default_factory=list)
    episode_count: int | None = None
    status: str = ""
    genres: list[str] = field(default_factory=list)
    description: str = ""
    poster: str | None = None
    banner: str | None = None
    format: str | None = None
    score: float | None = None
    studios: list[str] = field(default_factory=list)
    start_date: str | None = None
    end_date: str | None = None


@dataclass
class EpisodeEntry:
    """One episode of a persisted series record."""
    episode: EpisodeNumber
    season: int | None = None
    title: str = ""
    description: str | None = None
    air_date: str | None = None
    thumbnail: str | None = None
    thumbnail_local: str | None = None
    file_path: str | None = None

    @property
    def downloaded(self) -> bool:
        return self.file_path is not None


@dataclass
class FileEpisode:
    """A local file reference persisted alongside a series record."""
    episode: EpisodeNumber
    season: int | None
    path: str
    filename: str
    title: str
    subtitle_path: str | None = None
    subtitle_paths: list[str] = field(default_factory=list)

    @classmethod
    def from_video(cls, video: VideoFile) -> FileEpisode:
        return cls(
            episode=video.episode,
            season=video.season,
            path=video.path,
            filename=video.filename,
            title=video.title,
            subtitle_path=video.subtitle_path,
            subtitle_paths=list(video.subtitle_paths),
        )


@dataclass
class SeriesRecord:
    """Persisted metadata for one media unit, keyed by its identifier."""
    id: str
    title: str
    kind: str = "series"
    folder_path: str = ""
    description: str = ""
    genres: list[str] = field(default_factory=list)
    poster: str | None = None
    poster_local: str | None = None
    banner: str | None = None
    banner_local: str | None = None
    episodes: list[EpisodeEntry] = field(default_factory=list)
    file_episodes: list[FileEpisode] = field(default_factory=list)
    source: str = "local"
    provider_id: int | None = None
    total_episodes: int | None = None
    status: str | None = None
    format: str | None = None
    score: float | None = None
    studios: list[str] = field(default_factory=list)
    start_date: str | None = None
    end_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SeriesRecord:
        """Build a record from its stored form, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["episodes"] = [
            _build(EpisodeEntry, ep) for ep in data.get("episodes") or []
        ]
        values["file_episodes"] = [
            _build(FileEpisode, fe) for fe in data.get("file_episodes") or []
        ]
        return cls(**values)


def _build(model, data: dict[str, Any]):
    known = {f.name for f in fields(model)}
    return model(**{k: v for k, v in data.items() if k in known})
