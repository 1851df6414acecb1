"""Metadata reconciliation state machine.

Pure Python -- no Qt imports.  The ReconciliationEngine drives one
MediaUnit through a deterministic state machine and produces the
SeriesRecord to persist (or nothing, when the unit has no playable
file):

    SCANNED -> CACHE_CHECK -> CACHE_HIT -> MERGED
                           -> CACHE_MISS -> PROVIDER_QUERY
                                 -> ACCEPTED -> EPISODE_FETCH -> MERGED
                                 -> EXHAUSTED -> LOCAL_ONLY
    MERGED | LOCAL_ONLY -> PERSISTED | PURGED
"""
from __future__ import annotations

import dataclasses
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from .errors import ProviderError
from .images import ImageCache
from .models import (
    EpisodeEntry,
    FileEpisode,
    MediaUnit,
    ProviderCandidate,
    ProviderEpisode,
    SeriesRecord,
    VideoFile,
    format_episode_number,
    is_whole,
)
from .progress import ProgressTracker
from .providers.base import DEFAULT_SEARCH_LIMIT, MetadataProvider, is_released, placeholder_episodes
from .retry import is_rate_limit_error, retry_with_backoff
from .thumbnails import DEFAULT_TIMESTAMP, PROGRESS_HEADER as THUMBNAIL_PROGRESS, ThumbnailGenerator

log = logging.getLogger(__name__)

# Normalized names shorter than this never trust the cache
MIN_CACHE_NAME_LENGTH = 3
# Normalized names at least this long may match the cache by substring
MIN_SUBSTRING_LENGTH = 5

_SEASON_SUFFIX_RE = re.compile(r'\s*\(season\s*\d+\)', re.IGNORECASE)


# ------------------------------------------------------------------
# Title helpers
# ------------------------------------------------------------------

def normalize_title(title: str) -> str:
    """Lower-case, drop "(Season N)", punctuation and extra whitespace."""
    text = _SEASON_SUFFIX_RE.sub('', title.lower())
    text = re.sub(r'[^a-z0-9\s]', '', text)
    return re.sub(r'\s+', ' ', text).strip()


def titles_match(cached_title: str, series_name: str) -> bool:
    """
    Compare a cached record title with a freshly derived series name.

    Equal normalized forms match.  When the series name is at least
    five characters long, either one containing the other also matches.
    """
    cached = normalize_title(cached_title)
    name = normalize_title(series_name)
    if cached == name:
        return True
    return bool(cached) and len(name) >= MIN_SUBSTRING_LENGTH and (
        name in cached or cached in name
    )


def build_search_query(name: str, season: int | None = None, part: int | None = None) -> str:
    """Qualify *name* with "Part N" or "Season N" only when N > 1."""
    if part is not None and part > 1:
        return f"{name} Part {part}"
    if season is not None and season > 1:
        return f"{name} Season {season}"
    return name


def with_season_suffix(title: str, season: int | None) -> str:
    """Append " (Season N)" unless the title already names a season."""
    if season is None or re.search(r'Season\s*\d+', title, re.IGNORECASE):
        return title
    return f"{title} (Season {season})"


def select_candidate(
    candidates: Sequence[ProviderCandidate],
    canonical_count: int,
) -> tuple[ProviderCandidate | None, bool]:
    """
    Pick the candidate to accept.

    Unreleased, cancelled and on-hiatus titles are skipped.  The first
    candidate reporting at least *canonical_count* episodes wins; failing
    that, the first one with an unknown episode count is accepted as a
    low-confidence match.

    Returns:
        (candidate or None, low_confidence)
    """
    released = [c for c in candidates if is_released(c.status)]
    for candidate in released:
        if candidate.episode_count is not None and candidate.episode_count >= canonical_count:
            return candidate, False
    for candidate in released:
        if candidate.episode_count is None:
            return candidate, True
    return None, False


def merge_episodes(episodes: list[EpisodeEntry], files: Sequence[VideoFile]) -> list[EpisodeEntry]:
    """
    Attach local files to episode entries.

    Each entry is matched by (season, episode) first, then by episode
    number alone; unmatched entries keep ``file_path=None``.  Local
    special episodes (6.5) with no entry get one of their own.
    """
    by_key: dict[tuple[int | None, float], VideoFile] = {}
    by_number: dict[float, VideoFile] = {}
    for f in files:
        by_key.setdefault((f.season, float(f.episode)), f)
        by_number.setdefault(float(f.episode), f)

    for ep in episodes:
        number = float(ep.episode)
        match = by_key.get((ep.season, number)) or by_number.get(number)
        ep.file_path = match.path if match else None

    known = {float(ep.episode) for ep in episodes}
    for f in files:
        number = float(f.episode)
        if is_whole(f.episode) or number in known:
            continue
        known.add(number)
        episodes.append(EpisodeEntry(
            episode=f.episode,
            season=f.season,
            title=f"Episode {format_episode_number(f.episode)}",
            file_path=f.path,
        ))
    return episodes


# ------------------------------------------------------------------
# State
# ------------------------------------------------------------------

class ReconcileState(Enum):
    SCANNED = "scanned"
    CACHE_CHECK = "cache_check"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    PROVIDER_QUERY = "provider_query"
    ACCEPTED = "accepted"
    EPISODE_FETCH = "episode_fetch"
    MERGED = "merged"
    EXHAUSTED = "exhausted"
    LOCAL_ONLY = "local_only"
    PERSISTED = "persisted"
    PURGED = "purged"


@dataclass
class Reconciliation:
    """All mutable state for one unit traversing the state machine."""
    unit: MediaUnit
    existing: SeriesRecord | None = None
    state: ReconcileState = ReconcileState.SCANNED
    history: list[ReconcileState] = field(default_factory=lambda: [ReconcileState.SCANNED])
    provider: str | None = None
    candidate: ProviderCandidate | None = None
    low_confidence: bool = False
    record: SeriesRecord | None = None

    def advance(self, state: ReconcileState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def queried_providers(self) -> bool:
        return ReconcileState.PROVIDER_QUERY in self.history


# ------------------------------------------------------------------
# ReconciliationEngine -- pure logic, no Qt
# ------------------------------------------------------------------

class ReconciliationEngine:
    """Turns scanned media units into persisted series records.

    Constructor args:
        providers:   MetadataProvider instances in priority order.
        images:      Optional ImageCache for posters, banners and stills.
        thumbnails:  Optional ThumbnailGenerator for local frames.
        sleep:       Sleep function used by retry backoff.
        log_fn:      Optional callable for user-facing log messages.
    """

    def __init__(
        self,
        providers: Sequence[MetadataProvider],
        images: ImageCache | None = None,
        thumbnails: ThumbnailGenerator | None = None,
        sleep: Callable[[float], None] = time.sleep,
        log_fn: Callable[[str], None] | None = None,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
        thumbnail_timestamp: int = DEFAULT_TIMESTAMP,
    ):
        self.providers = list(providers)
        self.images = images
        self.thumbnails = thumbnails
        self.search_limit = search_limit
        self.thumbnail_timestamp = thumbnail_timestamp
        self._sleep = sleep
        self._log = log_fn or (lambda msg: None)

    # -- Public API ------------------------------------------------

    def reconcile(
        self,
        unit: MediaUnit,
        existing: SeriesRecord | None = None,
        progress: ProgressTracker | None = None,
    ) -> SeriesRecord | None:
        """Return the record to persist for *unit*, or None when purged."""
        return self.run(unit, existing, progress).record

    def run(
        self,
        unit: MediaUnit,
        existing: SeriesRecord | None = None,
        progress: ProgressTracker | None = None,
    ) -> Reconciliation:
        """Drive *unit* through every state and return the final state."""
        r = Reconciliation(unit=unit, existing=existing)

        r.advance(ReconcileState.CACHE_CHECK)
        if existing is not None and self.cache_is_valid(existing, unit):
            r.advance(ReconcileState.CACHE_HIT)
            self._log(f"Using cached metadata for {unit.name}")
            r.record = self._refresh_cached(unit, existing)
            r.advance(ReconcileState.MERGED)
        else:
            r.advance(ReconcileState.CACHE_MISS)
            r.advance(ReconcileState.PROVIDER_QUERY)
            provider = self._query_providers(r)
            if provider is not None and r.candidate is not None:
                r.advance(ReconcileState.ACCEPTED)
                r.advance(ReconcileState.EPISODE_FETCH)
                episodes = self._fetch_episodes(provider, r.candidate, unit)
                r.record = self._provider_record(
                    unit, r.candidate, provider.name, episodes, progress,
                )
                r.advance(ReconcileState.MERGED)
            else:
                r.advance(ReconcileState.EXHAUSTED)
                self._log(f"No metadata found for {unit.name}, using local files")
                r.record = self._local_record(unit, progress)
                r.advance(ReconcileState.LOCAL_ONLY)

        if r.record is not None and r.record.file_episodes:
            r.advance(ReconcileState.PERSISTED)
        else:
            log.info("Dropping %s: no local files", unit.id)
            r.record = None
            r.advance(ReconcileState.PURGED)
        return r

    @staticmethod
    def cache_is_valid(existing: SeriesRecord, unit: MediaUnit) -> bool:
        """A cached record is reused when it has a title and a local
        poster and its title still matches the unit's name."""
        if not existing.title or not existing.poster_local:
            return False
        if len(normalize_title(unit.name)) < MIN_CACHE_NAME_LENGTH:
            return False
        return titles_match(existing.title, unit.name)

    # -- Provider query -------------------------------------------

    def _call(self, provider: MetadataProvider, fn):
        def on_retry(attempt: int, error: BaseException) -> None:
            self._log(f"[{provider.name}] Rate limited, retry {attempt}")
        return retry_with_backoff(fn, sleep=self._sleep, on_retry=on_retry)

    def _search(self, provider: MetadataProvider, unit: MediaUnit) -> list[ProviderCandidate]:
        canonical = unit.canonical_episode_count
        for variation in provider.query_variations(unit.name):
            query = build_search_query(variation, unit.season, unit.part)
            results = self._call(
                provider, lambda: provider.search(query, canonical, self.search_limit),
            )
            if results:
                return results

        if build_search_query(unit.name, unit.season, unit.part) != unit.name:
            log.debug("[%s] No results with season/part, retrying %r", provider.name, unit.name)
            return self._call(
                provider, lambda: provider.search(unit.name, canonical, self.search_limit),
            )
        return []

    def _query_providers(self, r: Reconciliation) -> MetadataProvider | None:
        unit = r.unit
        canonical = unit.canonical_episode_count
        for provider in self.providers:
            try:
                candidates = self._search(provider, unit)
            except ProviderError as e:
                if is_rate_limit_error(e):
                    log.warning("[%s] Rate limited searching %r, trying next provider", provider.name, unit.name)
                    self._log(f"[{provider.name}] Rate limited, skipping")
                else:
                    log.warning("[%s] Search failed for %r: %s", provider.name, unit.name, e)
                continue

            for c in candidates:
                log.debug(
                    "[%s] %r episodes=%s status=%s",
                    provider.name, c.title, c.episode_count, c.status,
                )
            chosen, low_confidence = select_candidate(candidates, canonical)
            if chosen is None:
                log.info("[%s] No acceptable candidate for %r", provider.name, unit.name)
                continue

            if low_confidence:
                log.warning(
                    "[%s] Low-confidence match %r (unknown episode count) for %r",
                    provider.name, chosen.title, unit.name,
                )
            self._log(f"[{provider.name}] Matched {unit.name} -> {chosen.title}")
            r.provider = provider.name
            r.candidate = chosen
            r.low_confidence = low_confidence
            return provider
        return None

    def _fetch_episodes(
        self,
        provider: MetadataProvider,
        candidate: ProviderCandidate,
        unit: MediaUnit,
    ) -> list[ProviderEpisode]:
        try:
            episodes = self._call(provider, lambda: provider.fetch_episodes(candidate, unit.season))
        except ProviderError as e:
            log.warning("[%s] Episode list failed for %r: %s", provider.name, candidate.title, e)
            episodes = []
        if not episodes:
            episodes = placeholder_episodes(unit.canonical_episode_count, unit.season)
        return episodes

    # -- Record building ------------------------------------------

    def _refresh_cached(self, unit: MediaUnit, existing: SeriesRecord) -> SeriesRecord:
        episodes = [dataclasses.replace(ep, file_path=None) for ep in existing.episodes]
        return dataclasses.replace(
            existing,
            id=unit.id,
            title=with_season_suffix(existing.title, unit.season),
            kind=unit.kind,
            folder_path=unit.folder_path,
            episodes=merge_episodes(episodes, unit.files),
            file_episodes=[FileEpisode.from_video(f) for f in unit.files],
        )

    def _provider_record(
        self,
        unit: MediaUnit,
        candidate: ProviderCandidate,
        source: str,
        provider_episodes: list[ProviderEpisode],
        progress: ProgressTracker | None,
    ) -> SeriesRecord:
        cached: dict[str, str | None] = {}
        if self.images is not None:
            urls = [candidate.poster, candidate.banner] + [ep.thumbnail for ep in provider_episodes]
            cached = self.images.cache_images(urls, progress)

        episodes = [
            EpisodeEntry(
                episode=ep.episode,
                season=ep.season,
                title=ep.title or f"Episode {format_episode_number(ep.episode)}",
                description=ep.description,
                air_date=ep.air_date,
                thumbnail=ep.thumbnail,
                thumbnail_local=cached.get(ep.thumbnail) if ep.thumbnail else None,
            )
            for ep in provider_episodes
        ]
        episodes = merge_episodes(episodes, unit.files)
        self._generate_thumbnails(episodes, progress)

        return SeriesRecord(
            id=unit.id,
            title=with_season_suffix(candidate.title, unit.season),
            kind=unit.kind,
            folder_path=unit.folder_path,
            description=candidate.description,
            genres=list(candidate.genres),
            poster=candidate.poster,
            poster_local=cached.get(candidate.poster) if candidate.poster else None,
            banner=candidate.banner,
            banner_local=cached.get(candidate.banner) if candidate.banner else None,
            episodes=episodes,
            file_episodes=[FileEpisode.from_video(f) for f in unit.files],
            source=source,
            provider_id=candidate.id,
            total_episodes=candidate.episode_count,
            status=candidate.status or None,
            format=candidate.format,
            score=candidate.score,
            studios=list(candidate.studios),
            start_date=candidate.start_date,
            end_date=candidate.end_date,
        )

    def _local_record(self, unit: MediaUnit, progress: ProgressTracker | None) -> SeriesRecord:
        episodes = [
            EpisodeEntry(
                episode=f.episode,
                season=f.season,
                title=f.title or f"Episode {format_episode_number(f.episode)}",
                file_path=f.path,
            )
            for f in unit.files
        ]
        self._generate_thumbnails(episodes, progress)
        return SeriesRecord(
            id=unit.id,
            title=with_season_suffix(unit.name, unit.season),
            kind=unit.kind,
            folder_path=unit.folder_path,
            episodes=episodes,
            file_episodes=[FileEpisode.from_video(f) for f in unit.files],
            source="local",
        )

    def _generate_thumbnails(
        self,
        episodes: list[EpisodeEntry],
        progress: ProgressTracker | None,
    ) -> None:
        """Fill ``thumbnail_local`` from the video file where no still was cached."""
        if self.thumbnails is None:
            return
        pending = [ep for ep in episodes if ep.file_path and not ep.thumbnail_local]
        if not pending:
            return
        if progress is not None:
            progress.start(THUMBNAIL_PROGRESS, len(pending))
        for ep in pending:
            ep.thumbnail_local = self.thumbnails.generate(
                ep.file_path, self.thumbnail_timestamp, progress,
            )
