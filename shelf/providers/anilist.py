"""AniList GraphQL client."""
import logging
import re
from typing import Any

from ..errors import ProviderError, RateLimitError
from ..models import ProviderCandidate, ProviderEpisode
from .base import DEFAULT_SEARCH_LIMIT, MetadataProvider, malformed_payload, placeholder_episodes

log = logging.getLogger(__name__)

ANILIST_API_URL = "https://graphql.anilist.co"

_MEDIA_FIELDS = """
    id
    title { romaji english native }
    description
    genres
    coverImage { large extraLarge }
    bannerImage
    episodes
    status
    format
    startDate { year month day }
    endDate { year month day }
    averageScore
    studios { nodes { name } }
"""

SEARCH_QUERY = """
query ($search: String, $page: Int, $perPage: Int) {
  Page(page: $page, perPage: $perPage) {
    media(search: $search, type: ANIME) {%s}
  }
}
""" % _MEDIA_FIELDS

EPISODES_QUERY = """
query ($id: Int) {
  Media(id: $id) {
    id
    streamingEpisodes { title thumbnail url site }
  }
}
"""


def _format_date(date: dict | None) -> str | None:
    """Render an AniList fuzzy date as YYYY-MM-DD (missing parts → 01)."""
    if not date or not date.get("year"):
        return None
    return f"{date['year']}-{date.get('month') or 1:02d}-{date.get('day') or 1:02d}"


class AniListProvider(MetadataProvider):
    """Queries AniList (first in the default provider order)."""

    name = "anilist"

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        payload = self._request(
            "POST", ANILIST_API_URL, json={"query": query, "variables": variables},
        )
        with malformed_payload(self.name, "GraphQL response"):
            errors = payload.get("errors") or []
            message = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors
            )
            data = payload.get("data") or {}
        if errors:
            if re.search(r"rate.?limit|too many requests", message, re.IGNORECASE):
                raise RateLimitError(f"anilist: {message}", provider=self.name, status=429)
            raise ProviderError(f"anilist: {message}", provider=self.name)
        return data

    def search(
        self,
        query: str,
        min_episodes: int | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[ProviderCandidate]:
        data = self._graphql(SEARCH_QUERY, {"search": query, "page": 1, "perPage": limit})
        with malformed_payload(self.name, "search response"):
            media = (data.get("Page") or {}).get("media") or []
            candidates = [self._to_candidate(m) for m in media]
        log.info('AniList search: "%s" => %d result(s)', query, len(candidates))
        return candidates

    def fetch_episodes(
        self,
        candidate: ProviderCandidate,
        season: int | None = None,
    ) -> list[ProviderEpisode]:
        """
        Build the episode list from the reported count, using streaming
        episodes for titles and thumbnails where available.
        """
        data = self._graphql(EPISODES_QUERY, {"id": candidate.id})
        with malformed_payload(self.name, "episode list"):
            streaming = (data.get("Media") or {}).get("streamingEpisodes") or []

            by_number: dict[int, dict] = {}
            for item in streaming:
                match = re.search(r"(?:Episode\s*)?(\d+)", item.get("title") or "", re.IGNORECASE)
                if match:
                    by_number.setdefault(int(match.group(1)), item)
            if not by_number:
                # Titles without numbers: trust the listing order
                by_number = {i: item for i, item in enumerate(streaming, start=1)}

            count = candidate.episode_count or len(by_number)
            episodes = placeholder_episodes(count, season)
            for ep in episodes:
                item = by_number.get(ep.episode)
                if item:
                    ep.title = item.get("title") or ep.title
                    ep.thumbnail = item.get("thumbnail")
        return episodes

    def _to_candidate(self, media: dict[str, Any]) -> ProviderCandidate:
        titles = media.get("title") or {}
        names = [titles.get("english"), titles.get("romaji"), titles.get("native")]
        names = [n for n in names if n]
        cover = media.get("coverImage") or {}
        studios = (media.get("studios") or {}).get("nodes") or []
        return ProviderCandidate(
            provider=self.name,
            id=int(media["id"]),
            title=names[0] if names else "",
            alt_titles=names[1:],
            episode_count=media.get("episodes"),
            status=media.get("status") or "",
            genres=media.get("genres") or [],
            description=media.get("description") or "",
            poster=cover.get("extraLarge") or cover.get("large"),
            banner=media.get("bannerImage"),
            format=media.get("format"),
            score=media.get("averageScore"),
            studios=[s["name"] for s in studios if s.get("name")],
            start_date=_format_date(media.get("startDate")),
            end_date=_format_date(media.get("endDate")),
        )
