"""MyAnimeList client (through the public Jikan v4 API)."""
import logging
from typing import Any

from ..models import ProviderCandidate, ProviderEpisode
from .base import DEFAULT_SEARCH_LIMIT, MetadataProvider, malformed_payload, placeholder_episodes

log = logging.getLogger(__name__)

JIKAN_API_URL = "https://api.jikan.moe/v4"

# Numeric-only titles search badly on Jikan
NUMERIC_TITLE_VARIATIONS = {
    "86": ["eighty six", "86 anime", "86 -eighty six-"],
}


def _date_part(value: str | None) -> str | None:
    return value[:10] if value else None


class MyAnimeListProvider(MetadataProvider):
    """Queries MyAnimeList data via Jikan."""

    name = "mal"

    def query_variations(self, name: str) -> list[str]:
        return [name] + NUMERIC_TITLE_VARIATIONS.get(name.strip(), [])

    def search(
        self,
        query: str,
        min_episodes: int | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[ProviderCandidate]:
        payload = self._request(
            "GET", f"{JIKAN_API_URL}/anime", params={"q": query, "limit": limit},
        )
        with malformed_payload(self.name, "search response"):
            candidates = [self._to_candidate(a) for a in payload.get("data") or []]
        log.info('MAL search: "%s" => %d result(s)', query, len(candidates))
        return candidates

    def fetch_episodes(
        self,
        candidate: ProviderCandidate,
        season: int | None = None,
    ) -> list[ProviderEpisode]:
        payload = self._request("GET", f"{JIKAN_API_URL}/anime/{candidate.id}/episodes")

        with malformed_payload(self.name, "episode list"):
            # "episode" is the episode number; "mal_id" is a database key
            by_number: dict[int, dict] = {}
            for item in payload.get("data") or []:
                number = item.get("episode") or item.get("mal_id")
                if isinstance(number, int) and number > 0:
                    by_number[number] = item

            count = candidate.episode_count or len(by_number)
            episodes = placeholder_episodes(count, season)
            for ep in episodes:
                item = by_number.get(ep.episode)
                if item:
                    ep.title = item.get("title") or ep.title
                    ep.description = item.get("synopsis")
                    ep.air_date = _date_part(item.get("aired"))
                    jpg = (item.get("images") or {}).get("jpg") or {}
                    ep.thumbnail = jpg.get("image_url")
        return episodes

    def _to_candidate(self, anime: dict[str, Any]) -> ProviderCandidate:
        names = [anime.get("title"), anime.get("title_english"), anime.get("title_japanese")]
        names = [n for n in names if n]
        jpg = (anime.get("images") or {}).get("jpg") or {}
        aired = anime.get("aired") or {}
        return ProviderCandidate(
            provider=self.name,
            id=int(anime["mal_id"]),
            title=names[0] if names else "",
            alt_titles=names[1:],
            episode_count=anime.get("episodes"),
            status=anime.get("status") or "",
            genres=[g["name"] for g in anime.get("genres") or [] if g.get("name")],
            description=anime.get("synopsis") or anime.get("background") or "",
            poster=jpg.get("large_image_url") or jpg.get("image_url"),
            banner=None,
            format=anime.get("type"),
            score=anime.get("score"),
            studios=[s["name"] for s in anime.get("studios") or [] if s.get("name")],
            start_date=_date_part(aired.get("from")),
            end_date=_date_part(aired.get("to")),
        )
