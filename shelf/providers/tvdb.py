"""TVDB v4 client.

The bearer token belongs to the provider instance: ``login()`` obtains it
(or it is obtained lazily on the first request) and ``logout()`` drops it.
"""
import logging
from typing import Any

import requests

from ..errors import ProviderError
from ..models import ProviderCandidate, ProviderEpisode
from .base import DEFAULT_SEARCH_LIMIT, DEFAULT_TIMEOUT, MetadataProvider, malformed_payload

log = logging.getLogger(__name__)

TVDB_API_URL = "https://api4.thetvdb.com/v4"


class TVDBProvider(MetadataProvider):
    """Queries TVDB; only active when an API key is configured."""

    name = "tvdb"

    def __init__(
        self,
        api_key: str | None = None,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(session=session, timeout=timeout)
        self.api_key = api_key or ""
        self._token: str | None = None

    @property
    def logged_in(self) -> bool:
        return self._token is not None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def login(self) -> str:
        """Exchange the API key for a bearer token."""
        if not self.api_key:
            raise ProviderError("TVDB API key not set", provider=self.name)
        payload = self._request("POST", f"{TVDB_API_URL}/login", json={"apikey": self.api_key})
        with malformed_payload(self.name, "login response"):
            token = (payload.get("data") or {}).get("token")
        if not token:
            raise ProviderError("Failed to authenticate with TVDB", provider=self.name)
        self._token = token
        log.debug("TVDB login successful")
        return token

    def logout(self) -> None:
        self._token = None

    def _authorized(self, method: str, url: str, **kwargs: Any) -> Any:
        if self._token is None:
            self.login()
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            return self._request(method, url, headers=headers, **kwargs)
        except ProviderError as e:
            if e.status == 401:
                # Expired token: the next call logs in again
                self.logout()
            raise

    def search(
        self,
        query: str,
        min_episodes: int | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[ProviderCandidate]:
        payload = self._authorized(
            "GET", f"{TVDB_API_URL}/search", params={"query": query, "type": "series"},
        )
        with malformed_payload(self.name, "search response"):
            results = [r for r in payload.get("data") or [] if r.get("type", "series") == "series"]
            candidates = []
            for item in results[:limit]:
                candidate = self._to_candidate(item)
                if candidate is not None:
                    candidates.append(candidate)
        log.info('TVDB search: "%s" => %d result(s)', query, len(results))
        return candidates

    def fetch_episodes(
        self,
        candidate: ProviderCandidate,
        season: int | None = None,
    ) -> list[ProviderEpisode]:
        payload = self._authorized(
            "GET", f"{TVDB_API_URL}/series/{candidate.id}/episodes/default",
        )
        with malformed_payload(self.name, "episode list"):
            items = (payload.get("data") or {}).get("episodes") or []
            episodes = []
            for item in items:
                number = item.get("number")
                if not number:
                    continue
                item_season = item.get("seasonNumber")
                if season is not None and item_season is not None and item_season != season:
                    continue
                episodes.append(ProviderEpisode(
                    episode=number,
                    season=season if season is not None else item_season,
                    title=item.get("name") or f"Episode {number}",
                    description=item.get("overview"),
                    air_date=item.get("aired"),
                    thumbnail=item.get("image"),
                ))
        return episodes

    def _to_candidate(self, item: dict[str, Any]) -> ProviderCandidate | None:
        raw_id = item.get("tvdb_id") or item.get("id")
        try:
            series_id = int(str(raw_id).removeprefix("series-"))
        except ValueError:
            log.debug("Skipping TVDB result with id %r", raw_id)
            return None
        aliases = item.get("aliases") or []
        return ProviderCandidate(
            provider=self.name,
            id=series_id,
            title=item.get("name") or "",
            alt_titles=[a for a in aliases if isinstance(a, str)],
            # Search results carry no episode count
            episode_count=None,
            status=item.get("status") or "",
            genres=item.get("genres") or [],
            description=item.get("overview") or "",
            poster=item.get("image_url") or item.get("image"),
            start_date=item.get("first_air_time"),
        )
