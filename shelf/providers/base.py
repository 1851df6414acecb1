"""Shared provider interface and HTTP plumbing."""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

import requests

from ..errors import ProviderError, RateLimitError
from ..models import ProviderCandidate, ProviderEpisode

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10
DEFAULT_SEARCH_LIMIT = 10

# Status fragments of titles that cannot match a local folder yet
UNRELEASED_STATUS_MARKERS = ("not yet", "not_yet", "not aired", "upcoming", "cancel", "hiatus")

# Raised while reading a response that does not have the expected shape
MALFORMED_PAYLOAD_ERRORS = (KeyError, TypeError, ValueError, AttributeError)


@contextmanager
def malformed_payload(provider: str, what: str) -> Iterator[None]:
    """Turn errors raised while reading a decoded response into ProviderError."""
    try:
        yield
    except MALFORMED_PAYLOAD_ERRORS as e:
        raise ProviderError(
            f"{provider} returned a malformed {what}: {e!r}", provider=provider,
        ) from e


def is_released(status: str | None) -> bool:
    """
    Check whether a provider status allows a candidate to be accepted.

    Rejects "not yet released"/"not yet aired", cancelled and on-hiatus
    titles.  An empty status is accepted.
    """
    value = (status or "").lower()
    return not any(marker in value for marker in UNRELEASED_STATUS_MARKERS)


def placeholder_episodes(count: int, season: int | None = None) -> list[ProviderEpisode]:
    """Generic "Episode k" entries for k = 1..count."""
    return [
        ProviderEpisode(episode=k, season=season, title=f"Episode {k}")
        for k in range(1, count + 1)
    ]


class MetadataProvider(ABC):
    """A metadata catalog queried by title.

    Implementations only translate between their API and the
    ``ProviderCandidate`` / ``ProviderEpisode`` models.  Retries, candidate
    selection and merging happen in the reconciliation engine.
    """

    name: str = ""

    def __init__(
        self,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout

    def is_configured(self) -> bool:
        """True when the provider can be queried (e.g. has credentials)."""
        return True

    def query_variations(self, name: str) -> list[str]:
        """Alternative spellings to try when a search returns nothing."""
        return [name]

    @abstractmethod
    def search(
        self,
        query: str,
        min_episodes: int | None = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> list[ProviderCandidate]:
        """Return up to *limit* candidates for *query*, best first."""

    @abstractmethod
    def fetch_episodes(
        self,
        candidate: ProviderCandidate,
        season: int | None = None,
    ) -> list[ProviderEpisode]:
        """Return the per-episode list of an accepted candidate."""

    # -- HTTP -------------------------------------------------------------

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """
        Perform an HTTP request and decode its JSON body.

        Raises:
            RateLimitError: On HTTP 429
            ProviderError: On transport errors, other HTTP errors or an
                           undecodable body
        """
        kwargs.setdefault("timeout", self.timeout)
        log.debug("[%s] %s %s params=%s", self.name, method, url, kwargs.get("params"))
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name) from e

        if response.status_code == 429:
            raise RateLimitError(
                f"{self.name} rate limit reached", provider=self.name, status=429,
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"{self.name} returned HTTP {response.status_code}",
                provider=self.name,
                status=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON", provider=self.name) from e
