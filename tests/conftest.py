import logging
from pathlib import Path

import pytest

from shelf.errors import RateLimitError
from shelf.models import MediaUnit, ProviderCandidate, ProviderEpisode, VideoFile
from shelf.parser import strip_extension, tokenize
from shelf.providers.base import MetadataProvider

logging.basicConfig(level=logging.DEBUG)


# ---------------------------------------------------------------------------
# HTTP fakes
# ---------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, payload=None, status_code=200, content=b""):
        self._payload = payload
        self.status_code = status_code
        self.content = content

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Answers requests from a queue (or a callable) and records each call."""

    def __init__(self, responses=None):
        self.responses = responses if callable(responses) else list(responses or [])
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        if callable(self.responses):
            response = self.responses(method, url, kwargs)
        else:
            response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def request(self, method, url, **kwargs):
        return self._next(method, url, kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)


# ---------------------------------------------------------------------------
# Provider fake
# ---------------------------------------------------------------------------

class FakeProvider(MetadataProvider):
    """Provider answering from canned data.

    *results* maps a query to its candidates; unknown queries return [].
    *search_error* is raised by every search.
    """

    def __init__(self, name="fake", results=None, episodes=None,
                 search_error=None, episode_error=None, on_search=None):
        super().__init__(session=FakeSession())
        self.name = name
        self.results = results or {}
        self.episodes = episodes
        self.search_error = search_error
        self.episode_error = episode_error
        self.on_search = on_search
        self.queries = []
        self.fetched = []

    def search(self, query, min_episodes=None, limit=10):
        self.queries.append(query)
        if self.on_search is not None:
            self.on_search(query)
        if self.search_error is not None:
            raise self.search_error
        return list(self.results.get(query, []))

    def fetch_episodes(self, candidate, season=None):
        self.fetched.append((candidate.id, season))
        if self.episode_error is not None:
            raise self.episode_error
        return [ProviderEpisode(**vars(ep)) for ep in self.episodes or []]


def candidate(title, episode_count=None, status="FINISHED", provider="fake", id=1, **kwargs):
    return ProviderCandidate(
        provider=provider, id=id, title=title,
        episode_count=episode_count, status=status, **kwargs,
    )


def rate_limited(name="fake"):
    return RateLimitError(f"{name} rate limit reached", provider=name, status=429)


# ---------------------------------------------------------------------------
# Media helpers
# ---------------------------------------------------------------------------

def video(filename, folder="/media/Show", season=None):
    tokens = tokenize(filename)
    return VideoFile(
        filename=filename,
        path=f"{folder}/{filename}",
        title=strip_extension(filename),
        episode=tokens.episode,
        season=tokens.season if tokens.season is not None else season,
        parent_folder=Path(folder).name,
    )


def make_unit(name, filenames, season=None, part=None, id=None, folder=None):
    folder = folder or f"/media/{name}"
    files = tuple(video(f, folder, season) for f in filenames)
    return MediaUnit(
        id=id or name.lower().replace(" ", "_"),
        name=name,
        kind="series",
        folder_path=folder,
        files=files,
        season=season,
        part=part,
    )


@pytest.fixture
def make_tree(tmp_path):
    """Create empty files below ``tmp_path / "library"`` and return that root."""
    root = tmp_path / "library"
    root.mkdir()

    def build(*relative_paths):
        for rel in relative_paths:
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"")
        return root

    return build


@pytest.fixture
def no_sleep():
    """Sleep replacement recording the requested delays."""
    delays = []
    return delays, delays.append
