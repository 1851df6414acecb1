"""Metadata provider clients."""
import requests

from .anilist import AniListProvider
from .base import MetadataProvider, is_released, placeholder_episodes
from .mal import MyAnimeListProvider
from .tvdb import TVDBProvider

PROVIDER_CLASSES = {
    AniListProvider.name: AniListProvider,
    MyAnimeListProvider.name: MyAnimeListProvider,
    TVDBProvider.name: TVDBProvider,
}

DEFAULT_PROVIDER_ORDER = ["anilist", "mal", "tvdb"]


def build_providers(
    order: list[str] | None = None,
    tvdb_api_key: str | None = None,
    session: requests.Session | None = None,
) -> list[MetadataProvider]:
    """
    Instantiate providers in priority order, sharing one HTTP session.

    Unknown names are ignored; providers that are not configured (TVDB
    without an API key) are left out.
    """
    session = session or requests.Session()
    providers: list[MetadataProvider] = []
    for name in DEFAULT_PROVIDER_ORDER if order is None else order:
        cls = PROVIDER_CLASSES.get(name)
        if cls is None:
            continue
        if cls is TVDBProvider:
            provider = TVDBProvider(api_key=tvdb_api_key, session=session)
        else:
            provider = cls(session=session)
        if provider.is_configured():
            providers.append(provider)
    return providers


__all__ = [
    "AniListProvider",
    "MetadataProvider",
    "MyAnimeListProvider",
    "TVDBProvider",
    "build_providers",
    "is_released",
    "placeholder_episodes",
    "DEFAULT_PROVIDER_ORDER",
]
