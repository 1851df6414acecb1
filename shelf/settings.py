"""Settings management for AnimeShelf."""
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .runtime import app_data_dir

log = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"


# ---------------------------------------------------------------------------
# Default values for every known key
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS: dict[str, Any] = {
    # Library
    "folder_sources": [],
    "last_scanned": None,

    # Providers
    "tvdb_api_key": "",
    "provider_order": ["anilist", "mal", "tvdb"],
    "search_limit": 10,
    "unit_delay": 0.5,

    # Artwork
    "thumbnail_timestamp": 120,
    "generate_thumbnails": True,
    "cache_images": True,

    "version": 1,
}


def load_tvdb_api_key() -> str | None:
    """
    Load the TVDB API key from the environment or a .env file.

    Priority:
    1. TVDB_API_KEY environment variable
    2. .env file in current directory
    3. .env file in user home directory

    Returns:
        API key string or None if not found
    """
    api_key = os.environ.get("TVDB_API_KEY")
    if api_key:
        return api_key

    for env_path in (Path.cwd() / ".env", Path.home() / ".env"):
        if env_path.exists():
            load_dotenv(env_path)
            api_key = os.environ.get("TVDB_API_KEY")
            if api_key:
                return api_key

    return None


# ---------------------------------------------------------------------------
# SettingsManager -- single authority for reading / writing settings
# ---------------------------------------------------------------------------

class SettingsManager:
    """Settings store backed by a JSON file.

    One instance is created by the caller and passed to whoever needs it.

    Usage:
        mgr = SettingsManager()
        sources = mgr.folder_sources()
        mgr.add_folder_source("/media/anime")
        mgr.save()
    """

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory is not None else app_data_dir()
        self.path = self.directory / SETTINGS_FILENAME
        self._data: dict[str, Any] = self._load()

    # -- public API -------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        fallback = DEFAULT_SETTINGS.get(key, default)
        value = self._data.get(key, fallback)
        if key == "tvdb_api_key" and not value:
            return load_tvdb_api_key() or ""
        return value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def save(self) -> bool:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self.path, e)
            return False

    def all(self) -> dict[str, Any]:
        """Return a merged view: defaults + saved values."""
        merged = DEFAULT_SETTINGS.copy()
        merged.update(self._data)
        return merged

    def reload(self) -> None:
        self._data = self._load()

    # -- folder sources ---------------------------------------------------

    def folder_sources(self) -> list[str]:
        return list(self.get("folder_sources") or [])

    def add_folder_source(self, folder: str | Path) -> bool:
        """Add a scan root.  Returns False if it was already configured."""
        path = str(Path(folder).expanduser().resolve())
        sources = self.folder_sources()
        if path in sources:
            return False
        sources.append(path)
        self.set("folder_sources", sources)
        return True

    def remove_folder_source(self, folder: str | Path) -> bool:
        """Remove a scan root.  Returns False if it was not configured."""
        sources = self.folder_sources()
        candidates = {str(folder), str(Path(folder).expanduser().resolve())}
        remaining = [s for s in sources if s not in candidates]
        if len(remaining) == len(sources):
            return False
        self.set("folder_sources", remaining)
        return True

    def mark_scanned(self, when: datetime | None = None) -> None:
        self.set("last_scanned", (when or datetime.now()).isoformat(timespec="seconds"))

    # -- private ----------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                log.warning("Ignoring unreadable settings file %s: %s", self.path, e)
        return {}
