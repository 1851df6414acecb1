"""Stable identifiers for media units.

The identifier is the primary key of the metadata store, so it must be a
pure function of the derived name and numbering: scanning an unchanged
folder twice has to produce the same key, or cached metadata is lost and
re-fetched.
"""
import re

MAX_BASE_LENGTH = 50


def _folder_slug(folder_name: str) -> str:
    return re.sub(r'[^a-zA-Z0-9]', '_', folder_name).lower()


def base_id(series_name: str, folder_name: str) -> str:
    """Identifier stem before any season/part suffix."""
    if len(series_name) >= 2:
        name = re.sub(r'[^a-z0-9\s]', '', series_name.lower())
        name = re.sub(r'\s+', '_', name.strip())
        if name:
            return name[:MAX_BASE_LENGTH]
    return _folder_slug(folder_name)


def generate_id(
    series_name: str,
    folder_name: str,
    season: int | None = None,
    part: int | None = None,
) -> str:
    """
    Generate the store key for a series unit.

    Args:
        series_name: Derived series name
        folder_name: Name of the folder holding the episodes (used only
                     when the series name is shorter than 2 characters)
        season: Season number, if known
        part: Part number, if known (takes priority over season)

    Returns:
        e.g. "my_show_s02" or "my_show_part02"
    """
    key = base_id(series_name, folder_name)
    if part is not None:
        return f"{key}_part{part:02d}"
    if season is not None:
        return f"{key}_s{season:02d}"
    return key


def generate_movie_id(title: str) -> str:
    """Generate the store key for a standalone movie file."""
    return f"movie_{_folder_slug(title)}"
