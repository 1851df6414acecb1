"""Directory classifier: turns a library root into media units.

Layout rules for each direct child of the root:

  - a video file is a standalone movie;
  - a directory holding subdirectories but no loose videos is a
    *category* ("Series/", "Anime/"): each subdirectory with videos is
    one series unit;
  - a directory holding loose videos is itself a series unit.  Its
    subdirectories are not explored (series nested two levels below a
    category are not supported).
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .cleaner import clean_folder_name, clean_movie_title, extract_series_name
from .errors import ScanError
from .identifiers import generate_id, generate_movie_id
from .models import MediaUnit, VideoFile
from .parser import (
    extract_part_number,
    extract_season_number,
    is_subtitle_file,
    is_video_file,
    strip_extension,
    subtitle_base_name,
    tokenize,
)

log = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


@dataclass
class FolderContents:
    """Direct children of one folder, split by kind."""
    videos: list[VideoFile] = field(default_factory=list)
    subdirs: list[Path] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Folder reading
# ---------------------------------------------------------------------------

def _list_dir(folder: Path) -> list[Path]:
    """Directory entries sorted by name, so repeated scans agree."""
    return sorted(folder.iterdir(), key=lambda p: p.name)


def read_folder(folder: Path, season_fallback: int | None = None) -> FolderContents:
    """
    Read the direct children of *folder*.

    Videos are tokenized (the folder's season fills in when the name has
    none) and matched with subtitles sharing their base name.  Entries
    that cannot be inspected are skipped with a warning.

    Raises:
        OSError: If *folder* itself cannot be listed
    """
    contents = FolderContents()
    video_paths: list[Path] = []
    subtitles: dict[str, list[str]] = {}
    seen: set[str] = set()

    for entry in _list_dir(folder):
        try:
            if entry.is_dir():
                contents.subdirs.append(entry)
            elif entry.is_file():
                if is_video_file(entry):
                    key = os.path.realpath(entry)
                    if key in seen:
                        log.warning("Duplicate video entry dropped: %s", entry)
                        continue
                    seen.add(key)
                    video_paths.append(entry)
                elif is_subtitle_file(entry):
                    subtitles.setdefault(subtitle_base_name(entry), []).append(str(entry.absolute()))
        except OSError as e:
            log.warning("Skipping unreadable entry %s: %s", entry, e)

    for path in video_paths:
        tokens = tokenize(path.name)
        subs = subtitles.get(path.stem, [])
        contents.videos.append(VideoFile(
            filename=path.name,
            path=str(path.absolute()),
            title=strip_extension(path.name),
            episode=tokens.episode,
            season=tokens.season if tokens.season is not None else season_fallback,
            subtitle_path=subs[0] if subs else None,
            subtitle_paths=tuple(subs),
            parent_folder=folder.name,
        ))
    return contents


def scan_folder(folder: Path, season_fallback: int | None = None) -> FolderContents:
    """Like :func:`read_folder`, but an unreadable folder is skipped."""
    try:
        return read_folder(folder, season_fallback)
    except OSError as e:
        log.warning("Skipping unreadable folder %s: %s", folder, e)
        return FolderContents()


# ---------------------------------------------------------------------------
# Unit construction
# ---------------------------------------------------------------------------

def resolve_series_name(
    folder: Path,
    videos: Iterable[VideoFile],
    category: Path | None = None,
) -> str:
    """
    Pick the display/search name of a series folder.

    The name shared by the episode files wins.  A purely numeric file
    name is only trusted when the folder agrees ("86/86 - 01.mkv");
    otherwise the cleaned folder name is used, then the category name.
    """
    from_folder = clean_folder_name(folder.name)
    from_files = extract_series_name(videos)

    if len(from_files) >= 2 and not (from_files.isdigit() and from_folder and from_files != from_folder):
        return from_files
    if from_folder:
        return from_folder
    if category is not None:
        from_category = clean_folder_name(category.name)
        if from_category:
            return from_category
    return from_files or folder.name


def series_unit(
    folder: Path,
    videos: list[VideoFile],
    category: Path | None = None,
) -> MediaUnit:
    season = extract_season_number(folder.name)
    part = extract_part_number(folder.name)
    name = resolve_series_name(folder, videos, category)
    return MediaUnit(
        id=generate_id(name, folder.name, season, part),
        name=name,
        kind="series",
        folder_path=str(folder.absolute()),
        files=tuple(sorted(videos, key=lambda v: v.sort_key)),
        season=season,
        part=part,
    )


def movie_unit(video: VideoFile, root: Path) -> MediaUnit:
    title = clean_movie_title(video.filename)
    return MediaUnit(
        id=generate_movie_id(title),
        name=title,
        kind="movie",
        folder_path=str(root.absolute()),
        files=(video,),
    )


def _classify_directory(directory: Path) -> list[MediaUnit]:
    contents = scan_folder(directory, extract_season_number(directory.name))

    if contents.subdirs and not contents.videos:
        log.debug("Category folder: %s", directory.name)
        units = []
        for sub in contents.subdirs:
            sub_contents = scan_folder(sub, extract_season_number(sub.name))
            if sub_contents.videos:
                units.append(series_unit(sub, sub_contents.videos, category=directory))
        return units

    if contents.videos:
        if contents.subdirs:
            log.debug(
                "Not exploring %d subfolder(s) of series folder %s",
                len(contents.subdirs), directory.name,
            )
        return [series_unit(directory, contents.videos)]

    return []


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def classify(root: str | Path, max_workers: int = DEFAULT_WORKERS) -> list[MediaUnit]:
    """
    Classify every direct child of *root* into media units.

    Child directories are read concurrently; units are returned in the
    (name-sorted) order of the root's entries.

    Raises:
        ScanError: If *root* itself cannot be read
    """
    root = Path(root)
    try:
        contents = read_folder(root)
    except OSError as e:
        raise ScanError(f"Cannot read scan root {root}: {e}") from e

    by_path: dict[str, list[MediaUnit]] = {
        v.path: [movie_unit(v, root)] for v in contents.videos
    }
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        for directory, units in zip(contents.subdirs, pool.map(_classify_directory, contents.subdirs)):
            by_path[str(directory.absolute())] = units

    ordered = sorted(by_path.items(), key=lambda item: Path(item[0]).name)
    units = [unit for _, group in ordered for unit in group]
    log.info("Classified %s: %d unit(s)", root, len(units))
    return units


def classify_many(roots: Iterable[str | Path], max_workers: int = DEFAULT_WORKERS) -> list[MediaUnit]:
    """Classify several roots; a root that cannot be read is logged and skipped."""
    units = []
    for root in roots:
        try:
            units.extend(classify(root, max_workers))
        except ScanError as e:
            log.error("%s", e)
    return units
