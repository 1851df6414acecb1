"""Parser module for extracting season/episode/part numbers from names."""
import re
from dataclasses import dataclass
from pathlib import Path

from .models import EpisodeNumber


VIDEO_EXTENSIONS = {'.mp4', '.mkv', '.avi', '.mov', '.wmv', '.flv', '.webm', '.m4v'}
SUBTITLE_EXTENSIONS = {'.srt', '.vtt', '.ass', '.ssa'}

# S01E04 / s1e4
SEASON_EPISODE_PATTERN = r'S(\d+)E(\d+)'

# Episode 6.5 (half / special episodes)
DECIMAL_EPISODE_PATTERN = r'Episode\s*(\d+)\.(\d)(?!\d)'

# Episode patterns (order matters - more specific first)
EPISODE_PATTERNS = [
    # Episode 10 / Episode10
    r'Episode\s*(\d+)',
    # Ep 10 / Ep.10
    r'\bEp\.?\s*(\d+)',
    # E10 (at least 2 digits)
    r'(?<![a-z])E(\d{2,})',
    # " - 10" followed by a space or the end
    r'\s-\s*(\d+)(?:\s|$)',
    # [10]
    r'\[(\d+)\]',
    # lone 1-3 digit token
    r'\s(\d{1,3})(?:\s|$)',
]

# Folder-name patterns
SEASON_PATTERNS = [
    r'Season\s*(\d+)',
    r'\bS(\d+)\b',
]

PART_PATTERNS = [
    r'Part\s*(\d+)',
    r'\bP(\d+)\b',
]

YEAR_RANGE = range(1900, 2100)


@dataclass(frozen=True)
class Tokens:
    """Season/episode numbers extracted from a single filename."""
    season: int | None
    episode: EpisodeNumber


def strip_extension(filename: str) -> str:
    """Return the filename without its final extension.

    A purely numeric suffix is kept: in "Episode 6.5" the ".5" is part of
    the episode number, not an extension.
    """
    suffix = Path(filename).suffix
    if suffix and not suffix[1:].isdigit():
        return filename[:-len(suffix)]
    return filename


def is_video_file(filepath: str | Path) -> bool:
    """Check if file is a video file based on extension."""
    return Path(filepath).suffix.lower() in VIDEO_EXTENSIONS


def is_subtitle_file(filepath: str | Path) -> bool:
    """Check if file is a subtitle file based on extension."""
    return Path(filepath).suffix.lower() in SUBTITLE_EXTENSIONS


def is_year(value: int) -> bool:
    return value in YEAR_RANGE


def _episode_value(whole: int, tenth: int = 0) -> EpisodeNumber:
    if tenth == 0:
        return whole
    return round(whole + tenth / 10, 1)


def tokenize(filename: str) -> Tokens:
    """
    Extract season and episode numbers from a file name.

    The extension is always stripped first so that ".mp4" is never read
    as episode 4.

    Args:
        filename: File name (with or without extension)

    Returns:
        Tokens with the season (None when the name carries none) and the
        episode number (int, or float for half episodes like 6.5)
    """
    name = strip_extension(filename)

    match = re.search(SEASON_EPISODE_PATTERN, name, re.IGNORECASE)
    if match:
        return Tokens(season=int(match.group(1)), episode=int(match.group(2)))

    match = re.search(DECIMAL_EPISODE_PATTERN, name, re.IGNORECASE)
    if match:
        return Tokens(
            season=None,
            episode=_episode_value(int(match.group(1)), int(match.group(2))),
        )

    for pattern in EPISODE_PATTERNS:
        match = re.search(pattern, name, re.IGNORECASE)
        if match:
            value = int(match.group(1))
            if is_year(value):
                # "Show - 2019" is a release year, not episode 2019
                continue
            return Tokens(season=None, episode=value)

    # Fallback: last digit run that does not look like a year
    numbers = [int(n) for n in re.findall(r'\d+', name)]
    candidates = [n for n in numbers if not is_year(n)]
    if candidates:
        return Tokens(season=None, episode=candidates[-1])

    return Tokens(season=None, episode=1)


def _first_number(name: str, patterns: list[str]) -> int | None:
    for pattern in patterns:
        match = re.search(pattern, name, re.IGNORECASE)
        if match:
            return int(match.group(1))
    return None


def extract_season_number(folder_name: str) -> int | None:
    """
    Extract a season number from a folder name.

    Only explicit markers count ("Season 2", "S02"); a bare number such
    as "86" is a title, not a season.
    """
    return _first_number(folder_name, SEASON_PATTERNS)


def extract_part_number(folder_name: str) -> int | None:
    """Extract a part number ("Part 2", "P2") from a folder name."""
    return _first_number(folder_name, PART_PATTERNS)


# Common language codes for subtitles
LANGUAGE_CODES = {
    'en', 'es', 'fr', 'de', 'it', 'pt', 'ru', 'ja', 'ko', 'zh',
    'ar', 'nl', 'pl', 'tr', 'vi', 'th', 'id', 'hi', 'he', 'cs',
    'eng', 'spa', 'fra', 'deu', 'ita', 'por', 'rus', 'jpn', 'kor', 'zho',
    'forced', 'sdh', 'cc',
}


def subtitle_base_name(filepath: str | Path) -> str:
    """
    Get the base name of a subtitle file without its language suffix.

    For "Show - 01.en.srt" returns "Show - 01"
    For "Show - 01.srt" returns "Show - 01"
    """
    path = Path(filepath)
    suffixes = path.suffixes
    if len(suffixes) >= 2:
        potential_lang = suffixes[-2].lstrip('.')
        if potential_lang.lower() in LANGUAGE_CODES:
            return path.stem.rsplit('.', 1)[0]
    return path.stem
