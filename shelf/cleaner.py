"""Series-name extraction from sibling video filenames.

The *parser* module reads numbers out of a single name.  This module
works on a whole folder: it strips every episode/season/quality token
from each sibling filename and reconstructs the series title they share,
which is the string sent to the metadata providers.
"""

import re
from typing import Iterable

from .models import VideoFile
from .parser import strip_extension

# ---------------------------------------------------------------------------
# Pattern groups
# ---------------------------------------------------------------------------

# Season / episode markers, stripped in this order
_MARKERS = [
    r'S\d+\s*E\d+',                          # S01E02
    r'\bE\d+\b',                             # E05
    r'\bPart\s*\d+',                         # Part 2
    r'\bSeason\s*\d+',                       # Season 2
    r'\bEpisode\s*\d+(?:\.\d+)?[ab]?\b',     # Episode 6, Episode 6.5, Episode 7a
    r'\bEp\.?\s*\d+',                        # Ep 3, Ep.3
    r'\[\d+\]',                              # [05]
]

# Resolution / quality
_RESOLUTION = r'\b(480p|576p|720p|1080p|1080i|2160p|4[kK]|UHD|SD|HD|FHD|QHD)\b'

# Video codec
_CODEC = r'\b(x\.?264|x\.?265|[hH]\.?264|[hH]\.?265|HEVC|AVC|XVID|DIVX|AV1|VP9|10[- ]?bit|8[- ]?bit)\b'

# Source / rip type
_SOURCE = r'\b(WEB[- ]?DL|WEBRip|Blu[- ]?[Rr]ay|BDRip|BRRip|BDREMUX|HDTV|HDRip|DVDRip)\b'

_QUALITY = [_RESOLUTION, _CODEC, _SOURCE]

# Trailing release year "(2021)"
_TRAILING_YEAR = r'\(\s*(?:19|20)\d{2}\s*\)\s*$'

# Any remaining parenthesised or bracketed content
_PARENS = r'\([^)]*\)'
_BRACKETS = r'\[[^\]]*\]'

# " - 01", " - 01 - 02", " - 6.5" at the end
_TRAILING_DASH_NUMBER = r'(?:\s*-\s*\d+(?:\.\d+)?)+\s*$'

# standalone 1-3 digit number at the end
_TRAILING_NUMBER = r'\s+\d{1,3}\s*$'

_TRAILING_SEPARATORS = r'[\s\-_.:,~]+$'

# Minimum lengths for the prefix fallbacks
MIN_PREFIX_LENGTH = 3
MIN_NAME_LENGTH = 2


# ---------------------------------------------------------------------------
# Per-file cleaning
# ---------------------------------------------------------------------------

def _normalize_separators(name: str) -> str:
    name = re.sub(r'[._]', ' ', name)
    return re.sub(r'\s+', ' ', name).strip()


def clean_episode_name(filename: str) -> str:
    """Strip episode, season and quality tokens from one video filename.

    Parameters
    ----------
    filename:
        The video file name, extension included.

    Returns
    -------
    str
        What is left of the name once every numbering/quality token is
        gone, e.g. ``"My Show"`` for ``"My.Show.S01E02.[1080p].mkv"``.
    """
    name = strip_extension(filename)

    marker_found = False
    for pattern in _MARKERS:
        name, count = re.subn(pattern, ' ', name, flags=re.IGNORECASE)
        marker_found = marker_found or count > 0

    for pattern in _QUALITY:
        name = re.sub(rf'[\[\(]?{pattern}[\]\)]?', ' ', name, flags=re.IGNORECASE)

    name = re.sub(_TRAILING_YEAR, '', name.strip())
    name = re.sub(_PARENS, ' ', name)
    name = re.sub(_BRACKETS, ' ', name)
    name = _normalize_separators(name)

    name, count = re.subn(_TRAILING_DASH_NUMBER, '', name)
    marker_found = marker_found or count > 0

    # Only one episode number per file: once a marker has been consumed
    # a trailing number belongs to the title ("Mob Psycho 100 - 01").
    if not marker_found:
        name = re.sub(_TRAILING_NUMBER, '', name)

    name = re.sub(r'^[\s\-]+|[\s\-]+$', '', name)
    return re.sub(r'\s+', ' ', name).strip()


def clean_folder_name(folder_name: str) -> str:
    """Clean a folder name for use as a series title.

    Drops ``(2020)``/``(TV)`` style parentheses, ``[1080p]`` brackets and
    season/part markers.
    """
    name = re.sub(_PARENS, ' ', folder_name)
    name = re.sub(_BRACKETS, ' ', name)
    name = re.sub(r'\bSeason\s*\d+', ' ', name, flags=re.IGNORECASE)
    name = re.sub(r'\bPart\s*\d+', ' ', name, flags=re.IGNORECASE)
    name = re.sub(r'\bS\d+$', ' ', name.strip(), flags=re.IGNORECASE)
    name = _normalize_separators(name)
    return re.sub(r'^[\s\-]+|[\s\-]+$', '', name)


def clean_movie_title(filename: str) -> str:
    """Clean a movie filename for metadata search."""
    name = strip_extension(filename)
    name = re.sub(r'\s*\(.*?\)\s*', ' ', name)
    name = re.sub(r'\s*\[.*?\]\s*', ' ', name)
    name = re.sub(r'\.(?:19|20)\d{2}\.', ' ', name)
    return _normalize_separators(name)


# ---------------------------------------------------------------------------
# Sibling reconciliation
# ---------------------------------------------------------------------------

def _common_prefix(names: list[str]) -> str:
    reference = names[0]
    end = len(reference)
    for other in names[1:]:
        end = min(end, len(other))
        for i in range(end):
            if reference[i] != other[i]:
                end = i
                break
    prefix = reference[:end]

    # A prefix that stops inside a word ("Show - P" from "Show - Pilot" and
    # "Show - Party") is cut back to the last whole word.
    if prefix and any(len(n) > end and n[end].isalnum() for n in names) and prefix[-1].isalnum():
        whole = re.sub(r'\S+$', '', prefix)
        if len(whole.strip()) >= MIN_PREFIX_LENGTH:
            prefix = whole

    return re.sub(_TRAILING_SEPARATORS, '', prefix)


def _common_word_prefix(names: list[str]) -> str:
    reference = min(names, key=len).split()
    split_names = [n.lower().split() for n in names]
    words = []
    for i, word in enumerate(reference):
        if all(len(other) > i and other[i] == word.lower() for other in split_names):
            words.append(word)
        else:
            break
    return ' '.join(words)


def _final_cleanup(name: str) -> str:
    name = name.strip()
    if re.fullmatch(r'\d{1,3}', name):
        # A short numeric title is plausibly the real one ("86")
        return name
    name = re.sub(_TRAILING_DASH_NUMBER, '', name)
    return re.sub(_TRAILING_SEPARATORS, '', name).strip()


def extract_series_name(videos: Iterable[VideoFile | str]) -> str:
    """Derive the series title shared by a set of sibling video files.

    Parameters
    ----------
    videos:
        ``VideoFile`` objects (or bare filenames) from one folder.

    Returns
    -------
    str
        The cleaned common title, or ``""`` when nothing usable remains.
    """
    filenames = [v.filename if isinstance(v, VideoFile) else v for v in videos]
    names = [n for n in (clean_episode_name(f) for f in filenames) if n]
    if not names:
        return ""

    if len(names) == 1:
        return _final_cleanup(names[0])

    names.sort(key=len)
    result = _common_prefix(names)

    if len(result) < MIN_PREFIX_LENGTH:
        # Numeric words stay: a series may be named "86".
        result = _common_word_prefix(names)

    if len(result) < MIN_NAME_LENGTH:
        result = names[0]

    return _final_cleanup(result)
