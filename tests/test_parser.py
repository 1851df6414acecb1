import pytest

from shelf.parser import (
    extract_part_number,
    extract_season_number,
    is_subtitle_file,
    is_video_file,
    strip_extension,
    subtitle_base_name,
    tokenize,
)


@pytest.mark.parametrize("filename, season, episode", [
    ("Show.S02E05.1080p.mkv", 2, 5),
    ("my show s1e12 720p.mp4", 1, 12),
    ("Episode 01.mkv", None, 1),
    ("Episode 6.5.mkv", None, 6.5),
    ("Show Ep.3.mkv", None, 3),
    ("[Group] Show [05].mkv", None, 5),
    ("Deep Space 09.mkv", None, 9),
])
def test_tokenize(filename, season, episode):
    tokens = tokenize(filename)
    assert tokens.season == season
    assert tokens.episode == episode


def test_extension_is_never_an_episode():
    # ".mp4" must not be read as episode 4
    assert tokenize("Show.Name.mp4").episode == 1


def test_release_year_is_skipped():
    assert tokenize("Show - 2019 - 07.mkv").episode == 7
    assert tokenize("Show_2021_12.mkv").episode == 12


def test_decimal_episode_keeps_its_fraction():
    tokens = tokenize("Episode 6.5.mkv")
    assert isinstance(tokens.episode, float)
    assert strip_extension("Episode 6.5") == "Episode 6.5"


def test_folder_numbers():
    assert extract_season_number("My Show Season 2") == 2
    assert extract_season_number("My Show S03") == 3
    assert extract_season_number("86") is None
    assert extract_part_number("Show Part 2") == 2
    assert extract_part_number("Show Season 2") is None


def test_file_kinds():
    assert is_video_file("a.MKV")
    assert not is_video_file("a.srt")
    assert is_subtitle_file("a.ass")


def test_subtitle_base_name_drops_language():
    assert subtitle_base_name("Show - 01.en.srt") == "Show - 01"
    assert subtitle_base_name("Show - 01.srt") == "Show - 01"
    assert subtitle_base_name("Show.Name - 01.srt") == "Show.Name - 01"
