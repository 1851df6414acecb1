import logging
from pathlib import Path

import pytest

from shelf.errors import ScanError
from shelf.scanner import classify, classify_many, read_folder, resolve_series_name


def test_category_with_generic_episode_names(make_tree):
    root = make_tree(
        "Series/My Show/Episode 01.mkv",
        "Series/My Show/Episode 02.mkv",
        "Series/My Show/Episode 6.5.mkv",
    )
    units = classify(root)

    assert len(units) == 1
    unit = units[0]
    assert unit.name == "My Show"
    assert unit.id == "my_show"
    assert unit.kind == "series"
    assert [f.episode for f in unit.files] == [1, 2, 6.5]
    assert unit.canonical_episode_count == 2


def test_numeric_series_name(make_tree):
    root = make_tree("86/86 - 01.mkv", "86/86 - 02.mkv")
    unit, = classify(root)
    assert unit.name == "86"
    assert unit.season is None
    assert unit.id == "86"


def test_loose_video_is_a_movie(make_tree):
    root = make_tree("Your Name (2016).mkv")
    unit, = classify(root)
    assert unit.kind == "movie"
    assert unit.name == "Your Name"
    assert unit.id == "movie_your_name"


def test_season_folder_inside_category(make_tree):
    root = make_tree("Anime/Show Season 2/Show - 01.mkv")
    unit, = classify(root)
    assert unit.season == 2
    assert unit.files[0].season == 2
    assert unit.id == "show_s02"


def test_files_sorted_numerically(make_tree):
    root = make_tree("Show/Show - 10.mkv", "Show/Show - 2.mkv")
    unit, = classify(root)
    assert [f.episode for f in unit.files] == [2, 10]


def test_subtitles_are_attached(make_tree):
    root = make_tree(
        "Show/Show - 01.mkv",
        "Show/Show - 01.en.srt",
        "Show/Show - 01.srt",
        "Show/Show - 02.mkv",
    )
    unit, = classify(root)
    first, second = unit.files
    assert first.subtitle_path.endswith("Show - 01.en.srt")
    assert len(first.subtitle_paths) == 2
    assert second.subtitle_path is None
    assert second.subtitle_paths == ()


def test_series_subfolders_are_not_explored(make_tree):
    root = make_tree("Show/Show - 01.mkv", "Show/Extras/Show - NCOP.mkv")
    unit, = classify(root)
    assert len(unit.files) == 1


def test_classify_is_idempotent(make_tree):
    root = make_tree(
        "Anime/Alpha/Alpha - 01.mkv",
        "Anime/Beta/Beta - 01.mkv",
        "Gamma/Gamma - 01.mkv",
        "Movie.mkv",
    )
    first = classify(root)
    assert first == classify(root)
    assert [u.name for u in first] == ["Alpha", "Beta", "Gamma", "Movie"]


def test_unreadable_root_raises(tmp_path):
    with pytest.raises(ScanError):
        classify(tmp_path / "missing")


def test_unreadable_subfolder_is_skipped(make_tree, monkeypatch, caplog):
    root = make_tree("Anime/Alpha/Alpha - 01.mkv", "Anime/Broken/Broken - 01.mkv")
    iterdir = Path.iterdir

    def failing_iterdir(self):
        if self.name == "Broken":
            raise PermissionError("denied")
        return iterdir(self)

    monkeypatch.setattr(Path, "iterdir", failing_iterdir)
    with caplog.at_level(logging.WARNING):
        units = classify(root)

    assert [u.name for u in units] == ["Alpha"]
    assert "Skipping unreadable folder" in caplog.text


def test_duplicate_video_entry_is_dropped(make_tree, caplog):
    root = make_tree("Show/Show - 01.mkv")
    folder = root / "Show"
    (folder / "zz-link.mkv").symlink_to(folder / "Show - 01.mkv")

    with caplog.at_level(logging.WARNING):
        contents = read_folder(folder)

    assert [v.filename for v in contents.videos] == ["Show - 01.mkv"]
    assert "Duplicate video entry dropped" in caplog.text


def test_classify_many_skips_bad_roots(make_tree, tmp_path):
    root = make_tree("Show/Show - 01.mkv")
    units = classify_many([tmp_path / "missing", root])
    assert [u.name for u in units] == ["Show"]


def test_read_folder_uses_season_fallback(make_tree):
    root = make_tree("Show S2/Show - 03.mkv")
    contents = read_folder(root / "Show S2", season_fallback=2)
    assert contents.videos[0].season == 2
    assert contents.videos[0].episode == 3


def test_numeric_file_name_needs_folder_agreement(make_tree):
    root = make_tree("Cool Show/12 - 01.mkv")
    folder = root / "Cool Show"
    contents = read_folder(folder)
    assert resolve_series_name(folder, contents.videos) == "Cool Show"
