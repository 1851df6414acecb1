import json

import pytest

from shelf.settings import DEFAULT_SETTINGS, SETTINGS_FILENAME, SettingsManager


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("TVDB_API_KEY", "")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    return SettingsManager(tmp_path / "data")


def test_defaults(settings):
    assert settings.get("search_limit") == 10
    assert settings.get("unit_delay") == 0.5
    assert settings.get("provider_order") == ["anilist", "mal", "tvdb"]
    assert settings.folder_sources() == []
    assert settings.all() == DEFAULT_SETTINGS


def test_save_and_reload(settings):
    settings.set("search_limit", 5)
    assert settings.save()

    assert json.loads(settings.path.read_text(encoding="utf-8")) == {"search_limit": 5}
    assert SettingsManager(settings.directory).get("search_limit") == 5


def test_folder_sources(settings, tmp_path):
    folder = tmp_path / "anime"
    folder.mkdir()

    assert settings.add_folder_source(folder)
    assert not settings.add_folder_source(folder)
    assert settings.folder_sources() == [str(folder.resolve())]

    assert settings.remove_folder_source(folder)
    assert not settings.remove_folder_source(folder)
    assert settings.folder_sources() == []


def test_tvdb_key_from_environment(settings, monkeypatch):
    assert settings.get("tvdb_api_key") == ""
    monkeypatch.setenv("TVDB_API_KEY", "from-env")
    assert settings.get("tvdb_api_key") == "from-env"
    settings.set("tvdb_api_key", "stored")
    assert settings.get("tvdb_api_key") == "stored"


def test_tvdb_key_from_dotenv(settings, tmp_path, monkeypatch):
    monkeypatch.delenv("TVDB_API_KEY")
    (tmp_path / ".env").write_text("TVDB_API_KEY=from-dotenv\n", encoding="utf-8")
    assert settings.get("tvdb_api_key") == "from-dotenv"


def test_mark_scanned(settings):
    settings.mark_scanned()
    assert settings.get("last_scanned")


def test_corrupt_file_is_ignored(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / SETTINGS_FILENAME).write_text("{oops", encoding="utf-8")
    assert SettingsManager(directory).get("search_limit") == 10
