import pytest

from shelf.errors import ScanError
from shelf.library import SCAN_PROGRESS, Library
from shelf.models import ProviderEpisode
from shelf.progress import ProgressTracker
from shelf.reconcile import ReconciliationEngine
from shelf.settings import SettingsManager
from shelf.store import MetadataStore

from conftest import FakeProvider, candidate


class FakeImages:
    def __init__(self):
        self.deleted = []

    def delete_series_images(self, record):
        self.deleted.append(record.id)
        return 0


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("TVDB_API_KEY", "")
    return SettingsManager(tmp_path / "data")


@pytest.fixture
def library_root(make_tree):
    return make_tree(
        "Alpha/Alpha - 01.mkv",
        "Alpha/Alpha - 02.mkv",
        "Beta/Beta - 01.mkv",
    )


def make_library(settings, providers, progress=None, images=None):
    delays = []
    engine = ReconciliationEngine(providers, sleep=lambda s: None)
    library = Library(
        settings,
        MetadataStore(settings.directory),
        engine,
        progress=progress,
        images=images,
        sleep=delays.append,
    )
    return library, delays


def alpha_provider(**kwargs):
    return FakeProvider(
        "anilist",
        results={"Alpha": [candidate("Alpha", 2)]},
        episodes=[ProviderEpisode(1, title="First"), ProviderEpisode(2, title="Second")],
        **kwargs,
    )


def test_scan_persists_every_unit(settings, library_root):
    events = []
    library, delays = make_library(
        settings, [alpha_provider()], progress=ProgressTracker(lambda *e: events.append(e)),
    )

    result = library.scan(library_root)

    assert (result.units, result.persisted, result.local_only) == (2, 2, 1)
    records = library.store.load()
    assert records["alpha"].source == "anilist"
    assert records["alpha"].episodes[0].title == "First"
    assert records["beta"].source == "local"
    # One pause between the two units that went to the providers
    assert delays == [0.5]
    assert settings.get("last_scanned")
    scan_events = [e for e in events if e[0] == SCAN_PROGRESS]
    assert scan_events[-1][1:3] == (2, 2)


def test_second_scan_uses_cached_records(settings, library_root):
    library, _ = make_library(settings, [alpha_provider()])
    library.scan(library_root)
    records = library.store.load()
    records["alpha"].poster_local = "/cache/alpha.jpg"
    library.store.save(records)

    provider = alpha_provider()
    library, delays = make_library(settings, [provider])
    result = library.scan(library_root)

    assert result.cache_hits == 1
    assert provider.queries == ["Beta"]
    assert delays == []


def test_records_from_other_roots_are_kept(settings, library_root, tmp_path):
    library, _ = make_library(settings, [alpha_provider()])
    library.scan(library_root)

    other = tmp_path / "other"
    (other / "Gamma").mkdir(parents=True)
    (other / "Gamma" / "Gamma - 01.mkv").write_bytes(b"")
    library.scan(other)

    assert sorted(library.store.load()) == ["alpha", "beta", "gamma"]


def test_unreadable_root_leaves_store_untouched(settings, library_root, tmp_path):
    library, _ = make_library(settings, [alpha_provider()])
    library.scan(library_root)
    before = library.store.path.read_bytes()

    with pytest.raises(ScanError):
        library.scan(tmp_path / "missing")
    assert library.store.path.read_bytes() == before


def test_cancel_stops_at_next_unit(settings, library_root):
    library = None

    def cancel_on_first_search(query):
        library.cancel()

    library, _ = make_library(settings, [alpha_provider(on_search=cancel_on_first_search)])
    result = library.scan(library_root)

    assert result.cancelled
    assert result.processed == 1
    assert list(library.store.load()) == ["alpha"]


def test_cancel_before_scan_applies_to_next_scan(settings, library_root):
    library, _ = make_library(settings, [alpha_provider()])
    library.cancel()

    result = library.scan(library_root)
    assert result.cancelled
    assert result.processed == 0

    # The flag is reset once that scan ends
    result = library.scan(library_root)
    assert not result.cancelled
    assert result.processed == 2


def test_scan_all_skips_missing_sources(settings, library_root, tmp_path):
    settings.set("folder_sources", [str(tmp_path / "missing"), str(library_root)])
    library, _ = make_library(settings, [alpha_provider()])

    result = library.scan_all()

    assert result.failed_roots == [str(tmp_path / "missing")]
    assert result.persisted == 2


def test_scan_all_fails_when_nothing_is_readable(settings, tmp_path):
    settings.set("folder_sources", [str(tmp_path / "missing")])
    library, _ = make_library(settings, [alpha_provider()])
    with pytest.raises(ScanError):
        library.scan_all()


def test_delete_series(settings, library_root):
    images = FakeImages()
    library, _ = make_library(settings, [alpha_provider()], images=images)
    library.scan(library_root)

    assert library.delete_series("alpha")
    assert not library.delete_series("alpha")
    assert images.deleted == ["alpha"]
    assert list(library.store.load()) == ["beta"]


def test_from_settings_respects_toggles(settings):
    settings.set("provider_order", ["mal"])
    settings.set("cache_images", False)
    settings.set("generate_thumbnails", False)

    library = Library.from_settings(settings)

    assert [p.name for p in library.engine.providers] == ["mal"]
    assert library.images is None
    assert library.engine.thumbnails is None
    assert library.store.path.parent == settings.directory
