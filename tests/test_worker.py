import pytest

pytest.importorskip("PySide6")

from gui.worker import ScanWorker  # noqa: E402
from shelf.library import Library  # noqa: E402
from shelf.reconcile import ReconciliationEngine  # noqa: E402
from shelf.settings import SettingsManager  # noqa: E402
from shelf.store import MetadataStore  # noqa: E402


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("TVDB_API_KEY", "")
    return SettingsManager(tmp_path / "data")


def make_worker(settings, folder):
    engine = ReconciliationEngine([], sleep=lambda s: None)
    library = Library(settings, MetadataStore(settings.directory), engine, sleep=lambda s: None)
    return ScanWorker(settings, str(folder), library=library)


def collect(worker):
    seen = {"progress": [], "finished": [], "error": [], "log": []}
    worker.progress.connect(lambda cur, total: seen["progress"].append((cur, total)))
    worker.finished.connect(seen["finished"].append)
    worker.error.connect(seen["error"].append)
    worker.log.connect(seen["log"].append)
    return seen


def test_scan_emits_progress_and_result(settings, make_tree):
    root = make_tree("Alpha/Alpha - 01.mkv", "Beta/Beta - 01.mkv")
    worker = make_worker(settings, root)
    seen = collect(worker)

    worker.run()

    assert seen["error"] == []
    assert seen["progress"] == [(0, 2), (1, 2), (2, 2)]
    result, = seen["finished"]
    assert result["persisted"] == 2
    assert seen["log"][0].startswith("Scanning:")


def test_unreadable_folder_emits_error(settings, tmp_path):
    worker = make_worker(settings, tmp_path / "missing")
    seen = collect(worker)

    worker.run()

    assert seen["finished"] == []
    assert len(seen["error"]) == 1
