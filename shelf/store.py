"""JSON metadata store: one record per series, keyed by identifier."""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from .models import SeriesRecord

log = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"


class MetadataStore:
    """Whole-file JSON store of ``SeriesRecord`` objects.

    The file is read in full and replaced in full; there are no
    incremental writes.
    """

    def __init__(self, path: str | Path):
        """
        Initialize the store.

        Args:
            path: The JSON file, or a directory in which ``metadata.json``
                  is used.
        """
        path = Path(path)
        if path.is_dir() or path.suffix.lower() != ".json":
            path = path / METADATA_FILE
        self.path = path

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Metadata store %s is unreadable, starting empty: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            log.warning("Metadata store %s has an unexpected layout, starting empty", self.path)
            return {}
        return data

    def load(self) -> dict[str, SeriesRecord]:
        """Load every record; a missing or corrupt file yields an empty store."""
        records = {}
        for series_id, raw in self._read().items():
            try:
                records[series_id] = SeriesRecord.from_dict({"id": series_id, **raw})
            except (TypeError, ValueError) as e:
                log.warning("Skipping malformed record %s: %s", series_id, e)
        return records

    def save(self, records: dict[str, SeriesRecord]) -> int:
        """
        Replace the file with *records*.

        Records without any file episode are dropped.  The new content is
        written to a temporary file in the same directory and moved over
        the old one, so a failed write leaves the previous store intact.

        Returns:
            Number of records written
        """
        kept = {
            series_id: record.to_dict()
            for series_id, record in records.items()
            if record.file_episodes
        }
        dropped = len(records) - len(kept)
        if dropped:
            log.info("Purged %d record(s) without local files", dropped)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".metadata-", suffix=".json", dir=self.path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(kept, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return len(kept)

    def get(self, series_id: str) -> SeriesRecord | None:
        return self.load().get(series_id)

    def delete(self, series_id: str) -> SeriesRecord | None:
        """Remove one record.  Returns it, or None when it did not exist."""
        records = self.load()
        record = records.pop(series_id, None)
        if record is not None:
            self.save(records)
        return record

    def clear(self) -> None:
        self.save({})
