# solarman_sync/tests/test_metadata_store.py

import json
from datetime import datetime

from solarman_sync.models.sync import SyncMetadata
from solarman_sync.services.metadata_store import MetadataStore


def test_missing_file_loads_none(tmp_path):
    assert MetadataStore(tmp_path / "meta.json").load() is None


def test_save_writes_expected_document(tmp_path):
    path = tmp_path / "nested" / "station_data_metadata.json"
    store = MetadataStore(path)
    store.save(
        SyncMetadata(
            config_hash="abcd1234abcd1234",
            config_last_changed_at=datetime(2024, 1, 1, 8, 30, 0),
            last_fetch_at=datetime(2024, 1, 5, 12, 0, 59),
        )
    )

    raw = path.read_text(encoding="utf-8")
    assert json.loads(raw) == {
        "configHash": "abcd1234abcd1234",
        "configLastChanged": "2024-01-01 08:30:00",
        "lastFetchDate": "2024-01-05 12:00:59",
    }
    assert '\n  "configHash"' in raw
    assert not path.with_name(path.name + ".tmp").exists()


def test_load_parses_saved_document(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text(
        json.dumps({
            "configHash": "ffff0000ffff0000",
            "configLastChanged": "2024-02-01 00:00:00",
            "lastFetchDate": "2024-02-02 06:15:00",
        }),
        encoding="utf-8",
    )

    meta = MetadataStore(path).load()

    assert meta.config_hash == "ffff0000ffff0000"
    assert meta.config_last_changed_at == datetime(2024, 2, 1)
    assert meta.last_fetch_at == datetime(2024, 2, 2, 6, 15)


def test_corrupt_file_is_treated_as_absent(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text("{not json", encoding="utf-8")

    assert MetadataStore(path).load() is None


def test_incomplete_document_is_treated_as_absent(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text(json.dumps({"configHash": "abc", "lastFetchDate": "2024-02-02 06:15:00"}), encoding="utf-8")

    assert MetadataStore(path).load() is None

    path.write_text(json.dumps(["not", "an", "object"]), encoding="utf-8")
    assert MetadataStore(path).load() is None


class RecordingLog:
    def __init__(self):
        self.warnings = []

    def warning(self, msg, *args):
        self.warnings.append(msg % args)


def test_warnings_go_to_the_given_logger(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text("{not json", encoding="utf-8")
    log = RecordingLog()

    assert MetadataStore(path, log).load() is None
    assert len(log.warnings) == 1
    assert log.warnings[0].startswith(f"Error loading metadata from {path}")
