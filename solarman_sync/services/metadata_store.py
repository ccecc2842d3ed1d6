# solarman_sync/services/metadata_store.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

from solarman_sync.models.sync import SyncMetadata
from solarman_sync.util.timeparse import format_metadata_time, parse_metadata_time


class MetadataStore:
    """JSON sidecar recording the config fingerprint and last fetch times."""

    def __init__(self, path: Union[Path, str], log=None):
        self.path = Path(path)
        self.log = log or logging.getLogger("solarman.metadata")

    # ------------------------------------------------------------------
    def load(self) -> Optional[SyncMetadata]:
        if not self.path.exists():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            self.log.warning("Error loading metadata from %s: %s", self.path, exc)
            return None
        if not isinstance(raw, dict):
            self.log.warning("Metadata in %s is not an object; ignoring", self.path)
            return None

        config_hash = raw.get("configHash") or ""
        changed_at = parse_metadata_time(raw.get("configLastChanged"))
        fetched_at = parse_metadata_time(raw.get("lastFetchDate"))
        if not config_hash or changed_at is None or fetched_at is None:
            self.log.warning("Metadata in %s is incomplete; ignoring", self.path)
            return None

        return SyncMetadata(
            config_hash=config_hash,
            config_last_changed_at=changed_at,
            last_fetch_at=fetched_at,
        )

    def save(self, metadata: SyncMetadata) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "configHash": metadata.config_hash,
            "configLastChanged": format_metadata_time(metadata.config_last_changed_at),
            "lastFetchDate": format_metadata_time(metadata.last_fetch_at),
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
        os.replace(tmp_path, self.path)
