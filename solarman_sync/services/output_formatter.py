# solarman_sync/services/output_formatter.py

from __future__ import annotations

import json
from datetime import date, timedelta
from typing import Optional, Tuple

from solarman_sync.errors import SyncError
from solarman_sync.models.sync import FetchWindow, SyncMetadata, SyncResult
from solarman_sync.util.timeparse import format_metadata_time


def _result_to_dict(result: SyncResult) -> dict:
    return {
        "status": result.status,
        "file_path": result.file_path,
        "row_count": result.row_count,
        "rows_fetched": result.rows_fetched,
        "first_timestamp": result.first_timestamp,
        "last_timestamp": result.last_timestamp,
    }


def _window_to_dict(window: Optional[FetchWindow]) -> Optional[dict]:
    if window is None:
        return None
    return {"start": window.start.isoformat(), "end": window.end.isoformat(), "days": len(window)}


def emit_result_json(result: Optional[SyncResult], error: Optional[BaseException] = None) -> None:
    payload: dict = {"ok": error is None}
    if result is not None:
        payload["result"] = _result_to_dict(result)
    if isinstance(error, SyncError):
        payload["error"] = error.as_dict()
    elif error is not None:
        payload["error"] = {"kind": type(error).__name__, "message": str(error), "last_date": None}
    print(json.dumps(payload, indent=2))


def emit_result_human(result: Optional[SyncResult], error: Optional[BaseException] = None) -> None:
    if error is not None:
        print("=== SYNC FAILED ===")
        print(f"Error: {getattr(error, 'message', None) or error}")
        last_date = getattr(error, "last_date", None)
        if last_date:
            print(f"Last attempted date: {last_date.isoformat()}")
        return
    if result is None:
        return

    print("=== SYNC COMPLETE ===")
    if result.status == "up_to_date":
        print("All data already exists, no fetch needed")
    print(f"File: {result.file_path}")
    print(f"Rows: {result.row_count} (fetched this run: {result.rows_fetched})")
    print(f"Range: {result.first_timestamp or '-'} .. {result.last_timestamp or '-'}")


def emit_status(
    *,
    as_json: bool,
    metadata: Optional[SyncMetadata],
    config_hash: str,
    coverage: Optional[Tuple[date, date]],
    target: Optional[FetchWindow],
    row_count: int,
) -> None:
    pending = None
    if target is not None:
        if coverage is None or metadata is None or metadata.config_hash != config_hash:
            pending = target
        elif coverage[1] < target.end:
            pending = FetchWindow(start=max(coverage[1] + timedelta(days=1), target.start), end=target.end)

    if as_json:
        payload = {
            "config_hash": config_hash,
            "config_changed": metadata is None or metadata.config_hash != config_hash,
            "metadata": None
            if metadata is None
            else {
                "config_hash": metadata.config_hash,
                "config_last_changed": format_metadata_time(metadata.config_last_changed_at),
                "last_fetch": format_metadata_time(metadata.last_fetch_at),
            },
            "coverage": None if coverage is None else {"start": coverage[0].isoformat(), "end": coverage[1].isoformat()},
            "row_count": row_count,
            "target": _window_to_dict(target),
            "pending": _window_to_dict(pending),
        }
        print(json.dumps(payload, indent=2))
        return

    print("=== SYNC STATUS ===")
    print(f"Config hash: {config_hash}")
    if metadata is None:
        print("Metadata: none (next sync fetches the full window)")
    else:
        changed = "yes" if metadata.config_hash != config_hash else "no"
        print(f"Config changed since last sync: {changed}")
        print(f"Config last changed: {format_metadata_time(metadata.config_last_changed_at)}")
        print(f"Last fetch: {format_metadata_time(metadata.last_fetch_at)}")
    if coverage is None:
        print("Local data: none")
    else:
        print(f"Local data: {coverage[0].isoformat()} .. {coverage[1].isoformat()} ({row_count} rows)")
    if target is None:
        print("Target window: unavailable (weather CSV missing)")
    else:
        print(f"Target window: {target.start.isoformat()} .. {target.end.isoformat()}")
    if pending is None:
        print("Pending: nothing to fetch")
    else:
        print(f"Pending: {pending.start.isoformat()} .. {pending.end.isoformat()} ({len(pending)} days)")
