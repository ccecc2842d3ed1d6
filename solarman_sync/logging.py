from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

APP_LOGGER = "solarman"

# Third-party loggers that are chatty at DEBUG; kept at WARNING unless named
# explicitly in debug_modules.
_NOISY_LOGGERS = ("urllib3", "requests")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ConsoleLog:
    """Console logging for the sync CLI; progress messages arrive at INFO."""

    def __init__(self, level: str = "INFO", quiet: bool = False, debug_modules: Iterable[str] | None = None):
        self.level = logging.getLevelName(level.upper())
        if not isinstance(self.level, int):
            self.level = logging.INFO
        self.quiet = quiet
        self.debug_modules = [name for name in (debug_modules or []) if name]

    def setup(self) -> logging.Logger:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.setLevel(logging.DEBUG)

        if not self.quiet:
            console = logging.StreamHandler(sys.stdout)
            console.setLevel(self.level)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
            root.addHandler(console)

        for name in _NOISY_LOGGERS:
            if name not in self.debug_modules:
                logging.getLogger(name).setLevel(logging.WARNING)
        for name in self.debug_modules:
            logging.getLogger(name).setLevel(logging.DEBUG)

        return logging.getLogger(APP_LOGGER)


@dataclass
class SyncRunLogEntry:
    timestamp: str
    mode: str | None
    config_hash: str | None
    window: dict[str, Any] | None
    status: str | None
    rows_fetched: int | None
    row_count: int | None
    first_timestamp: str | None
    last_timestamp: str | None
    error: dict[str, Any] | None

    @classmethod
    def from_run(cls, state, result=None, error: BaseException | None = None) -> "SyncRunLogEntry":
        """Summarize one orchestrator run from its final state."""
        window = state.window if state.window is not None else state.target
        if error is None:
            error_payload = None
        elif hasattr(error, "as_dict"):
            error_payload = error.as_dict()
        else:
            error_payload = {"kind": type(error).__name__, "message": str(error), "last_date": None}
        return cls(
            timestamp=datetime.now().isoformat(timespec="seconds"),
            mode=state.mode,
            config_hash=state.config_hash or None,
            window=None if window is None else {"start": window.start, "end": window.end},
            status=result.status if result is not None else "failed",
            rows_fetched=result.rows_fetched if result is not None else state.rows_fetched,
            row_count=result.row_count if result is not None else None,
            first_timestamp=result.first_timestamp if result is not None else None,
            last_timestamp=result.last_timestamp if result is not None else None,
            error=error_payload,
        )


def _to_jsonable(obj: Any) -> Any:
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Path):
        return str(obj)
    if is_dataclass(obj) and not isinstance(obj, type):
        return _to_jsonable(asdict(obj))
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_to_jsonable(item) for item in obj]
    return str(obj)


class StructuredLog:
    """Appends one JSON line per sync run; a no-op unless enabled with a path."""

    def __init__(self, path: str | None, enabled: bool = False):
        self.path = Path(path).expanduser() if path else None
        self.enabled = bool(enabled and self.path)
        if self.enabled:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, entry: SyncRunLogEntry) -> None:
        if not self.enabled:
            return
        line = json.dumps(_to_jsonable(entry), sort_keys=False)
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            logging.getLogger(APP_LOGGER).warning("Could not append run log to %s: %s", self.path, exc)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
