# solarman_sync/errors.py

from __future__ import annotations

from datetime import date


class SyncError(Exception):
    """Base class for failures surfaced to the caller of a sync run."""

    kind = "sync_error"

    def __init__(self, message: str, *, last_date: date | None = None):
        super().__init__(message)
        self.message = message
        self.last_date = last_date

    def as_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "last_date": self.last_date.isoformat() if self.last_date else None,
        }


class ConfigIncomplete(SyncError):
    kind = "config_incomplete"


class AuthFailed(SyncError):
    kind = "auth_failed"

    def __init__(self, message: str, *, status: int | None = None, last_date: date | None = None):
        super().__init__(message, last_date=last_date)
        self.status = status


class ConnectivityLost(SyncError):
    kind = "connectivity_lost"


class ApplicationError(SyncError):
    kind = "application_error"


class ConsecutiveFailureLimit(SyncError):
    kind = "consecutive_failure_limit"


class NoDataInRange(SyncError):
    kind = "no_data_in_range"


class TargetWindowUnavailable(SyncError):
    kind = "target_window_unavailable"


class SyncCancelled(SyncError):
    kind = "cancelled"
