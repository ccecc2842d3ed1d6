from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, Optional


@dataclass(frozen=True)
class FetchWindow:
    start: date
    end: date

    @property
    def is_empty(self) -> bool:
        return self.start > self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __len__(self) -> int:
        return max((self.end - self.start).days + 1, 0)


@dataclass
class ContinuousBlock:
    start_date: Optional[date] = None
    day_count: int = 0
    row_count: int = 0


@dataclass
class SyncMetadata:
    config_hash: str
    config_last_changed_at: datetime
    last_fetch_at: datetime


@dataclass
class SyncResult:
    file_path: str
    row_count: int
    first_timestamp: Optional[str]
    last_timestamp: Optional[str]
    rows_fetched: int = 0
    status: str = "synced"  # synced, up_to_date
