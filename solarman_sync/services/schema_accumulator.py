from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from solarman_sync.models.telemetry import DayRecord


class SchemaAccumulator:
    """
    Discovers CSV columns from the metric keys seen across days.

    Columns keep first-seen order. Records are buffered while the header is
    still being collected; ``commit`` hands back the header and the buffered
    records in arrival order and switches to pass-through.
    """

    def __init__(self, max_collection_days: int = 3, existing_columns: Sequence[str] | None = None):
        self.max_collection_days = max(1, int(max_collection_days))
        self._columns: List[str] = []
        self._seen: set[str] = set()
        self._pending: List[DayRecord] = []
        self.days_observed = 0
        self.committed = False
        if existing_columns:
            self.add_keys(existing_columns)
            self.committed = True

    # ------------------------------------------------------------------
    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    @property
    def collecting(self) -> bool:
        return not self.committed

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def add_keys(self, keys: Iterable[str]) -> List[str]:
        added: List[str] = []
        for key in keys:
            if not key or key in self._seen:
                continue
            self._seen.add(key)
            self._columns.append(key)
            added.append(key)
        return added

    def observe(self, records: Iterable[DayRecord]) -> List[str]:
        """Record the keys of one day; returns keys not seen before."""
        added: List[str] = []
        for record in records:
            added.extend(self.add_keys(record.values.keys()))
        return added

    def buffer(self, records: Iterable[DayRecord]) -> None:
        self._pending.extend(records)
        self.days_observed += 1

    def should_commit_header(self, gap: bool = False) -> bool:
        if self.committed:
            return False
        if gap:
            return self.has_pending
        return self.days_observed >= self.max_collection_days

    def commit(self) -> Tuple[List[str], List[DayRecord]]:
        pending, self._pending = self._pending, []
        self.committed = True
        return self.columns, pending
