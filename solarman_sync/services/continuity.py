from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Optional

from solarman_sync.models.sync import ContinuousBlock


class ContinuityTracker:
    """
    Tracks the current unbroken run of days with data.

    A gap freezes the open run as the last valid block and starts over, so
    only the most recent run survives into the final file.
    """

    def __init__(self, seed: Optional[ContinuousBlock] = None):
        self.current = ContinuousBlock()
        self.last_valid: Optional[ContinuousBlock] = None
        self.total_rows = 0
        if seed is not None and seed.day_count > 0:
            self.current = replace(seed)
            self.total_rows = seed.row_count

    # ------------------------------------------------------------------
    def record_data(self, day: date, rows: int) -> None:
        if self.current.day_count == 0:
            self.current.start_date = day
        self.current.day_count += 1
        self.current.row_count += rows
        self.total_rows += rows

    def record_gap(self, day: date) -> Optional[ContinuousBlock]:
        """Close the open block at ``day``; returns the frozen block, if any."""
        if self.current.day_count == 0:
            return None
        frozen = replace(self.current)
        self.last_valid = frozen
        self.current = ContinuousBlock()
        return frozen

    def finish(self) -> Optional[ContinuousBlock]:
        if self.current.day_count > 0:
            self.last_valid = replace(self.current)
        return self.last_valid

    def needs_trim(self) -> bool:
        block = self.finish()
        return bool(block and block.start_date and 0 < block.row_count < self.total_rows)
