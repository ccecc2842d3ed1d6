# solarman_sync/services/csv_writer.py

from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import IO, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from solarman_sync.models.telemetry import DayRecord
from solarman_sync.util.timeparse import parse_day

TIME_COLUMN = "collectTime"
_TAIL_BLOCK = 4096


@dataclass
class CsvStats:
    row_count: int
    first_timestamp: Optional[str]
    last_timestamp: Optional[str]


def _first_field(line: str) -> str:
    try:
        row = next(csv.reader([line]))
    except (csv.Error, StopIteration):
        return ""
    return row[0].strip() if row else ""


def _lines_from_end(path: Path) -> Iterator[str]:
    """Yield non-empty lines last-first, reading backwards in fixed blocks."""
    with path.open("rb") as fh:
        fh.seek(0, os.SEEK_END)
        pos = fh.tell()
        tail = b""
        while pos > 0:
            step = min(_TAIL_BLOCK, pos)
            pos -= step
            fh.seek(pos)
            lines = (fh.read(step) + tail).split(b"\n")
            # The first piece may continue in the block before it.
            tail = lines.pop(0)
            for raw in reversed(lines):
                if raw.strip():
                    yield raw.decode("utf-8", errors="replace").strip()
        if tail.strip():
            yield tail.decode("utf-8", errors="replace").strip()


class CsvSyncWriter:
    """
    Streams day rows into the station CSV.

    The file is opened lazily in append or truncate mode. The header is the
    fixed ``collectTime`` column followed by every discovered key; a row
    without a key gets an empty field.
    """

    def __init__(self, path: Union[Path, str], log=None):
        self.path = Path(path)
        self.log = log or logging.getLogger("solarman.csv")
        self.append = False
        self.columns: List[str] = []
        self.header_written = False
        self._fh: Optional[IO[str]] = None
        self._writer = None

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def exists(self) -> bool:
        return self.path.exists() and self.path.stat().st_size > 0

    def read_header(self) -> Optional[List[str]]:
        if not self.exists():
            return None
        with self.path.open("r", encoding="utf-8", newline="") as fh:
            reader = csv.reader(fh)
            header = next(reader, None)
        if not header:
            return None
        return [col.strip() for col in header]

    def read_existing_coverage(self) -> Optional[Tuple[date, date]]:
        """First and last data-line dates, without loading the whole file."""
        if not self.exists():
            return None

        first_line = None
        with self.path.open("r", encoding="utf-8", newline="") as fh:
            fh.readline()
            for line in fh:
                if line.strip():
                    first_line = line
                    break
        if first_line is None:
            return None

        start = parse_day(_first_field(first_line))
        end = None
        for line in _lines_from_end(self.path):
            end = parse_day(_first_field(line))
            if end is not None or line.startswith(TIME_COLUMN):
                break
        if start is None or end is None:
            self.log.warning("Could not parse coverage dates from %s", self.path)
            return None
        return start, end

    def scan(self) -> CsvStats:
        count = 0
        first = None
        last = None
        if not self.exists():
            return CsvStats(0, None, None)
        with self.path.open("r", encoding="utf-8", newline="") as fh:
            reader = csv.reader(fh)
            next(reader, None)
            for row in reader:
                if not row or not any(field.strip() for field in row):
                    continue
                count += 1
                if first is None:
                    first = row[0]
                last = row[0]
        return CsvStats(count, first, last)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def begin(self, *, append: bool) -> None:
        """Choose the open mode; in append mode the existing header is adopted."""
        self.close()
        self.append = append
        self.header_written = False
        self.columns = []
        if append:
            header = self.read_header()
            if header:
                self.columns = [col for col in header if col and col != TIME_COLUMN]
                self.header_written = True

    def _handle(self):
        if self._writer is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            mode = "a" if self.append else "w"
            self._fh = self.path.open(mode, encoding="utf-8", newline="")
            self._writer = csv.writer(self._fh, lineterminator="\n")
            # Later reopenings after a rewrite must not truncate again.
            self.append = True
        return self._writer

    def write_header(self, columns: Sequence[str]) -> None:
        if self.header_written:
            raise RuntimeError(f"Header already written to {self.path}")
        self.columns = list(columns)
        self._handle().writerow([TIME_COLUMN, *self.columns])
        self.header_written = True

    def write_records(self, records: Iterable[DayRecord]) -> int:
        if not self.header_written:
            raise RuntimeError(f"Cannot write rows to {self.path} before the header")
        writer = self._handle()
        count = 0
        for record in records:
            writer.writerow([record.collect_time, *(record.values.get(col, "") for col in self.columns)])
            count += 1
        return count

    def extend_columns(self, columns: Sequence[str]) -> None:
        """Widen the header to ``columns``, padding rows already on disk."""
        new_columns = list(columns)
        if new_columns[: len(self.columns)] != self.columns:
            raise ValueError("Columns can only be extended, not reordered")
        if len(new_columns) == len(self.columns):
            return
        if not self.header_written:
            self.columns = new_columns
            return

        self.close()
        width = len(new_columns) + 1
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with self.path.open("r", encoding="utf-8", newline="") as src, \
                tmp_path.open("w", encoding="utf-8", newline="") as dst:
            reader = csv.reader(src)
            writer = csv.writer(dst, lineterminator="\n")
            next(reader, None)
            writer.writerow([TIME_COLUMN, *new_columns])
            for row in reader:
                if not row:
                    continue
                writer.writerow(row + [""] * (width - len(row)))
        os.replace(tmp_path, self.path)
        self.columns = new_columns
        self.append = True
        self.log.debug("Widened %s header to %d columns", self.path.name, len(new_columns))

    def flush(self) -> None:
        if self._fh is not None:
            self._fh.flush()
            os.fsync(self._fh.fileno())

    def close(self) -> None:
        if self._fh is not None:
            self._fh.flush()
            self._fh.close()
        self._fh = None
        self._writer = None

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def drop_torn_tail(self) -> int:
        """Cut a final row left without its newline by an interrupted write; returns bytes dropped."""
        self.close()
        if not self.exists():
            return 0
        with self.path.open("rb+") as fh:
            fh.seek(0, os.SEEK_END)
            size = fh.tell()
            fh.seek(size - 1)
            if fh.read(1) == b"\n":
                return 0
            pos = size
            keep = None
            while pos > 0 and keep is None:
                step = min(_TAIL_BLOCK, pos)
                pos -= step
                fh.seek(pos)
                idx = fh.read(step).rfind(b"\n")
                if idx >= 0:
                    keep = pos + idx + 1
            if keep is None:
                # Nothing but a header; leave it to the header checks.
                return 0
            fh.truncate(keep)
        return size - keep

    def trim_to_date(self, min_date: date) -> int:
        """Keep the header and rows dated on or after ``min_date``; returns rows kept."""
        self.close()
        if not self.exists():
            return 0

        kept = 0
        dropped = 0
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with self.path.open("r", encoding="utf-8", newline="") as src, \
                tmp_path.open("w", encoding="utf-8", newline="") as dst:
            reader = csv.reader(src)
            writer = csv.writer(dst, lineterminator="\n")
            header = next(reader, None)
            if header is None:
                tmp_path.unlink()
                return 0
            writer.writerow(header)
            for row in reader:
                if not row or not any(field.strip() for field in row):
                    continue
                row_day = parse_day(row[0])
                if row_day is not None and row_day >= min_date:
                    writer.writerow(row)
                    kept += 1
                else:
                    dropped += 1
        os.replace(tmp_path, self.path)
        self.append = True
        self.log.debug("Trimmed %s to start from %s (%d kept, %d dropped)", self.path.name, min_date, kept, dropped)
        return kept

    def delete(self) -> None:
        self.close()
        self.path.unlink(missing_ok=True)
        self.header_written = False
        self.columns = []
