from __future__ import annotations

import csv
from pathlib import Path
from typing import Optional, Union

from solarman_sync.models.sync import FetchWindow
from solarman_sync.util.timeparse import WEATHER_TIME_FORMATS, parse_day


def read_target_window(path: Union[Path, str], log=None) -> Optional[FetchWindow]:
    """Inclusive day range covered by the first column of the weather CSV."""
    path = Path(path)
    if not path.exists():
        return None

    start = None
    end = None
    with path.open("r", encoding="utf-8", newline="") as fh:
        reader = csv.reader(fh)
        if next(reader, None) is None:
            return None
        for row in reader:
            if not row or not row[0].strip():
                continue
            day = parse_day(row[0], WEATHER_TIME_FORMATS)
            if day is None:
                if log is not None:
                    log.debug("Skipping unparseable weather timestamp %r", row[0])
                continue
            if start is None or day < start:
                start = day
            if end is None or day > end:
                end = day

    if start is None or end is None:
        return None
    return FetchWindow(start=start, end=end)
