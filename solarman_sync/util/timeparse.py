from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

# Encodings accepted for the leading collectTime column, tried in order.
COLLECT_TIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)

WEATHER_TIME_FORMATS = (
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
)

METADATA_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_timestamp(raw: str | None, formats: Sequence[str] = COLLECT_TIME_FORMATS) -> Optional[datetime]:
    """Return the first successful parse of ``raw`` against ``formats``."""
    if not raw:
        return None
    text = raw.strip()
    if not text:
        return None
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_day(raw: str | None, formats: Sequence[str] = COLLECT_TIME_FORMATS) -> Optional[date]:
    dt = parse_timestamp(raw, formats)
    return dt.date() if dt else None


def format_metadata_time(value: datetime) -> str:
    return value.strftime(METADATA_TIME_FORMAT)


def parse_metadata_time(raw: str | None) -> Optional[datetime]:
    return parse_timestamp(raw, (METADATA_TIME_FORMAT,))
