from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from solarman_sync.errors import ApplicationError


@dataclass
class DayRecord:
    collect_time: str
    values: Dict[str, str] = field(default_factory=dict)


@dataclass
class DayData:
    records: List[DayRecord]


@dataclass
class GapDay:
    pass


@dataclass
class DayFailed:
    message: str
    error: Optional[ApplicationError] = None
    connectivity: bool = False


@dataclass
class Unauthorized:
    message: str = "HTTP 401"


DayOutcome = Union[DayData, GapDay, DayFailed, Unauthorized]
