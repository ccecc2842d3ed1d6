from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Credential:
    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at
