from __future__ import annotations

import socket
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from solarman_sync.config import SolarmanAPIConfig
from solarman_sync.models.telemetry import DayRecord

TOKEN_PATH = "/account/v1.0/token"
HISTORY_PATH = "/device/v1.0/historical"

_CONNECTIVITY_MARKERS = (
    "unable to resolve host",
    "network is unreachable",
    "name or service not known",
    "temporary failure in name resolution",
    "nodename nor servname",
    "connection refused",
    "failed to establish a new connection",
)


def is_connectivity_error(exc: BaseException) -> bool:
    """True when a transport failure looks like the network went away."""
    if isinstance(exc, requests.exceptions.SSLError):
        return False
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(exc, (socket.gaierror, socket.timeout, ConnectionRefusedError, TimeoutError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _CONNECTIVITY_MARKERS)


@dataclass
class APIResponse:
    status_code: int
    payload: Optional[Dict[str, Any]]

    @property
    def success(self) -> bool:
        return bool(self.status_code == 200 and self.payload and self.payload.get("success"))

    @property
    def message(self) -> str:
        if self.payload and self.payload.get("msg"):
            return str(self.payload["msg"])
        if self.payload is None:
            return f"HTTP {self.status_code} - Empty or non-JSON response"
        return f"HTTP {self.status_code}"


class SolarmanAPIClient:
    """Thin Solarman Open API transport; callers decide what failures mean."""

    API_BASE_DEFAULT = "https://globalapi.solarmanpv.com"

    def __init__(self, cfg: SolarmanAPIConfig, log, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.log = log
        self.session = session or requests.Session()
        self.base_url = (cfg.base_url or self.API_BASE_DEFAULT).rstrip("/")

    # ------------------------------------------------------------------
    def _build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def _post(
        self,
        path: str,
        body: Dict[str, Any],
        *,
        params: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
    ) -> APIResponse:
        """POST a JSON body; transport exceptions from requests propagate."""
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        resp = self.session.post(
            self._build_url(path),
            params=params,
            json=body,
            headers=headers,
            timeout=self.cfg.timeout,
        )

        try:
            data = resp.json()
        except ValueError:
            self.log.debug("Solarman API %s returned non-JSON payload (HTTP %s)", path, resp.status_code)
            data = None

        if not isinstance(data, dict):
            data = None
        return APIResponse(status_code=resp.status_code, payload=data)

    # ------------------------------------------------------------------
    def request_token(self, password_hash: str) -> APIResponse:
        return self._post(
            TOKEN_PATH,
            {
                "appSecret": self.cfg.app_secret,
                "email": self.cfg.email,
                "password": password_hash,
            },
            params={"appId": self.cfg.app_id, "language": "en"},
        )

    def request_history(self, token: str, start: date, end: date, time_type: int) -> APIResponse:
        return self._post(
            HISTORY_PATH,
            {
                "deviceId": self.cfg.device_id,
                "deviceSn": self.cfg.device_sn,
                "startTime": start.isoformat(),
                "endTime": end.isoformat(),
                "timeType": time_type,
            },
            token=token,
        )

    # ------------------------------------------------------------------
    @staticmethod
    def parse_records(payload: Optional[Dict[str, Any]]) -> List[DayRecord]:
        """Flatten ``paramDataList`` into records keyed by metric key (or name)."""
        if not payload:
            return []
        param_list = payload.get("paramDataList") or []

        records: List[DayRecord] = []
        for item in param_list:
            if not isinstance(item, dict):
                continue
            values: Dict[str, str] = {}
            for entry in item.get("dataList") or []:
                if not isinstance(entry, dict):
                    continue
                key = entry.get("key") or entry.get("name") or ""
                value = entry.get("value")
                if not key:
                    continue
                values[str(key)] = "" if value is None else str(value)
            collect_time = item.get("collectTime")
            records.append(
                DayRecord(
                    collect_time="" if collect_time is None else str(collect_time),
                    values=values,
                )
            )
        return records
