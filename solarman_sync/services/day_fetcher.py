# solarman_sync/services/day_fetcher.py

from __future__ import annotations

import time
from datetime import date
from typing import Callable, Optional

import requests

from solarman_sync.errors import ApplicationError
from solarman_sync.models.telemetry import DayData, DayFailed, DayOutcome, GapDay, Unauthorized
from solarman_sync.services.connectivity import ConnectivityWaiter
from solarman_sync.services.solarman_client import SolarmanAPIClient, is_connectivity_error


class DayFetcher:
    """
    Fetches one calendar day of history with bounded retries.

    Application failures (HTTP errors, ``success: false``, unreadable bodies)
    and transport errors that are not outages (TLS failures, redirect loops)
    consume attempts. Outages (timeouts, DNS failures, refused connections)
    never do: the fetcher waits for the network and tries again, and a waiter
    timeout raises ``ConnectivityLost`` to the caller. Outages while the probe
    already reports the host reachable draw on a separate budget of
    ``max_retries``; spending it yields a ``DayFailed`` marked as a
    connectivity failure.
    """

    def __init__(
        self,
        client: SolarmanAPIClient,
        waiter: ConnectivityWaiter,
        log,
        *,
        max_retries: int = 3,
        retry_delay: float = 3.0,
        progress=None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.client = client
        self.waiter = waiter
        self.log = log
        self.max_retries = max(1, int(max_retries))
        self.retry_delay = retry_delay
        self.progress = progress
        self._sleep = sleep or time.sleep

    def _notify(self, message: str, kind: str = "retry") -> None:
        if self.progress is not None:
            self.progress.publish(message, kind=kind)
        else:
            self.log.debug(message)

    # ------------------------------------------------------------------
    def fetch_day(self, token: str, day: date, time_type: int = 1) -> DayOutcome:
        attempt = 1
        stalls = 0
        last_error: Optional[ApplicationError] = None

        while attempt <= self.max_retries:
            self._notify(
                f"Requesting device history (timeType={time_type}) for {day.isoformat()}... "
                f"[try {attempt}/{self.max_retries}]",
                kind="day",
            )
            try:
                resp = self.client.request_history(token, day, day, time_type)
            except requests.RequestException as exc:
                if not is_connectivity_error(exc):
                    last_error = ApplicationError(f"Request error: {exc}", last_date=day)
                    self.log.warning("History request for %s failed: %s", day, exc)
                else:
                    self.log.warning("History request for %s lost the network: %s", day, exc)
                    self._notify("Waiting for network connection...", kind="network")
                    if self.waiter.wait_for_connectivity():
                        self._notify("Network connection restored, retrying...", kind="network")
                        continue
                    # Host answers the probe, yet the request timed out or was refused.
                    stalls += 1
                    if stalls >= self.max_retries:
                        return DayFailed(
                            message=f"Network stalled {stalls}x for {day.isoformat()}: {exc}",
                            error=ApplicationError(f"Request error: {exc}", last_date=day),
                            connectivity=True,
                        )
                    self._sleep(self.retry_delay)
                    continue
            else:
                if resp.status_code == 401:
                    return Unauthorized(message=resp.message)
                if resp.success:
                    records = self.client.parse_records(resp.payload)
                    return DayData(records) if records else GapDay()
                last_error = ApplicationError(resp.message, last_date=day)
                self.log.warning("History request for %s failed: %s", day, resp.message)

            if attempt < self.max_retries:
                self._sleep(self.retry_delay)
            attempt += 1

        message = (
            f"API failed {self.max_retries}x for {day.isoformat()}: "
            f"{last_error.message if last_error else 'unknown error'}"
        )
        return DayFailed(message=message, error=last_error)
