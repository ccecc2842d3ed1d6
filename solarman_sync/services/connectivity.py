from __future__ import annotations

import socket
import threading
import time
from typing import Callable, Optional
from urllib.parse import urlparse

from solarman_sync.config import ConnectivityConfig
from solarman_sync.errors import ConnectivityLost, SyncCancelled


def tcp_probe(host: str, port: int = 443, timeout: float = 3.0) -> Callable[[], bool]:
    """Build a probe that reports connectivity when a TCP connect succeeds."""

    def _probe() -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    return _probe


def default_probe_for(cfg: ConnectivityConfig, base_url: str) -> Callable[[], bool]:
    host = cfg.probe_host or urlparse(base_url).hostname or "globalapi.solarmanpv.com"
    return tcp_probe(host, cfg.probe_port, cfg.probe_timeout)


class ConnectivityWaiter:
    """Blocks until the probe reports the network is back, or gives up."""

    def __init__(
        self,
        probe: Callable[[], bool],
        log,
        *,
        max_wait: float = 300.0,
        poll_interval: float = 2.0,
        cancel_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.probe = probe
        self.log = log
        self.max_wait = max_wait
        self.poll_interval = poll_interval
        self.cancel_event = cancel_event
        self._sleep = sleep or time.sleep

    def _pause(self, seconds: float) -> None:
        if self.cancel_event is not None:
            if self.cancel_event.wait(seconds):
                raise SyncCancelled("Sync cancelled while waiting for network")
            return
        self._sleep(seconds)

    def wait_for_connectivity(
        self,
        max_wait: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> float:
        """Return the seconds spent waiting; 0.0 means the probe passed at once."""
        limit = self.max_wait if max_wait is None else max_wait
        interval = self.poll_interval if poll_interval is None else poll_interval
        waited = 0.0

        while waited < limit:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise SyncCancelled("Sync cancelled while waiting for network")
            if self.probe():
                if waited:
                    self.log.info("Network connection restored after %.0fs", waited)
                return waited
            self._pause(interval)
            waited += interval

        raise ConnectivityLost(f"Network connection timeout after {int(limit)} seconds")
