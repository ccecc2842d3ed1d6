from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Callable, Optional

from solarman_sync.errors import SyncError
from solarman_sync.models.sync import SyncResult
from solarman_sync.services.progress import ProgressChannel, ProgressRelay

if TYPE_CHECKING:
    from solarman_sync.services.sync_orchestrator import SyncOrchestrator

SuccessCallback = Callable[[str, int, Optional[str], Optional[str]], None]
ErrorCallback = Callable[[str], None]


class SyncWorker:
    """
    Runs one orchestrator on a dedicated background thread.

    Progress is relayed from the channel on a separate thread so a slow
    subscriber never stalls the day loop. Exactly one of ``on_success`` or
    ``on_error`` fires when the run ends.
    """

    def __init__(
        self,
        orchestrator_factory: Callable[[ProgressChannel, threading.Event], "SyncOrchestrator"],
        log,
        *,
        on_progress: Optional[Callable[[str], None]] = None,
        on_success: Optional[SuccessCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        channel: Optional[ProgressChannel] = None,
    ):
        self.log = log
        self.channel = channel or ProgressChannel(log=log)
        self.cancel_event = threading.Event()
        self.orchestrator = orchestrator_factory(self.channel, self.cancel_event)
        self.on_success = on_success
        self.on_error = on_error
        self._relay = ProgressRelay(self.channel, on_progress, log) if on_progress else None
        self._thread = threading.Thread(target=self._run, name="solarman-sync", daemon=True)
        self.result: Optional[SyncResult] = None
        self.error: Optional[BaseException] = None

    # ------------------------------------------------------------------
    def start(self) -> "SyncWorker":
        if self._relay is not None:
            self._relay.start()
        self._thread.start()
        return self

    def cancel(self) -> None:
        self.cancel_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    # ------------------------------------------------------------------
    def _run(self) -> None:
        try:
            self.result = self.orchestrator.run()
        except SyncError as exc:
            self.error = exc
            self._finish_error(f"Error: {exc.message}")
        except Exception as exc:
            self.log.exception("Unexpected failure during station data sync")
            self.error = exc
            self._finish_error(f"Error: {exc}")
        else:
            self._stop_relay()
            if self.on_success is not None:
                result = self.result
                self.on_success(result.file_path, result.row_count, result.first_timestamp, result.last_timestamp)

    def _finish_error(self, message: str) -> None:
        self._stop_relay()
        if self.on_error is not None:
            self.on_error(message)

    def _stop_relay(self) -> None:
        if self._relay is not None:
            self._relay.stop()
