# solarman_sync/tests/test_sync_worker.py

import threading

from solarman_sync.errors import ConsecutiveFailureLimit, SyncCancelled
from solarman_sync.logging import ConsoleLog, get_logger
from solarman_sync.models.sync import SyncResult
from solarman_sync.services.sync_worker import SyncWorker


ConsoleLog(level="INFO", quiet=True).setup()
LOG = get_logger("sync-worker-test")


class ScriptedOrchestrator:
    def __init__(self, channel, cancel_event, outcome=None, messages=(), block=False):
        self.channel = channel
        self.cancel_event = cancel_event
        self.outcome = outcome
        self.messages = messages
        self.block = block
        self.thread_name = None

    def run(self):
        self.thread_name = threading.current_thread().name
        for message in self.messages:
            self.channel.publish(message)
        if self.block:
            self.cancel_event.wait(2.0)
            raise SyncCancelled("Sync cancelled")
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def _result():
    return SyncResult(
        file_path="/data/station_data.csv",
        row_count=2,
        first_timestamp="2024-01-04 10:00:00",
        last_timestamp="2024-01-05 10:00:00",
        rows_fetched=4,
    )


def test_success_callback_and_progress_order():
    progress = []
    successes = []
    errors = []

    worker = SyncWorker(
        lambda channel, cancel: ScriptedOrchestrator(channel, cancel, _result(), messages=["a", "b", "c"]),
        LOG,
        on_progress=progress.append,
        on_success=lambda *args: successes.append(args),
        on_error=errors.append,
    ).start()

    assert worker.join(timeout=5.0)
    assert successes == [("/data/station_data.csv", 2, "2024-01-04 10:00:00", "2024-01-05 10:00:00")]
    assert errors == []
    assert progress == ["a", "b", "c"]
    assert worker.result.row_count == 2
    assert worker.orchestrator.thread_name == "solarman-sync"
    assert not worker.running


def test_sync_error_reaches_error_callback():
    successes = []
    errors = []
    failure = ConsecutiveFailureLimit("Stopping: 3 consecutive failed days (last = 2024-01-05)")

    worker = SyncWorker(
        lambda channel, cancel: ScriptedOrchestrator(channel, cancel, failure),
        LOG,
        on_success=lambda *args: successes.append(args),
        on_error=errors.append,
    ).start()

    assert worker.join(timeout=5.0)
    assert successes == []
    assert errors == ["Error: Stopping: 3 consecutive failed days (last = 2024-01-05)"]
    assert worker.error is failure


def test_unexpected_exception_is_reported():
    errors = []

    worker = SyncWorker(
        lambda channel, cancel: ScriptedOrchestrator(channel, cancel, OSError("disk full")),
        LOG,
        on_error=errors.append,
    ).start()

    assert worker.join(timeout=5.0)
    assert errors == ["Error: disk full"]
    assert isinstance(worker.error, OSError)


def test_cancel_stops_a_running_sync():
    errors = []

    worker = SyncWorker(
        lambda channel, cancel: ScriptedOrchestrator(channel, cancel, block=True),
        LOG,
        on_error=errors.append,
    ).start()
    worker.cancel()

    assert worker.join(timeout=5.0)
    assert errors == ["Error: Sync cancelled"]
    assert worker.cancel_event.is_set()
