# solarman_sync/services/progress.py

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

MAX_RECENT_MESSAGES = 10


@dataclass
class ProgressEvent:
    message: str
    kind: str = "info"  # info, auth, day, gap, retry, network, trim, done
    timestamp: datetime = field(default_factory=datetime.now)


class ProgressChannel:
    """
    Bounded event stream between the sync worker and whoever displays progress.

    ``publish`` never blocks: when the queue is full the oldest event is
    dropped. The last few messages are also kept for late subscribers.
    """

    def __init__(self, maxsize: int = 256, log=None):
        self._queue: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)
        self._recent: deque[str] = deque(maxlen=MAX_RECENT_MESSAGES)
        self._lock = threading.Lock()
        self.log = log or logging.getLogger("solarman.progress")
        self.dropped = 0

    # ------------------------------------------------------------------
    def publish(self, message: str, kind: str = "info") -> None:
        event = ProgressEvent(message=message, kind=kind)
        with self._lock:
            self._recent.append(message)
            while True:
                try:
                    self._queue.put_nowait(event)
                    break
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass
        self.log.info(message)

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[ProgressEvent]:
        events: List[ProgressEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def recent_messages(self) -> List[str]:
        with self._lock:
            return list(self._recent)


class ProgressRelay:
    """Delivers channel events to a callback on its own thread."""

    def __init__(self, channel: ProgressChannel, callback: Callable[[str], None], log=None):
        self.channel = channel
        self.callback = callback
        self.log = log or logging.getLogger("solarman.progress")
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="solarman-progress", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        self._thread.join(timeout)
        # Anything published after the last poll still gets delivered.
        for event in self.channel.drain():
            self._deliver(event)

    def _deliver(self, event: ProgressEvent) -> None:
        try:
            self.callback(event.message)
        except Exception as exc:  # callbacks must not kill the relay
            self.log.warning("Progress callback raised: %s", exc)

    def _run(self) -> None:
        while not self._stop.is_set():
            event = self.channel.get(timeout=0.1)
            if event is not None:
                self._deliver(event)
