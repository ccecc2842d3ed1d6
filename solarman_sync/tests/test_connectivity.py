# solarman_sync/tests/test_connectivity.py

import threading

import pytest

from solarman_sync.config import ConnectivityConfig
from solarman_sync.errors import ConnectivityLost, SyncCancelled
from solarman_sync.logging import ConsoleLog, get_logger
from solarman_sync.services import connectivity
from solarman_sync.services.connectivity import ConnectivityWaiter, default_probe_for


ConsoleLog(level="INFO", quiet=True).setup()
LOG = get_logger("connectivity-test")


def test_returns_immediately_when_online():
    sleeps = []
    waiter = ConnectivityWaiter(lambda: True, LOG, sleep=sleeps.append)

    assert waiter.wait_for_connectivity() == 0.0

    assert sleeps == []


def test_polls_until_restored():
    sleeps = []
    probes = iter([False, False, False, True])
    waiter = ConnectivityWaiter(lambda: next(probes), LOG, poll_interval=2.0, sleep=sleeps.append)

    assert waiter.wait_for_connectivity() == 6.0

    assert sleeps == [2.0, 2.0, 2.0]


def test_times_out_after_max_wait():
    sleeps = []
    waiter = ConnectivityWaiter(lambda: False, LOG, max_wait=300.0, poll_interval=2.0, sleep=sleeps.append)

    with pytest.raises(ConnectivityLost) as excinfo:
        waiter.wait_for_connectivity()

    assert excinfo.value.message == "Network connection timeout after 300 seconds"
    assert len(sleeps) == 150


def test_per_call_overrides():
    sleeps = []
    waiter = ConnectivityWaiter(lambda: False, LOG, sleep=sleeps.append)

    with pytest.raises(ConnectivityLost):
        waiter.wait_for_connectivity(max_wait=5.0, poll_interval=1.0)

    assert sleeps == [1.0] * 5


def test_cancellation_interrupts_wait():
    cancel = threading.Event()
    calls = []

    def probe():
        calls.append(1)
        if len(calls) == 2:
            cancel.set()
        return False

    waiter = ConnectivityWaiter(probe, LOG, poll_interval=0.01, cancel_event=cancel)

    with pytest.raises(SyncCancelled):
        waiter.wait_for_connectivity()


def test_default_probe_targets_api_host(monkeypatch):
    seen = {}

    def fake_tcp_probe(host, port, timeout):
        seen.update(host=host, port=port, timeout=timeout)
        return lambda: True

    monkeypatch.setattr(connectivity, "tcp_probe", fake_tcp_probe)

    default_probe_for(ConnectivityConfig(), "https://globalapi.solarmanpv.com")
    assert seen == {"host": "globalapi.solarmanpv.com", "port": 443, "timeout": 3.0}

    default_probe_for(ConnectivityConfig(probe_host="1.1.1.1", probe_port=53), "https://api.test")
    assert seen["host"] == "1.1.1.1"
    assert seen["port"] == 53
