import threading
import time

import pytest

from motorsim.controllers.periodic import PeriodicTask


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_runs_repeatedly():
    calls = []
    task = PeriodicTask("TEST", 0.01, lambda: calls.append(1))
    task.start()
    try:
        assert wait_for(lambda: len(calls) >= 3)
    finally:
        task.stop()
    assert not task.running


def test_exception_does_not_stop_the_timer(capsys):
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    task = PeriodicTask("FLAKY", 0.01, flaky)
    task.start()
    try:
        assert wait_for(lambda: len(calls) >= 3)
    finally:
        task.stop()
    assert "[FLAKY] Unexpected error" in capsys.readouterr().out


def test_slow_duty_does_not_delay_another():
    release = threading.Event()
    fast_calls = []
    slow = PeriodicTask("SLOW", 0.01, lambda: release.wait(2.0))
    fast = PeriodicTask("FAST", 0.01, lambda: fast_calls.append(1))
    slow.start()
    fast.start()
    try:
        assert wait_for(lambda: len(fast_calls) >= 5)
    finally:
        release.set()
        fast.stop()
        slow.stop()


def test_stop_halts_runs():
    task = PeriodicTask("TEST", 0.01, lambda: None)
    task.start()
    assert wait_for(lambda: task.runs >= 2)
    task.stop()
    runs = task.runs
    time.sleep(0.05)
    assert task.runs == runs


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicTask("TEST", 0, lambda: None)
