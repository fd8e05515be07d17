import copy
import itertools
import random
from datetime import timedelta

import pytest

from motorsim.command_log import CommandRecord
from motorsim.errors import StoreUnavailable
from motorsim.settings import DEFAULT_SETTINGS
from motorsim.simulators import MotorSimulator
from motorsim.store import EPOCH


class FakeClock:
    """Store clock that only moves when a test says so."""

    def __init__(self, start=EPOCH + timedelta(days=20000)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeCommandLog:
    """In-memory command log with the same contract as SQLiteCommandLog."""

    def __init__(self, clock):
        self.clock = clock
        self.records = []
        self.fail = False
        self.latest_calls = 0
        self._ids = itertools.count(1)

    def _check(self):
        if self.fail:
            raise StoreUnavailable("store down")

    def ensure_schema(self):
        self._check()

    def append(self, issuer, percent_change, issued_via='cli'):
        self._check()
        ts = self.clock()
        if self.records and ts <= self.records[-1].timestamp:
            ts = self.records[-1].timestamp + timedelta(microseconds=1)
        record = CommandRecord(issuer, float(percent_change), ts, next(self._ids), issued_via)
        self.records.append(record)
        return record

    def latest(self):
        self.latest_calls += 1
        self._check()
        return self.records[-1] if self.records else None

    def recent(self, limit=10):
        self._check()
        return list(reversed(self.records))[:limit]

    def close(self):
        pass


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def command_log(clock):
    return FakeCommandLog(clock)


@pytest.fixture
def make_simulator():
    """Noise-free simulator factory; keyword arguments override defaults."""

    def _make(**overrides):
        params = dict(dt=0.2, random_error_max=0.0, rng=random.Random(7))
        params.update(overrides)
        return MotorSimulator(**params)

    return _make


@pytest.fixture
def settings(tmp_path):
    cfg = copy.deepcopy(DEFAULT_SETTINGS)
    cfg["store"]["path"] = str(tmp_path / "motor.db")
    cfg["store"]["timeout"] = 1.0
    cfg["motor"]["random_error_max"] = 0.0
    return cfg
