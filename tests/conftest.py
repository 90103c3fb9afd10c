"""Shared fixtures for history engine tests.

The clock is simulated: tests set clock.now (or advance it) before each
record to control coalescing without sleeping.
"""

import pytest

from palimpsest.history import History
from palimpsest.session import SimulatedClock


class Recorder:
    """Collects apply/release callbacks in call order."""

    def __init__(self):
        self.applied = []
        self.released = []

    def apply(self, owner, kind, payload, action):
        self.applied.append((payload, action))

    def release(self, payload):
        self.released.append(payload)


@pytest.fixture
def clock():
    return SimulatedClock()


@pytest.fixture
def refreshes():
    return []


@pytest.fixture
def history(clock, refreshes):
    h = History(clock=clock, on_refresh=lambda: refreshes.append(True))
    try:
        yield h
    finally:
        h.teardown()


@pytest.fixture
def recorder():
    return Recorder()
