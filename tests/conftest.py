#!/usr/bin/env python3
import sys
from pathlib import Path

import pytest

# Ensure repository root on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from spigot.errors import SinkBusy, SinkDisconnected  # noqa: E402


class FakeClock:
    """Manually advanced stand-in for time.perf_counter."""

    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> float:
        self.t += dt
        return self.t


class FlakySink:
    """Raises SinkBusy for the first `busy` sends, then records."""

    def __init__(self, busy: int):
        self.busy = busy
        self.attempts = 0
        self.items = []

    def send(self, item) -> None:
        self.attempts += 1
        if self.attempts <= self.busy:
            raise SinkBusy("buffer full")
        self.items.append(item)


class DeadSink:
    def send(self, item) -> None:
        raise SinkDisconnected("device unplugged")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
