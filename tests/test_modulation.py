#!/usr/bin/env python3
import math
import threading

import pytest

from spigot.routing.modulation import NEUTRAL, GesturePose, ModulationBus, ModulationState, normalize


def test_neutral_defaults():
    assert NEUTRAL == ModulationState(1.0, 0, 1.0)
    assert ModulationBus().read() == NEUTRAL


def test_publish_then_read_reflects_pose():
    bus = ModulationBus()
    state = bus.publish(GesturePose(height=0.5, lateral=0.25, speed=1.0))
    assert bus.read() == state
    assert state.amplitude_scale == 0.5
    assert state.pitch_offset == 3
    assert state.tempo_scale == 2.0
    assert bus.published == 1


def test_out_of_range_is_clamped():
    s = normalize(GesturePose(height=4.0, lateral=-9.0, speed=7.0))
    assert s == ModulationState(tempo_scale=2.0, pitch_offset=-12, amplitude_scale=1.0)
    s = normalize(GesturePose(height=-1.0, lateral=0.0, speed=-7.0))
    assert s.amplitude_scale == 0.0
    assert s.tempo_scale == 0.5


@pytest.mark.parametrize("bad", [math.nan, math.inf, None, "loud"])
def test_malformed_fields_fall_back_to_neutral(bad):
    s = normalize(GesturePose(height=bad, lateral=bad, speed=bad))
    assert s == NEUTRAL


def test_absent_hand_is_neutral():
    bus = ModulationBus()
    bus.publish(GesturePose(height=0.1, speed=1.0))
    assert bus.publish(GesturePose(height=0.1, speed=1.0, present=False)) == NEUTRAL
    assert bus.read() == NEUTRAL


def test_disabled_bus_ignores_publish():
    bus = ModulationBus(enabled=False)
    assert bus.publish(GesturePose(height=0.0, lateral=1.0)) == NEUTRAL
    assert bus.read() == NEUTRAL
    assert not bus.enabled


def test_reset():
    bus = ModulationBus()
    bus.publish(GesturePose(lateral=1.0))
    bus.reset()
    assert bus.read() == NEUTRAL


def test_concurrent_readers_see_whole_snapshots():
    bus = ModulationBus()
    poses = [GesturePose(height=h / 10, lateral=h / 10, speed=0.0) for h in range(11)]
    valid = {normalize(p) for p in poses} | {NEUTRAL}
    seen = []
    done = threading.Event()

    def writer():
        for _ in range(200):
            for p in poses:
                bus.publish(p)
        done.set()

    th = threading.Thread(target=writer)
    th.start()
    while not done.is_set():
        seen.append(bus.read())
    th.join()
    assert all(s in valid for s in seen)
