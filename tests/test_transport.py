#!/usr/bin/env python3
import time

import pytest

from conftest import DeadSink, FlakySink
from spigot.config import Configuration
from spigot.digits.spigots import Constant
from spigot.errors import TransportError, TransportStateError
from spigot.routing.modulation import GesturePose, ModulationBus
from spigot.routing.sinks import FrameUpdate, PlaybackCommand, RecordingSink
from spigot.sequencing.durations import DurationTable
from spigot.sequencing.scales import Scale
from spigot.sequencing.transport import Transport, TransportState


def scenario_config(**kw) -> Configuration:
    values = dict(constant=Constant.PI, base=10, scale=Scale.major(), instrument="piano",
                  tempo=120, quick_mode=True, pitch_constant=None,
                  durations=DurationTable.custom([0.25, 0.5, 1, 2]))
    values.update(kw)
    return Configuration(**values)


def make_transport(clock, audio=None, visual=None, bus=None, **kw):
    # an empty RecordingSink is falsy, so test against None
    if audio is None:
        audio = RecordingSink()
    if visual is None:
        visual = RecordingSink()
    cfg = scenario_config()
    return Transport(cfg.event_mapper(), cfg.tempo, bus, audio=audio, visual=visual,
                     velocity=cfg.velocity, clock=clock, **kw)


def test_pi_scenario_timing(clock):
    audio = RecordingSink()
    tr = make_transport(clock, audio=audio)
    tr.start(threaded=False)
    assert tr.state is TransportState.RUNNING
    tr.tick()
    clock.advance(1.0)
    tr.tick()
    first, second = audio.items
    assert first == PlaybackCommand(pitch=65, velocity=100, start_time=0.0, duration=1.0, source_index=0)
    assert second.start_time == pytest.approx(1.0)
    assert second.duration == pytest.approx(0.25)
    assert second.pitch == 62


def test_catch_up_delivers_every_due_event_in_order(clock):
    audio = RecordingSink()
    tr = make_transport(clock, audio=audio)
    tr.start(threaded=False)
    tr.tick()
    clock.advance(2.0)      # beat 4.0
    assert tr.tick() == 5
    cmds = audio.items
    assert [c.source_index for c in cmds] == [0, 1, 2, 3, 4, 5]
    assert [c.start_time for c in cmds] == pytest.approx([0.0, 1.0, 1.25, 1.375, 1.625, 1.875])


def test_clock_correctness_at_120_bpm(clock):
    tr = make_transport(clock)
    tr.start(threaded=False)
    for _ in range(300):
        clock.advance(0.01)
        tr.tick()
    assert tr.elapsed == pytest.approx(3.0)
    assert tr.beat == pytest.approx(6.0)


def test_tempo_change_is_integrated_smoothly(clock):
    bus = ModulationBus()
    tr = make_transport(clock, bus=bus)
    tr.start(threaded=False)
    bus.publish(GesturePose(speed=1.0))       # x2
    clock.advance(1.0)
    tr.tick()
    assert tr.beat == pytest.approx(3.0)      # mean of x1 and x2
    clock.advance(1.0)
    tr.tick()
    assert tr.beat == pytest.approx(7.0)


def test_modulation_applied_to_commands(clock):
    bus = ModulationBus()
    bus.publish(GesturePose(height=0.5, lateral=1.0))
    audio = RecordingSink()
    tr = make_transport(clock, audio=audio, bus=bus)
    tr.start(threaded=False)
    tr.tick()
    cmd = audio.items[0]
    assert cmd.pitch == 65 + 12
    assert cmd.velocity == 50


def test_pitch_offset_clamped_to_midi_range(clock):
    bus = ModulationBus()
    bus.publish(GesturePose(lateral=1.0))
    cfg = scenario_config(root=127)
    audio = RecordingSink()
    tr = Transport(cfg.event_mapper(), cfg.tempo, bus, audio=audio, clock=clock)
    tr.start(threaded=False)
    tr.tick()
    assert audio.items[0].pitch == 127


def test_frames_strictly_increasing(clock):
    visual = RecordingSink()
    tr = make_transport(clock, visual=visual)
    tr.start(threaded=False)
    tr.tick()
    tr.tick()                   # same instant: no new frame
    clock.advance(0.1)
    tr.tick()
    clock.advance(-0.05)        # clock jumps back: beat holds, no frame
    tr.tick()
    clock.advance(0.2)
    tr.tick()
    frames = visual.items
    assert all(isinstance(f, FrameUpdate) for f in frames)
    beats = [f.current_beat for f in frames]
    assert len(beats) == 3
    assert beats == sorted(set(beats))
    assert frames[-1].active_event.source_index == 0


def test_transient_busy_retries_without_dropping(clock):
    audio = FlakySink(busy=2)
    tr = make_transport(clock, audio=audio)
    tr.start(threaded=False)
    assert tr.tick() == 0
    clock.advance(0.01)
    assert tr.tick() == 0
    clock.advance(0.01)
    assert tr.tick() == 1
    assert audio.items[0].source_index == 0
    assert audio.items[0].start_time == pytest.approx(0.0)


def test_busy_beyond_budget_escalates(clock):
    audio = FlakySink(busy=10 ** 6)
    tr = make_transport(clock, audio=audio, retry_budget=3)
    tr.start(threaded=False)
    for _ in range(3):
        tr.tick()
        clock.advance(0.01)
    with pytest.raises(TransportError):
        tr.tick()
    assert tr.state is TransportState.STOPPED


def test_disconnect_is_fatal(clock):
    tr = make_transport(clock, audio=DeadSink())
    tr.start(threaded=False)
    with pytest.raises(TransportError):
        tr.tick()
    assert tr.state is TransportState.STOPPED
    assert tr.tick() == 0


def test_illegal_transitions(clock):
    tr = make_transport(clock)
    with pytest.raises(TransportStateError):
        tr.tick()
    tr.start(threaded=False)
    with pytest.raises(TransportStateError):
        tr.start(threaded=False)
    tr.stop()
    tr.stop()
    with pytest.raises(TransportStateError):
        tr.start(threaded=False)


def test_nothing_sent_after_stop(clock):
    audio, visual = RecordingSink(), RecordingSink()
    tr = make_transport(clock, audio=audio, visual=visual)
    tr.start(threaded=False)
    tr.tick()
    tr.stop()
    n_audio, n_visual = len(audio), len(visual)
    clock.advance(10.0)
    assert tr.tick() == 0
    assert (len(audio), len(visual)) == (n_audio, n_visual)


def test_stop_from_inside_a_sink(clock):
    visual = RecordingSink()

    class StoppingSink:
        def __init__(self):
            self.items = []

        def send(self, cmd):
            self.items.append(cmd)
            tr.stop()

    audio = StoppingSink()
    tr = make_transport(clock, audio=audio, visual=visual)
    tr.start(threaded=False)
    clock.advance(5.0)
    tr.tick()
    assert len(audio.items) == 1
    assert len(visual) == 0
    assert tr.state is TransportState.STOPPED


def test_threaded_run_and_stop():
    cfg = scenario_config(tempo=300, durations=DurationTable.custom([0.25]))
    audio, visual = RecordingSink(), RecordingSink()
    tr = Transport(cfg.event_mapper(), cfg.tempo, audio=audio, visual=visual)
    tr.start(threaded=True)
    time.sleep(0.3)
    tr.stop()
    n_audio, n_visual = len(audio), len(visual)
    time.sleep(0.05)
    assert (len(audio), len(visual)) == (n_audio, n_visual)
    tr.join(timeout=1.0)
    indices = [c.source_index for c in audio.items]
    assert indices == list(range(len(indices)))
    assert len(indices) >= 2
    beats = [f.current_beat for f in visual.items]
    assert all(a < b for a, b in zip(beats, beats[1:]))


def test_threaded_error_reraised_on_join():
    cfg = scenario_config()
    errors = []
    tr = Transport(cfg.event_mapper(), cfg.tempo, audio=DeadSink(), on_error=errors.append)
    tr.start(threaded=True)
    with pytest.raises(TransportError):
        tr.join(timeout=1.0)
    assert len(errors) == 1
    assert tr.state is TransportState.STOPPED


class ExplodingSink:
    def __init__(self):
        self.calls = 0

    def send(self, item) -> None:
        self.calls += 1
        raise RuntimeError("driver exploded")


def test_unexpected_sink_error_stops_the_transport(clock):
    sink = ExplodingSink()
    tr = make_transport(clock, audio=sink)
    tr.start(threaded=False)
    with pytest.raises(TransportError) as info:
        tr.tick()
    assert isinstance(info.value.__cause__, RuntimeError)
    assert tr.state is TransportState.STOPPED
    clock.advance(5.0)
    assert tr.tick() == 0
    assert sink.calls == 1


def test_threaded_unexpected_error_reraised_on_join():
    cfg = scenario_config()
    errors = []
    tr = Transport(cfg.event_mapper(), cfg.tempo, audio=ExplodingSink(), on_error=errors.append)
    tr.start(threaded=True)
    with pytest.raises(TransportError) as info:
        tr.join(timeout=1.0)
    assert str(info.value.__cause__) == "driver exploded"
    assert errors == [info.value]
    assert tr.state is TransportState.STOPPED


class RunsDry:
    """Digit source that fails after its first digit."""

    def next(self) -> int:
        if getattr(self, "used", False):
            raise RuntimeError("digit generator failed")
        self.used = True
        return 3

    def reset(self) -> None:
        self.used = False


def test_threaded_mapper_error_reraised_on_join():
    cfg = scenario_config()
    mapper = cfg.event_mapper()
    mapper.source = RunsDry()
    audio = RecordingSink()
    tr = Transport(mapper, cfg.tempo, audio=audio)
    tr.start(threaded=True)
    with pytest.raises(TransportError) as info:
        tr.join(timeout=1.0)
    assert isinstance(info.value.__cause__, RuntimeError)
    assert tr.state is TransportState.STOPPED
    assert len(audio) == 1


def test_digit_edits_land_between_ticks(clock):
    cfg = scenario_config(pitch_constant=Constant.E)
    visual = RecordingSink()
    tr = Transport(cfg.event_mapper(), cfg.tempo, None, audio=RecordingSink(), visual=visual,
                   clock=clock)
    assert tr.dual
    tr.start(threaded=False)
    tr.edit_digits(lambda source: source.twist())
    tr.tick()
    first = visual.items[-1].active_event
    assert (first.digit, first.pitch_digit) == (3, 2)
    clock.advance(1.0)      # beat 2.0
    tr.tick()
    second = visual.items[-1].active_event
    assert second.source_index == 1
    assert (second.digit, second.pitch_digit) == (7, 1)
    assert tr.edit_digits(lambda source: source.left.constant) is Constant.E


def test_digit_edits_need_two_streams(clock):
    tr = make_transport(clock)
    assert not tr.dual
    with pytest.raises(TransportStateError):
        tr.edit_digits(lambda source: source.twist())
