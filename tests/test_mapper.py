#!/usr/bin/env python3
import pytest

from spigot.digits.source import DigitSource, DualDigitSource
from spigot.digits.spigots import Constant
from spigot.errors import ConfigurationError
from spigot.sequencing.durations import DurationTable, beats_to_ticks
from spigot.sequencing.mapper import EventMapper
from spigot.sequencing.scales import SCALES, PitchMap, Scale, note_name

TABLE = DurationTable.custom([0.25, 0.5, 1, 2])


def test_pi_scenario_indices():
    mapper = EventMapper(PitchMap(60, Scale.major()), TABLE, DigitSource(Constant.PI, 10))
    events = mapper.take(5)
    assert [e.degree for e in events] == [3, 1, 4, 1, 5]
    assert [e.duration_index for e in events] == [3, 1, 0, 1, 1]
    assert [e.beats for e in events] == [2, 0.5, 0.25, 0.5, 0.5]
    assert [e.source_index for e in events] == [0, 1, 2, 3, 4]
    assert [e.note for e in events] == [65, 62, 67, 62, 69]


@pytest.mark.parametrize("base", [2, 3, 5, 10, 16, 36])
@pytest.mark.parametrize("scale", list(SCALES))
def test_mapping_is_total(base, scale):
    pm = PitchMap(60, Scale.named(scale))
    table = DurationTable.musical()
    mapper = EventMapper(pm, table)
    for d in range(base):
        ev = mapper.map(d, d)
        assert 0 <= ev.degree < len(pm.scale)
        assert 0 <= ev.duration_index < len(table)
        assert ev.beats in table.beats
        assert 0 <= ev.note <= 127


def test_map_is_pure():
    mapper = EventMapper(PitchMap(), TABLE)
    assert mapper.map(7, 3) == mapper.map(7, 3)
    assert mapper.position == 0


def test_octave_wrap_and_clamp():
    pm = PitchMap(60, Scale.major())
    assert pm.note_for(7) == 72
    assert pm.note_for(9) == 76
    high = PitchMap(120, Scale.named("chromatic"))
    assert high.note_for(20) == 127


def test_dual_stream_splits_duration_and_pitch():
    dual = DualDigitSource.of(Constant.PI, Constant.E, 10)
    mapper = EventMapper(PitchMap(60, Scale.major()), TABLE, dual)
    ev = mapper.next()
    assert (ev.digit, ev.pitch_digit) == (3, 2)
    assert ev.beats == 2
    assert ev.note == 64


def test_reset_rewinds_source_and_index():
    mapper = EventMapper(PitchMap(), TABLE, DigitSource(Constant.E, 10))
    first = mapper.take(6)
    mapper.reset()
    assert mapper.position == 0
    assert mapper.take(6) == first


def test_unbound_mapper():
    with pytest.raises(RuntimeError):
        EventMapper(PitchMap(), TABLE).next()


def test_scale_validation():
    with pytest.raises(ConfigurationError):
        Scale(())
    with pytest.raises(ConfigurationError):
        Scale((0, 12))
    with pytest.raises(ConfigurationError):
        Scale.named("klingon")
    assert Scale.named("Pentatonic Major").intervals == (0, 2, 4, 7, 9)
    assert Scale.named("2").name == "major"


def test_root_validation():
    with pytest.raises(ConfigurationError):
        PitchMap(root=128)


def test_note_names():
    assert note_name(60) == "C4"
    assert note_name(69) == "A4"


def test_duration_presets():
    musical = DurationTable.musical()
    assert len(musical) == 10
    assert musical.beats_for(5) == 1.0
    assert musical.beats_for(15) == 1.0
    assert DurationTable.linear(base=4).beats == (0.25, 0.5, 0.75, 1.0)
    exp = DurationTable.exponential(base=20)
    assert exp.beats[16] == exp.beats[19] == 0.125 * 2 ** 16
    assert DurationTable.fixed(0.5, base=3).beats == (0.5, 0.5, 0.5)
    assert DurationTable.named("linear", base=2).beats == (0.25, 0.5)
    with pytest.raises(ConfigurationError):
        DurationTable.named("random")


def test_duration_validation():
    with pytest.raises(ConfigurationError):
        DurationTable.custom([])
    with pytest.raises(ConfigurationError):
        DurationTable.custom([1.0, 0.0])


def test_beats_to_ticks():
    assert beats_to_ticks(1.0, 480) == 480
    assert beats_to_ticks(0.75, 480) == 360
    assert beats_to_ticks(0.0001, 480) == 1
