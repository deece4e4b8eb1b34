#!/usr/bin/env python3
import matplotlib

matplotlib.use("Agg")

from spigot.config import Configuration  # noqa: E402
from spigot.routing.sinks import FrameUpdate  # noqa: E402
from spigot.visual.frames import FrameBuffer  # noqa: E402
from spigot.visual.ribbon import RibbonState, Snippet, SnippetTray, digit_color  # noqa: E402
from spigot.visual.window import Visualizer  # noqa: E402


def test_digit_colors_are_distinct_per_base():
    for base in (2, 10, 16, 36):
        colors = {digit_color(d, base) for d in range(base)}
        assert len(colors) == base
        assert all(0.0 <= c <= 1.0 for rgb in colors for c in rgb)


def test_ribbon_keeps_latest_digits():
    r = RibbonState(base=10, capacity=4)
    assert r.head is None
    for i, d in enumerate([3, 1, 4, 1, 5, 9]):
        r.push(d, i)
    assert len(r) == 4
    assert [p.digit for p in r.patches] == [4, 1, 5, 9]
    assert r.head == 5
    assert r.index_of(3) == 1
    assert r.index_of(0) is None
    colors = r.colors(highlight=5)
    assert colors[2] == r.patches[2].color
    assert colors[3] != r.patches[3].color


def test_frame_buffer_keeps_only_latest():
    fb = FrameBuffer()
    assert fb.latest() is None
    fb.send(FrameUpdate(current_beat=0.5, elapsed=0.25))
    fb.send(FrameUpdate(current_beat=1.0, elapsed=0.5))
    assert fb.latest().current_beat == 1.0
    assert fb.received == 2


def test_visualizer_ingests_each_event_once():
    cfg = Configuration.quick()
    mapper = cfg.event_mapper()
    events = mapper.take(3)
    vis = Visualizer(cfg, FrameBuffer(), history=8)
    assert vis.ingest(FrameUpdate(0.0, 0.0, events[0], 0.0))
    assert not vis.ingest(FrameUpdate(0.1, 0.05, events[0], 0.0))
    assert not vis.ingest(FrameUpdate(0.2, 0.1))
    assert vis.ingest(FrameUpdate(1.0, 0.5, events[2], 1.0))
    assert [p.digit for p in vis.durations.patches] == [events[0].digit, events[2].digit]
    assert [p.digit for p in vis.pitches.patches] == [events[0].pitch_digit, events[2].pitch_digit]
    assert "π" in vis.durations.label and "e" in vis.pitches.label


def test_visualizer_swaps_titles_after_a_twist():
    vis = Visualizer(Configuration.quick(), FrameBuffer(), history=8)
    vis.swap_labels()
    assert vis.durations.label.startswith("e ")
    assert vis.pitches.label.startswith("π ")
    vis.swap_labels()
    assert vis.durations.label == "π → duration"


def test_snippet_text_shows_both_streams():
    s = Snippet("snip-1", 4, ((5, 8), (9, 2), (2, 8)))
    assert s.stop == 7
    assert s.text() == "snip-1 [4, 7)  592 / 828"
    assert s.text(width=2) == "snip-1 [4, 7)  59… / 82…"


def test_snippet_tray_keeps_the_latest():
    tray = SnippetTray(size=3)
    for k in range(5):
        tray.deposit(f"snip-{k}", k, [(k, k)])
    assert len(tray) == 3
    assert [s.name for s in tray.entries] == ["snip-2", "snip-3", "snip-4"]
    assert tray.entries[0].pairs == ((2, 2),)
