import logging
from typing import Callable, Optional

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation
from matplotlib.patches import Rectangle

from spigot.config import Configuration
from spigot.routing.sinks import FrameUpdate
from spigot.sequencing.scales import note_name
from spigot.visual.frames import FrameBuffer
from spigot.visual.ribbon import RibbonState, SnippetTray

log = logging.getLogger(__name__)

FPS = 30
HISTORY = 48
TRAY_WIDTH = 22


class Visualizer:
    """
    Two digit ribbons (durations on top, pitches below), a playhead that
    sweeps across the sounding note and a modulation readout. Redraws from
    the FrameBuffer at FPS; runs on the main thread.

    `on_key(key)` gets matplotlib key names; `on_close()` runs when the
    window is closed. The window closes itself once `done()` is true.
With a SnippetTray, its entries are listed in a column on the right.
    """

    def __init__(self, config: Configuration, frames: FrameBuffer,
                 on_key: Optional[Callable[[str], None]] = None,
                 on_close: Optional[Callable[[], None]] = None,
                 done: Callable[[], bool] = lambda: False,
                 history: int = HISTORY,
                 tray: Optional[SnippetTray] = None):
        self.config = config
        self.frames = frames
        self.on_key = on_key
        self.on_close = on_close
        self.done = done
        self.tray = tray
        self._names = [config.constant.display, (config.pitch_constant or config.constant).display]
        self.durations = RibbonState(config.base, history, "")
        self.pitches = RibbonState(config.base, history, "")
        self._relabel()
        self._last_index = -1
        self._anim = None

    def _relabel(self) -> None:
        self.durations.label = f"{self._names[0]} → duration"
        self.pitches.label = f"{self._names[1]} → pitch"

    def swap_labels(self) -> None:
        """The digit streams were twisted: swap the ribbon titles."""
        self._names.reverse()
        self._relabel()

    def ingest(self, frame: FrameUpdate) -> bool:
        """Push the frame's event onto the ribbons if it is new. True when it was."""
        ev = frame.active_event
        if ev is None or ev.source_index <= self._last_index:
            return False
        self._last_index = ev.source_index
        self.durations.push(ev.digit, ev.source_index)
        self.pitches.push(ev.pitch_digit, ev.source_index)
        return True

    def run(self) -> None:
        """Blocks until the window is closed."""
        fig, ax = plt.subplots(figsize=(11, 3.6))
        fig.canvas.manager.set_window_title("spigot")
        width = self.durations.capacity
        ax.set_xlim(0, width + (TRAY_WIDTH if self.tray is not None else 0))
        ax.set_ylim(-0.6, 2.2)
        ax.set_axis_off()

        cells = []
        for row in (1.0, 0.0):
            cells.append([ax.add_patch(Rectangle((i, row), 0.94, 0.8, color="0.15"))
                          for i in range(self.durations.capacity)])
        top_label = ax.text(0, 1.85, self.durations.label, fontsize=9)
        bottom_label = ax.text(0, -0.2, self.pitches.label, fontsize=9, va="top")
        tray_text = ax.text(width + 1, 1.8, "", fontsize=8, va="top", family="monospace")
        playhead = ax.axvline(0, color="white", lw=2, alpha=0.8)
        readout = ax.text(self.durations.capacity, 1.95, "", ha="right", fontsize=9, family="monospace")
        fig.patch.set_facecolor("0.08")
        for t in ax.texts:
            t.set_color("0.85")

        def draw(_):
            if self.done():
                plt.close(fig)
                return []
            frame = self.frames.latest()
            if frame is None:
                return []
            self.ingest(frame)
            top_label.set_text(self.durations.label)
            bottom_label.set_text(self.pitches.label)
            if self.tray is not None:
                tray_text.set_text("\n".join(s.text() for s in self.tray.entries))
            ev = frame.active_event
            hl = ev.source_index if ev is not None else None
            for ribbon, row in zip((self.durations, self.pitches), cells):
                colors = ribbon.colors(highlight=hl)
                offset = len(row) - len(colors)
                for i, rect in enumerate(row):
                    rect.set_color(colors[i - offset] if i >= offset else "0.15")
            if ev is not None:
                i = self.durations.index_of(ev.source_index)
                offset = self.durations.capacity - len(self.durations)
                span = max(1e-9, ev.beats)
                progress = min(1.0, (frame.current_beat - frame.active_start_beat) / span)
                playhead.set_xdata([offset + (i or 0) + progress * 0.94] * 2)
            m = frame.modulation
            note = note_name(ev.note) if ev is not None else "--"
            readout.set_text(f"beat {frame.current_beat:8.2f}  t {frame.elapsed:7.2f}s  "
                             f"note {note:<4} tempo x{m.tempo_scale:.2f}  "
                             f"shift {m.pitch_offset:+d}  amp {m.amplitude_scale:.2f}")
            return []

        if self.on_key is not None:
            fig.canvas.mpl_connect("key_press_event", lambda e: e.key and self.on_key(e.key))
        fig.canvas.mpl_connect("close_event", self._closed)
        # keep a reference, the animation stops when garbage collected
        self._anim = FuncAnimation(fig, draw, interval=1000 // FPS, cache_frame_data=False)
        log.info("[Visual] window open")
        plt.show()

    def _closed(self, _event) -> None:
        log.info("[Visual] window closed")
        if self.on_close is not None:
            self.on_close()
