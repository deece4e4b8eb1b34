import logging
import threading
from typing import Optional

from spigot.config import Configuration
from spigot.errors import TransportError
from spigot.gesture.sources import (DigitControls, GestureSource, HandTrackerGestureSource,
                                    KeyboardGestureSource, MidiControllerGestureSource)
from spigot.routing.bus import EventBus
from spigot.routing.modulation import ModulationBus
from spigot.routing.sinks import FanoutSink, LogSink, NullSink
from spigot.sequencing.transport import Transport, TransportState

log = logging.getLogger(__name__)

GESTURE_MODES = ("off", "keys", "midi", "hand")


class Session:
    """
    One run of the engine: Configuration -> digits -> events -> Transport,
    with the ModulationBus and the sinks the options ask for.

    `audio`      play through the built-in synth (sounddevice)
    `midi_out`   None for no MIDI, "" for the first suitable port, else a port name substring
    `headless`   seconds to play without a window; None opens the visualizer
    `gesture`    one of GESTURE_MODES; "off" disables the ModulationBus
    """

    def __init__(self, config: Configuration, gesture: str = "off", audio: bool = True,
                 midi_out: Optional[str] = None, headless: Optional[float] = None,
                 gesture_port: Optional[str] = None):
        if gesture not in GESTURE_MODES:
            raise ValueError(f"gesture must be one of {GESTURE_MODES}")
        self.config = config
        self.gesture_mode = gesture
        self.headless = headless
        self.bus = ModulationBus(enabled=gesture != "off")
        self.engine = None
        self.midi = None
        self.frames = None
        self._stopped = threading.Event()

        sinks = []
        if audio:
            # sounddevice needs PortAudio at import time, so only load it when asked
            from spigot.audio.engine import AudioEngine
            from spigot.audio.sink import SynthSink
            self.engine = AudioEngine(config.instrument.synth(), EventBus())
            sinks.append(SynthSink(self.engine.bus, alive=lambda: self.engine.running))
        if midi_out is not None:
            from spigot.midi.output import MidiOutSink
            self.midi = MidiOutSink(port_name=midi_out or None, program=config.instrument.program)
            sinks.append(self.midi)
        if not sinks:
            sinks.append(LogSink())
        audio_sink = sinks[0] if len(sinks) == 1 else FanoutSink(sinks)

        if headless is None:
            from spigot.visual.frames import FrameBuffer
            self.frames = FrameBuffer()
            visual = self.frames
        else:
            visual = NullSink()

        self.transport = Transport(config.event_mapper(), config.tempo, self.bus,
                                   audio=audio_sink, visual=visual, velocity=config.velocity)
        self.controls: Optional[DigitControls] = None
        self.gesture: Optional[GestureSource] = self._make_gesture(gesture, gesture_port)

    def _make_gesture(self, mode: str, port: Optional[str]) -> Optional[GestureSource]:
        if mode == "keys":
            self.controls = DigitControls(self.transport)
            return KeyboardGestureSource(self.bus, controls=self.controls)
        if mode == "midi":
            return MidiControllerGestureSource(self.bus, port_name=port)
        if mode == "hand":
            return HandTrackerGestureSource(self.bus)
        return None

    def run(self) -> None:
        """
        Play until the window closes, the headless time runs out or Ctrl-C.
        Raises TransportError if playback failed.
        """
        log.info("[Session] %s", self.config.describe())
        try:
            if self.engine is not None:
                self.engine.start()
            if self.gesture is not None:
                self.gesture.start()
            if self.engine is not None:
                self.engine.anchor()
            self.transport.start(threaded=True)

            if self.headless is not None:
                self.transport.run_for(self.headless)
            else:
                self._run_window()
        except KeyboardInterrupt:
            log.info("[Session] interrupted")
        finally:
            self.stop()
        self.transport.join()

    def _run_window(self) -> None:
        from spigot.visual.ribbon import SnippetTray
        from spigot.visual.window import Visualizer
        keys = self.gesture.handle_key if isinstance(self.gesture, KeyboardGestureSource) else None
        tray = None
        if self.controls is not None and self.transport.dual:
            tray = self.controls.tray = SnippetTray()
        vis = Visualizer(self.config, self.frames, on_key=keys, on_close=self.stop,
                         done=lambda: self.transport.state is TransportState.STOPPED, tray=tray)
        if self.controls is not None:
            self.controls.on_twist = vis.swap_labels
        vis.run()

    def stop(self) -> None:
        """Idempotent; transport first so nothing reaches a sink being torn down."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        self.transport.stop()
        if self.gesture is not None:
            self.gesture.stop()
        if self.midi is not None:
            self.midi.close()
        if self.engine is not None:
            self.engine.stop()
        err: Optional[TransportError] = self.transport.error
        log.info("[Session] done: %d notes%s", self.transport.delivered,
                 f" ({err})" if err else "")
