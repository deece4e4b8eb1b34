import logging
import threading
from typing import Optional

import numpy as np
import sounddevice as sd

from spigot.audio.dsp import peak, rms, soft_clip
from spigot.audio.meter import AudioMeter
from spigot.audio.render import NoteRenderer
from spigot.errors import TransportError
from spigot.instruments.base import MidiInstrument
from spigot.routing.bus import EventBus

log = logging.getLogger(__name__)

SR = 44100
BLOCK = 256


class AudioEngine:
    """
    sounddevice output stream playing PlaybackCommands from an EventBus.

    The callback drains the bus, renders the instrument through a
    NoteRenderer, then pre-gain and a soft-clip limiter. A meter thread
    logs levels once per period.
    """

    def __init__(self, instrument: MidiInstrument, bus: EventBus, sr=SR, blocksize=BLOCK,
                 channels=1, pre_gain=0.3, limiter_drive=1.3, meter_period=1.0,
                 device=None):
        self.bus = bus
        self.sr = int(sr)
        self.blocksize = int(blocksize)
        self.channels = int(channels)
        self.pre_gain = float(pre_gain)
        self.limiter_drive = float(limiter_drive)
        self.device = device
        self.renderer = NoteRenderer(instrument, self.sr)
        self.meter = AudioMeter()
        self._meter_period = float(meter_period)
        self._meter_thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._stream: Optional[sd.OutputStream] = None

    @property
    def running(self) -> bool:
        return self._stream is not None and not self._stop_evt.is_set()

    # ---------------- lifecycle ----------------

    def start(self) -> None:
        self._stop_evt.clear()
        try:
            self._stream = sd.OutputStream(
                channels=self.channels,
                samplerate=self.sr,
                blocksize=self.blocksize,
                callback=self._cb,
                latency="low",
                device=self.device,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            self._stream = None
            raise TransportError(f"audio device unavailable: {exc}") from exc
        self._meter_thread = threading.Thread(target=self._meter_logger, name="AudioMeterThread")
        self._meter_thread.start()
        log.info("[Audio] stream open: %d Hz, block %d, %s", self.sr, self.blocksize,
                 sd.query_devices(self.device, "output")["name"])

    def anchor(self) -> None:
        """Map transport time 0 to one block from now."""
        self.renderer.set_epoch(lead_frames=self.blocksize)

    def stop(self) -> None:
        self._stop_evt.set()
        stream, self._stream = self._stream, None
        if stream is not None:
            # abort() returns without draining, so callbacks stop promptly
            for step in (stream.abort, stream.close):
                try:
                    step()
                except sd.PortAudioError as exc:
                    log.warning("[Audio] %s: %s", step.__name__, exc)
        if self._meter_thread is not None:
            self._meter_thread.join(timeout=2.0)
            if self._meter_thread.is_alive():
                log.warning("[Audio] meter thread still alive after join()")
            self._meter_thread = None
        log.info("[Audio] stopped after %d notes", self.renderer.started)

    # ---------------- callback ----------------

    def process(self, frames: int) -> np.ndarray:
        """One block of output, limiter applied. Runs on the audio thread."""
        for cmd in self.bus.drain():
            self.renderer.schedule(cmd)
        mix, started = self.renderer.render(frames)
        if self.pre_gain != 1.0:
            mix *= self.pre_gain

        pre = peak(mix)
        out = soft_clip(mix, drive=self.limiter_drive).astype(np.float32)
        post = peak(out)
        if post > 1.0:
            out /= post
            post = 1.0
        limited = bool(np.any(np.abs(out - mix) > 1e-7))
        self.meter.update(pre_peak=pre, post_peak=post, block_rms=rms(out),
                          limited=limited, frames=frames, notes=started)
        return out

    def _cb(self, outdata, frames, time_info, status):
        if status:
            log.debug("[Audio] %s", status)
        if self._stop_evt.is_set():
            outdata.fill(0)
            return
        block = self.process(frames)
        outdata[:] = block[:, None]

    def _meter_logger(self):
        while not self._stop_evt.wait(timeout=self._meter_period):
            r = self.meter.read_and_reset()
            log.info("[Audio] peak(pre/post): %+6.1f / %+6.1f dBFS | rms: %+6.1f dBFS | "
                     "notes: %2d | limited: %2d %s%s",
                     r.peak_pre_db, r.peak_post_db, r.rms_db, r.notes_started,
                     r.limited_blocks, r.bar(), " LIM" if r.limited_blocks else "")
