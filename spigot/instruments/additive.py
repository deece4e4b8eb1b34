import copy
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List

import numpy as np

from spigot.instruments.base import Envelope, FrequencyInstrument, Voice
from spigot.instruments.envelopes.adsr import ADSR
from spigot.instruments.partials import PartialBank


@dataclass
class Partial:
    amplitude: float
    phase: float
    env: Envelope


def partial(amplitude: float, a: float, d: float, s: float, r: float, phase: float = 0.0) -> Partial:
    return Partial(amplitude, phase, ADSR(a, d, s, r))


@dataclass
class SpectralVoice(Voice):
    freq: float
    bank: PartialBank
    envs: Dict[float, Envelope]     # ratio -> envelope
    vel_amp: float = 1.0

    def note_off(self) -> None:
        for env in self.envs.values():
            env.gate_off()

    def finished(self) -> bool:
        return all(e.finished() for e in self.envs.values())

    def render(self, frames: int, sr: int) -> np.ndarray:
        Y, ratios = self.bank.render_partials(self.freq, frames, sr)
        # envelopes keep running for partials above Nyquist so finished() stays honest
        out = np.zeros(frames, dtype=np.float32)
        rows = {r: i for i, r in enumerate(ratios)}
        for r, env in self.envs.items():
            e = env.render(frames, sr)
            i = rows.get(r)
            if i is not None:
                out += Y[i] * e
        return out * float(self.vel_amp)


class PolySynth(FrequencyInstrument):
    """
    Voice pool keyed by frequency. Retriggering a note starts a new voice
    instead of cutting the old one; note_off releases the oldest held voice
    at that frequency. The mix is scaled by master/sqrt(N),
    one-pole smoothed to avoid zipper noise when N changes.
    """

    def __init__(self, voice_factory: Callable[[float, int], Voice],
                 master: float = 0.6, alpha: float = 0.05):
        self._vf = voice_factory
        self._voices: List[List] = []     # [freq, voice, held]
        self._lock = threading.Lock()
        self.master = float(master)
        self.alpha = float(alpha)
        self._gain = self.master

    def note_on(self, freq_hz: float, velocity: int) -> None:
        v = self._vf(float(freq_hz), int(velocity))
        with self._lock:
            self._voices.append([float(freq_hz), v, True])

    def note_off(self, freq_hz: float) -> None:
        f = float(freq_hz)
        with self._lock:
            for entry in self._voices:
                freq, v, held = entry
                if held and abs(freq - f) < 1e-6:
                    v.note_off()
                    entry[2] = False
                    return

    def all_notes_off(self) -> None:
        with self._lock:
            for entry in self._voices:
                entry[1].note_off()
                entry[2] = False

    def render(self, frames: int, sr: int) -> np.ndarray:
        with self._lock:
            mix = np.zeros(frames, dtype=np.float32)
            n = max(1, len(self._voices))
            alive = []
            for entry in self._voices:
                mix += entry[1].render(frames, sr)
                if not entry[1].finished():
                    alive.append(entry)
            self._voices = alive
            self._gain = (1.0 - self.alpha) * self._gain + self.alpha * (self.master / np.sqrt(n))
            return mix * self._gain

    def num_active_voices(self) -> int:
        with self._lock:
            return len(self._voices)


def make_spectral(partials: Dict[float, Partial], master: float = 0.6,
                  velocity_curve: float = 1.8) -> PolySynth:
    """Build a PolySynth whose voices share one partial recipe (ratio -> Partial)."""
    table = {float(r): (p.amplitude, p.phase) for r, p in partials.items()}

    def voice_factory(freq_hz: float, velocity: int) -> SpectralVoice:
        # every voice needs its own phases and envelope state
        envs = {}
        for r, p in partials.items():
            e = copy.deepcopy(p.env)
            e.gate_on()
            envs[float(r)] = e
        vel = max(0, min(127, int(velocity))) / 127.0
        return SpectralVoice(freq=float(freq_hz), bank=PartialBank(table),
                             envs=envs, vel_amp=vel ** float(velocity_curve))

    return PolySynth(voice_factory=voice_factory, master=master)
