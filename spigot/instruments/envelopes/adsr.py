from enum import Enum, auto

import numpy as np


class Stage(Enum):
    IDLE = auto()
    HELD = auto()      # attack -> decay -> sustain, while the gate is on
    RELEASE = auto()


class ADSR:
    """
    Linear Attack/Decay/Sustain/Release, rendered block by block.
    Times in seconds, sustain is a level in [0, 1]. Every stage lasts at
    least one sample.
    """

    def __init__(self, attack=0.03, decay=0.08, sustain=0.7, release=0.20):
        self.a = float(attack)
        self.d = float(decay)
        self.s = float(sustain)
        self.r = float(release)
        self._stage = Stage.IDLE
        self._n = 0             # samples rendered since the last gate change
        self._sr = None
        self._rel_level = 0.0

    def _lengths(self, sr: int):
        return (max(1, int(self.a * sr)), max(1, int(self.d * sr)), max(1, int(self.r * sr)))

    def _held(self, n: np.ndarray, sr: int) -> np.ndarray:
        A, D, _ = self._lengths(sr)
        return np.interp(n, (0.0, A, A + D), (0.0, 1.0, self.s))

    def gate_on(self) -> None:
        self._stage = Stage.HELD
        self._n = 0

    def gate_off(self) -> None:
        if self._stage is not Stage.HELD:
            return
        sr = self._sr or 44100
        self._rel_level = float(self._held(np.array([self._n], dtype=np.float64), sr)[0])
        self._stage = Stage.RELEASE if self.r > 0 else Stage.IDLE
        self._n = 0

    def finished(self) -> bool:
        return self._stage is Stage.IDLE

    def render(self, frames: int, sr: int = 44100) -> np.ndarray:
        self._sr = sr
        if self._stage is Stage.IDLE or frames <= 0:
            return np.zeros(max(0, frames), dtype=np.float32)
        n = np.arange(self._n, self._n + frames, dtype=np.float64)
        self._n += frames
        if self._stage is Stage.HELD:
            return self._held(n, sr).astype(np.float32)
        _, _, R = self._lengths(sr)
        out = np.interp(n, (0.0, R), (self._rel_level, 0.0), right=0.0)
        if self._n >= R:
            self._stage = Stage.IDLE
        return out.astype(np.float32)
