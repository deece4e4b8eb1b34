from typing import Dict, List, Tuple

import numpy as np

TWO_PI = 2.0 * np.pi


class PartialBank:
    """
    Sine oscillators at ratio * f0, amplitudes L1-normalized.
    Phases persist across blocks; partials at or above Nyquist are skipped.
    """

    def __init__(self, partials: Dict[float, Tuple[float, float]]):
        items = sorted(partials.items())
        self.ratios = np.array([r for r, _ in items], dtype=np.float64)
        amps = np.array([abs(v[0]) for _, v in items], dtype=np.float64)
        total = float(amps.sum())
        self.amps = amps / total if total > 0 else amps
        self.phases = np.mod(np.array([v[1] for _, v in items], dtype=np.float64), TWO_PI)

    def render_partials(self, freq: float, frames: int, sr: int) -> Tuple[np.ndarray, List[float]]:
        """(P, frames) matrix of amplitude-scaled partials plus the ratios kept."""
        if frames <= 0 or self.ratios.size == 0:
            return np.zeros((0, max(0, frames)), dtype=np.float32), []
        f = self.ratios * float(freq)
        keep = (f > 0.0) & (f < 0.5 * sr)
        if not keep.any():
            return np.zeros((0, frames), dtype=np.float32), []

        inc = TWO_PI * f[keep] / sr
        phi = self.phases[keep]
        ramp = phi[:, None] + np.arange(frames, dtype=np.float64)[None, :] * inc[:, None]
        Y = (np.sin(ramp) * self.amps[keep][:, None]).astype(np.float32)
        self.phases[keep] = (phi + frames * inc) % TWO_PI
        return Y, [float(r) for r in self.ratios[keep]]
