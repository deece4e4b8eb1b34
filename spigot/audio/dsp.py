import math

import numpy as np

_EPS = 1e-12


def lin_to_dbfs(x: float) -> float:
    return 20.0 * math.log10(max(_EPS, x))


def soft_clip(x: np.ndarray, drive: float = 1.5) -> np.ndarray:
    # tanh limiter normalised so that +/-1 maps to +/-1; drive ~ 1.2–2.0
    return np.tanh(drive * x) / np.tanh(drive)


def peak(x: np.ndarray) -> float:
    return float(np.max(np.abs(x))) if x.size else 0.0


def rms(x: np.ndarray) -> float:
    return float(np.sqrt(np.mean(x.astype(np.float64) ** 2))) if x.size else 0.0
