import logging
import math
import threading
import time
from dataclasses import dataclass, field

log = logging.getLogger(__name__)

TEMPO_SCALE_RANGE = (0.25, 4.0)
PITCH_OFFSET_RANGE = (-24, 24)
AMPLITUDE_RANGE = (0.0, 1.0)

# hand lateral position spans +/- one octave
LATERAL_SEMITONES = 12


@dataclass(frozen=True)
class GesturePose:
    """
    One normalized hand sample.

    height   0 (low) .. 1 (high)              -> amplitude
    lateral -1 (left) .. +1 (right)           -> pitch offset
    speed   -1 (pushing away) .. +1 (pulling) -> tempo
    Out-of-range values are expected; the bus clamps them.
    """
    height: float = 1.0
    lateral: float = 0.0
    speed: float = 0.0
    present: bool = True
    timestamp: float = field(default_factory=time.monotonic)


@dataclass(frozen=True)
class ModulationState:
    tempo_scale: float = 1.0
    pitch_offset: int = 0
    amplitude_scale: float = 1.0


NEUTRAL = ModulationState()


def _clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def _finite(value, default: float) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return default
    return x if math.isfinite(x) else default


def normalize(pose: GesturePose) -> ModulationState:
    """Fixed pose -> modulation mapping. Never raises; bad fields fall back to neutral."""
    if not getattr(pose, "present", True):
        return NEUTRAL
    height = _clamp(_finite(getattr(pose, "height", None), NEUTRAL.amplitude_scale), 0.0, 1.0)
    lateral = _clamp(_finite(getattr(pose, "lateral", None), 0.0), -1.0, 1.0)
    speed = _clamp(_finite(getattr(pose, "speed", None), 0.0), -1.0, 1.0)

    tempo = _clamp(2.0 ** speed, *TEMPO_SCALE_RANGE)
    offset = int(_clamp(round(lateral * LATERAL_SEMITONES), *PITCH_OFFSET_RANGE))
    amp = _clamp(height, *AMPLITUDE_RANGE)
    return ModulationState(tempo_scale=tempo, pitch_offset=offset, amplitude_scale=amp)


class ModulationBus:
    """
    Latest gesture-derived ModulationState, shared between one producer
    thread and the transport.

    No queue: each publish replaces the whole snapshot (last writer wins),
    readers always get a complete state. When disabled, read() is NEUTRAL
    and publish() is ignored.
    """

    def __init__(self, enabled: bool = True):
        self._enabled = bool(enabled)
        self._state = NEUTRAL
        self._lock = threading.Lock()
        self._published = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def publish(self, sample: GesturePose) -> ModulationState:
        if not self._enabled:
            return NEUTRAL
        state = normalize(sample)
        with self._lock:
            self._state = state
            self._published += 1
        log.debug("[Gesture] %s", state)
        return state

    def read(self) -> ModulationState:
        if not self._enabled:
            return NEUTRAL
        with self._lock:
            return self._state

    def reset(self) -> None:
        with self._lock:
            self._state = NEUTRAL

    @property
    def published(self) -> int:
        with self._lock:
            return self._published
