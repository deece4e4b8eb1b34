from dataclasses import dataclass
from typing import Sequence, Tuple

from spigot.errors import ConfigurationError

DURATION_TABLES = ("musical", "linear", "exponential", "fixed")


def beats_to_ticks(beats: float, ppq: int) -> int:
    return max(1, int(round(beats * ppq)))

def whole() -> float:
    return 4.0

def half() -> float:
    return 2.0

def quarter() -> float:
    return 1.0

def eighth() -> float:
    return 0.5

def sixteenth() -> float:
    return 0.25

def thirty_second() -> float:
    return 0.125

def dotted(beats: float) -> float:
    return beats * 1.5


@dataclass(frozen=True)
class DurationTable:
    """
    Digit -> note length in beats (quarter note = 1 beat).
    Lookup wraps: index = digit mod len(table).
    """
    beats: Tuple[float, ...]
    name: str = "Custom"

    def __post_init__(self):
        beats = tuple(float(b) for b in self.beats)
        if not beats:
            raise ConfigurationError("duration table must not be empty")
        if any(not b > 0.0 for b in beats):
            raise ConfigurationError(f"durations must be positive beats, got {beats}")
        object.__setattr__(self, "beats", beats)

    def __len__(self) -> int:
        return len(self.beats)

    def index_for(self, digit: int) -> int:
        return int(digit) % len(self.beats)

    def beats_for(self, digit: int) -> float:
        return self.beats[self.index_for(digit)]

    # ---------------- presets ----------------

    @classmethod
    def musical(cls) -> "DurationTable":
        """32nd, 16th, dotted 16th, 8th, dotted 8th, quarter, dotted quarter, half, dotted half, whole."""
        return cls((
            thirty_second(),
            sixteenth(),
            dotted(sixteenth()),
            eighth(),
            dotted(eighth()),
            quarter(),
            dotted(quarter()),
            half(),
            dotted(half()),
            whole(),
        ), "Musical")

    @classmethod
    def linear(cls, unit: float = 0.25, base: int = 10) -> "DurationTable":
        """digit d -> (d + 1) * unit"""
        return cls(tuple((d + 1) * unit for d in range(base)), "Linear")

    @classmethod
    def exponential(cls, unit: float = 0.125, base: int = 10) -> "DurationTable":
        """digit d -> unit * 2**d, exponent capped at 16"""
        return cls(tuple(unit * (1 << min(d, 16)) for d in range(base)), "Exponential")

    @classmethod
    def fixed(cls, beats: float = 1.0, base: int = 10) -> "DurationTable":
        return cls((beats,) * base, "Fixed")

    @classmethod
    def custom(cls, beats: Sequence[float]) -> "DurationTable":
        return cls(tuple(beats), "Custom")

    @classmethod
    def named(cls, name: str, base: int = 10) -> "DurationTable":
        key = str(name).strip().lower()
        makers = {
            "musical": cls.musical,
            "linear": lambda: cls.linear(base=base),
            "exponential": lambda: cls.exponential(base=base),
            "fixed": lambda: cls.fixed(base=base),
        }
        if key not in makers:
            raise ConfigurationError(f"unknown duration table {name!r}; choose one of {', '.join(DURATION_TABLES)}")
        return makers[key]()
