from dataclasses import dataclass
from typing import Dict, Tuple

from spigot.errors import ConfigurationError

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

SCALES: Dict[str, Tuple[int, ...]] = {
    "chromatic":        tuple(range(12)),
    "major":            (0, 2, 4, 5, 7, 9, 11),
    "minor":            (0, 2, 3, 5, 7, 8, 10),
    "pentatonic-major": (0, 2, 4, 7, 9),
    "pentatonic-minor": (0, 3, 5, 7, 10),
    "dorian":           (0, 2, 3, 5, 7, 9, 10),
    "phrygian":         (0, 1, 3, 5, 7, 8, 10),
    "lydian":           (0, 2, 4, 6, 7, 9, 11),
    "mixolydian":       (0, 2, 4, 5, 7, 9, 10),
    "whole-tone":       (0, 2, 4, 6, 8, 10),
    "diminished":       (0, 2, 3, 5, 6, 8, 9, 11),
}


def note_name(note: int) -> str:
    return f"{NOTE_NAMES[note % 12]}{note // 12 - 1}"


@dataclass(frozen=True)
class Scale:
    """Ordered pitch classes as semitone offsets from the root."""
    intervals: Tuple[int, ...]
    name: str = "custom"

    def __post_init__(self):
        iv = tuple(int(i) for i in self.intervals)
        if not iv:
            raise ConfigurationError("scale must contain at least one pitch class")
        if any(not 0 <= i <= 11 for i in iv):
            raise ConfigurationError(f"scale intervals must be 0–11 semitones, got {iv}")
        object.__setattr__(self, "intervals", iv)

    def __len__(self) -> int:
        return len(self.intervals)

    @classmethod
    def named(cls, name) -> "Scale":
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace(" ", "-").replace("_", "-")
        names = list(SCALES)
        if key.isdigit() and 1 <= int(key) <= len(names):
            key = names[int(key) - 1]
        if key not in SCALES:
            raise ConfigurationError(f"unknown scale {name!r}; choose one of {', '.join(names)}")
        return cls(SCALES[key], key)

    @classmethod
    def major(cls) -> "Scale":
        return cls.named("major")


@dataclass(frozen=True)
class PitchMap:
    """
    Digit -> MIDI note. The digit indexes the scale and wraps upward by
    octaves: degree = d mod n, octave = d div n. Clamped at 127.
    """
    root: int = 60
    scale: Scale = Scale(SCALES["major"], "major")

    def __post_init__(self):
        if not 0 <= int(self.root) <= 127:
            raise ConfigurationError(f"root note must be 0–127, got {self.root}")

    def degree_for(self, digit: int) -> int:
        return int(digit) % len(self.scale)

    def octave_for(self, digit: int) -> int:
        return int(digit) // len(self.scale)

    def note_for(self, digit: int) -> int:
        semitone = self.scale.intervals[self.degree_for(digit)]
        return min(127, self.root + 12 * self.octave_for(digit) + semitone)
