from typing import Protocol

import numpy as np


class Envelope(Protocol):
    """Gain curve for one partial; render() advances it by `frames` samples."""
    def gate_on(self) -> None: ...
    def gate_off(self) -> None: ...
    def render(self, frames: int, sr: int = 44100) -> np.ndarray: ...
    def finished(self) -> bool: ...


class Voice(Protocol):
    def note_off(self) -> None: ...
    def finished(self) -> bool: ...
    def render(self, frames: int, sr: int) -> np.ndarray: ...


class FrequencyInstrument(Protocol):
    """Polyphonic instrument addressed by frequency in Hz."""
    def note_on(self, freq_hz: float, velocity: int) -> None: ...
    def note_off(self, freq_hz: float) -> None: ...
    def all_notes_off(self) -> None: ...
    def render(self, frames: int, sr: int) -> np.ndarray: ...
    def num_active_voices(self) -> int: ...


class MidiInstrument(Protocol):
    """Same, addressed by MIDI note number."""
    def note_on(self, note: int, velocity: int) -> None: ...
    def note_off(self, note: int) -> None: ...
    def all_notes_off(self) -> None: ...
    def render(self, frames: int, sr: int) -> np.ndarray: ...
    def num_active_voices(self) -> int: ...
