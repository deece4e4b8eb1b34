from typing import Callable

import numpy as np

from spigot.instruments.base import FrequencyInstrument, MidiInstrument


def midi_to_freq(note: int, a4_note: int = 69, a4_freq: float = 440.0, n_tones: int = 12) -> float:
    """Equal temperament."""
    return a4_freq * 2.0 ** ((int(note) - int(a4_note)) / n_tones)


class MidiInstrumentAdapter(MidiInstrument):
    """Puts a MIDI-note API in front of a FrequencyInstrument."""

    def __init__(self, inner: FrequencyInstrument,
                 to_freq: Callable[[int], float] = midi_to_freq):
        self.inner = inner
        self._to_freq = to_freq

    def note_on(self, note: int, velocity: int) -> None:
        self.inner.note_on(self._to_freq(note), velocity)

    def note_off(self, note: int) -> None:
        self.inner.note_off(self._to_freq(note))

    def all_notes_off(self) -> None:
        self.inner.all_notes_off()

    def render(self, frames: int, sr: int) -> np.ndarray:
        return self.inner.render(frames, sr)

    def num_active_voices(self) -> int:
        return self.inner.num_active_voices()
