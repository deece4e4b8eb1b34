from dataclasses import dataclass
from typing import Optional

from spigot.digits.source import DigitSource, DualDigitSource
from spigot.sequencing.durations import DurationTable
from spigot.sequencing.scales import PitchMap


@dataclass(frozen=True)
class MusicalEvent:
    source_index: int     # gapless, strictly increasing
    digit: int            # drives the duration
    pitch_digit: int      # drives the pitch (== digit in single-stream mode)
    degree: int           # pitch_digit mod |scale|
    octave: int
    note: int             # MIDI note before live modulation
    duration_index: int   # digit mod |table|
    beats: float


class EventMapper:
    """
    Turns digits into MusicalEvents.

    `map` is a pure function of its arguments and the configured tables.
    `next` pulls from the bound source: a DigitSource (one digit drives
    both pitch and duration) or a DualDigitSource (left -> duration,
    right -> pitch), and keeps the running source index.
    """

    def __init__(self, pitch_map: PitchMap, durations: DurationTable,
                 source: DigitSource | DualDigitSource | None = None):
        self.pitch_map = pitch_map
        self.durations = durations
        self.source = source
        self._index = 0

    def map(self, digit: int, index: int, pitch_digit: Optional[int] = None) -> MusicalEvent:
        pd = digit if pitch_digit is None else pitch_digit
        return MusicalEvent(
            source_index=int(index),
            digit=int(digit),
            pitch_digit=int(pd),
            degree=self.pitch_map.degree_for(pd),
            octave=self.pitch_map.octave_for(pd),
            note=self.pitch_map.note_for(pd),
            duration_index=self.durations.index_for(digit),
            beats=self.durations.beats_for(digit),
        )

    def next(self) -> MusicalEvent:
        if self.source is None:
            raise RuntimeError("EventMapper has no digit source bound")
        if isinstance(self.source, DualDigitSource):
            digit, pitch_digit = self.source.next()
        else:
            digit = pitch_digit = self.source.next()
        ev = self.map(digit, self._index, pitch_digit)
        self._index += 1
        return ev

    def take(self, n: int):
        return [self.next() for _ in range(max(0, int(n)))]

    def reset(self) -> None:
        if self.source is not None:
            self.source.reset()
        self._index = 0

    @property
    def position(self) -> int:
        return self._index

    def __iter__(self):
        return self

    def __next__(self) -> MusicalEvent:
        return self.next()
