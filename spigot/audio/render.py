import heapq
import itertools
from typing import List, Tuple

import numpy as np

from spigot.instruments.base import MidiInstrument
from spigot.routing.sinks import PlaybackCommand

NOTE_ON, NOTE_OFF = 1, 0     # offs sort first at equal sample so a retrigger is clean


class NoteRenderer:
    """
    Sample-accurate playback of PlaybackCommands on a MidiInstrument.

    Command times are seconds since the transport started; `epoch` is the
    sample position that instant maps to. Each block is rendered in slices
    split at note boundaries, so a note starts on its own sample. Commands
    that arrive late start at the beginning of the next block.
    """

    def __init__(self, instrument: MidiInstrument, sr: int):
        self.instrument = instrument
        self.sr = int(sr)
        self.position = 0         # samples rendered so far
        self.epoch = 0
        self._queue: List[Tuple[int, int, int, int, int]] = []
        self._seq = itertools.count()
        self.started = 0

    def set_epoch(self, lead_frames: int = 0) -> None:
        self.epoch = self.position + int(lead_frames)

    def schedule(self, cmd: PlaybackCommand) -> None:
        on = max(self.position, self.epoch + int(round(cmd.start_time * self.sr)))
        off = on + max(1, int(round(cmd.duration * self.sr)))
        heapq.heappush(self._queue, (on, NOTE_ON, next(self._seq), cmd.pitch, cmd.velocity))
        heapq.heappush(self._queue, (off, NOTE_OFF, next(self._seq), cmd.pitch, 0))

    def pending(self) -> int:
        return len(self._queue)

    def render(self, frames: int) -> Tuple[np.ndarray, int]:
        """Next `frames` samples and the number of notes started in them."""
        out = np.zeros(frames, dtype=np.float32)
        end = self.position + frames
        cursor = self.position
        started = 0
        while self._queue and self._queue[0][0] < end:
            at, kind, _, note, vel = heapq.heappop(self._queue)
            at = max(at, cursor)
            if at > cursor:
                out[cursor - self.position:at - self.position] = self.instrument.render(at - cursor, self.sr)
                cursor = at
            if kind == NOTE_ON:
                self.instrument.note_on(note, vel)
                started += 1
            else:
                self.instrument.note_off(note)
        if cursor < end:
            out[cursor - self.position:] = self.instrument.render(end - cursor, self.sr)
        self.position = end
        self.started += started
        return out, started

    def clear(self) -> None:
        self._queue.clear()
        self.instrument.all_notes_off()
