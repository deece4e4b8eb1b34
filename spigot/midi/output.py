import heapq
import itertools
import logging
import threading
import time
from typing import List, Optional, Sequence

import mido

from spigot.errors import SinkDisconnected
from spigot.midi.messages import NoteOff, NoteOn, ProgramChange
from spigot.routing.sinks import PlaybackCommand

log = logging.getLogger(__name__)

# software synths we would rather talk to than a hardware thru port
PREFERRED_PORTS = ("fluid", "timidity", "microsoft", "gm", "synth")


def pick_port(names: Sequence[str], wanted: Optional[str] = None) -> Optional[str]:
    """
    `wanted` is a case-insensitive substring. Without it, prefer a known
    software synth, else the first port. None when there is nothing to open.
    """
    if wanted:
        for n in names:
            if wanted.lower() in n.lower():
                return n
        return None
    for n in names:
        if any(p in n.lower() for p in PREFERRED_PORTS):
            return n
    return names[0] if names else None


def open_output(wanted: Optional[str] = None):
    names = mido.get_output_names()
    name = pick_port(names, wanted)
    if name is None:
        raise SinkDisconnected(f"no MIDI output port matching {wanted!r} (found: {names or 'none'})")
    log.info("[MIDI] out: %s", name)
    return mido.open_output(name)


class MidiOutSink:
    """
    Audio sink that plays through a MIDI output port.

    Note-on goes out from send() right away; the matching note-off is put
    on a heap and sent by a scheduler thread when the note's duration has
    passed. A port error ends the sink with SinkDisconnected.
    """

    def __init__(self, port=None, port_name: Optional[str] = None,
                 channel: int = 0, program: Optional[int] = None):
        self.port = port if port is not None else open_output(port_name)
        self.channel = int(channel)
        self._offs: List[tuple] = []
        self._seq = itertools.count()
        self._cv = threading.Condition()
        self._closed = False
        self._th = threading.Thread(target=self._run, name="MidiNoteOff", daemon=True)
        self._th.start()
        if program is not None:
            self._write(ProgramChange(int(program), self.channel))

    def _write(self, msg) -> None:
        try:
            self.port.send(msg.to_mido())
        except (OSError, ValueError) as exc:
            self._closed = True
            raise SinkDisconnected(f"MIDI port: {exc}") from exc

    def send(self, cmd: PlaybackCommand) -> None:
        if self._closed:
            raise SinkDisconnected("MIDI output closed")
        self._write(NoteOn(cmd.pitch, max(1, cmd.velocity), self.channel))
        with self._cv:
            heapq.heappush(self._offs, (time.monotonic() + cmd.duration, next(self._seq), cmd.pitch))
            self._cv.notify()

    def _run(self) -> None:
        with self._cv:
            while not self._closed:
                if not self._offs:
                    self._cv.wait()
                    continue
                due = self._offs[0][0] - time.monotonic()
                if due > 0:
                    self._cv.wait(due)
                    continue
                _, _, note = heapq.heappop(self._offs)
                try:
                    self._write(NoteOff(note, 0, self.channel))
                except SinkDisconnected as exc:
                    log.error("[MIDI] %s", exc)

    def close(self) -> None:
        with self._cv:
            pending = [note for _, _, note in sorted(self._offs)]
            self._offs.clear()
            was_open = not self._closed
            self._closed = True
            self._cv.notify()
        if was_open:
            for note in pending:
                try:
                    self.port.send(NoteOff(note, 0, self.channel).to_mido())
                except (OSError, ValueError) as exc:
                    log.warning("[MIDI] note-off for %d lost: %s", note, exc)
                    break
        self._th.join(timeout=1.0)
        self.port.close()
