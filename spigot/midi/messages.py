from dataclasses import dataclass
from typing import Optional, Union

import mido

@dataclass(frozen=True)
class NoteOn:
    note: int
    velocity: int
    channel: int = 0

    def to_mido(self) -> mido.Message:
        return mido.Message("note_on", note=self.note, velocity=self.velocity, channel=self.channel)

@dataclass(frozen=True)
class NoteOff:
    note: int
    velocity: int = 0
    channel: int = 0

    def to_mido(self) -> mido.Message:
        return mido.Message("note_off", note=self.note, velocity=self.velocity, channel=self.channel)

@dataclass(frozen=True)
class CC:
    control: int
    value: int
    channel: int = 0

    def to_mido(self) -> mido.Message:
        return mido.Message("control_change", control=self.control, value=self.value, channel=self.channel)

@dataclass(frozen=True)
class ProgramChange:
    program: int
    channel: int = 0

    def to_mido(self) -> mido.Message:
        return mido.Message("program_change", program=self.program, channel=self.channel)


Message = Union[NoteOn, NoteOff, CC, ProgramChange]


def from_mido(msg: mido.Message) -> Optional[Message]:
    """Translate an incoming mido message; None for types we don't route."""
    ch = getattr(msg, "channel", 0)
    if msg.type == "note_on" and msg.velocity > 0:
        return NoteOn(msg.note, msg.velocity, ch)
    if msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
        return NoteOff(msg.note, 0, ch)
    if msg.type == "control_change":
        return CC(msg.control, msg.value, ch)
    if msg.type == "program_change":
        return ProgramChange(msg.program, ch)
    return None
