import logging

import mido

from spigot.config import Configuration
from spigot.sequencing.durations import beats_to_ticks

log = logging.getLogger(__name__)

TICKS_PER_BEAT = 480


def track_title(config: Configuration) -> str:
    # meta text is written as latin-1, so stick to the ASCII keys
    streams = config.constant.key
    if config.pitch_constant is not None:
        streams += "/" + config.pitch_constant.key
    return f"spigot {streams} base {config.base} {config.scale.name}"


def compose(config: Configuration, n: int, ticks_per_beat: int = TICKS_PER_BEAT,
            channel: int = 0) -> mido.MidiFile:
    """
    First `n` events of the configured digit stream as a type-0 Standard
    MIDI File: tempo, track name and program change, then back-to-back notes.
    """
    mid = mido.MidiFile(type=0, ticks_per_beat=ticks_per_beat)
    track = mido.MidiTrack()
    mid.tracks.append(track)
    track.append(mido.MetaMessage("set_tempo", tempo=int(round(60_000_000 / config.tempo)), time=0))
    track.append(mido.MetaMessage("track_name", name=track_title(config), time=0))
    track.append(mido.Message("program_change", program=config.instrument.program,
                              channel=channel, time=0))
    mapper = config.event_mapper()
    for ev in mapper.take(n):
        track.append(mido.Message("note_on", note=ev.note, velocity=config.velocity,
                                  channel=channel, time=0))
        track.append(mido.Message("note_off", note=ev.note, velocity=0, channel=channel,
                                  time=beats_to_ticks(ev.beats, ticks_per_beat)))
    track.append(mido.MetaMessage("end_of_track", time=0))
    return mid


def export_midi(config: Configuration, path: str, n: int, **kwargs) -> mido.MidiFile:
    mid = compose(config, n, **kwargs)
    mid.save(path)
    log.info("[MIDI] wrote %d notes (%.1f s) to %s", n, mid.length, path)
    return mid
