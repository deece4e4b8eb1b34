import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from spigot.errors import SinkBusy, SinkDisconnected
from spigot.routing.modulation import NEUTRAL, ModulationState
from spigot.sequencing.mapper import MusicalEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaybackCommand:
    pitch: int            # MIDI note, modulation applied
    velocity: int         # 0..127, modulation applied
    start_time: float     # seconds since transport start
    duration: float       # seconds
    source_index: int


@dataclass(frozen=True)
class FrameUpdate:
    current_beat: float
    elapsed: float
    active_event: Optional[MusicalEvent] = None
    active_start_beat: Optional[float] = None
    modulation: ModulationState = NEUTRAL


class AudioSink(Protocol):
    def send(self, cmd: PlaybackCommand) -> None:
        """Non-blocking. Raise SinkBusy to be retried next tick, SinkDisconnected if gone."""
        ...


class VisualSink(Protocol):
    def send(self, frame: FrameUpdate) -> None:
        ...


class NullSink:
    def send(self, item) -> None:
        pass


class RecordingSink:
    """Keeps everything it receives, in order. Thread-safe."""

    def __init__(self, maxlen: Optional[int] = None):
        self.maxlen = maxlen
        self._items: List[object] = []
        self._lock = threading.Lock()

    def send(self, item) -> None:
        with self._lock:
            self._items.append(item)
            if self.maxlen is not None and len(self._items) > self.maxlen:
                del self._items[0]

    @property
    def items(self) -> List[object]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class FanoutSink:
    """
    Sends every item to all children. A busy child makes the whole send busy
    only if nothing was delivered, otherwise it misses that item (logged);
    a disconnected child is dropped unless it was the last one.
    """

    def __init__(self, sinks: Sequence[object]):
        self._sinks = list(sinks)

    def send(self, item) -> None:
        if not self._sinks:
            raise SinkDisconnected("no sinks left")
        delivered = 0
        busy = None
        skipped = []
        for sink in list(self._sinks):
            try:
                sink.send(item)
                delivered += 1
            except SinkBusy as exc:
                busy = exc
                skipped.append(type(sink).__name__)
            except SinkDisconnected as exc:
                log.warning("[Sink] %s disconnected: %s", type(sink).__name__, exc)
                self._sinks.remove(sink)
                if not self._sinks:
                    raise
        if busy is not None and delivered == 0:
            raise busy
        for name in skipped:
            log.warning("[Sink] %s busy, item #%s skipped", name, getattr(item, "source_index", "?"))


class LogSink:
    """Logs every PlaybackCommand; the audio sink of a run with no audio device."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def send(self, cmd: PlaybackCommand) -> None:
        log.log(self.level, "[Sink] #%-5d note %3d vel %3d  t=%8.3fs  %.3fs",
                cmd.source_index, cmd.pitch, cmd.velocity, cmd.start_time, cmd.duration)
