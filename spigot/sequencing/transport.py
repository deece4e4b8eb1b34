import enum
import logging
import threading
import time
from typing import Callable, Dict, Optional, TypeVar

from spigot.digits.source import DualDigitSource
from spigot.errors import SinkBusy, SinkDisconnected, TransportError, TransportStateError
from spigot.routing.modulation import ModulationBus, ModulationState
from spigot.routing.sinks import FrameUpdate, NullSink, PlaybackCommand
from spigot.sequencing.clock import TickTimer
from spigot.sequencing.mapper import EventMapper, MusicalEvent

log = logging.getLogger(__name__)

DEFAULT_TICK_HZ = 200
DEFAULT_RETRY_BUDGET = 8

T = TypeVar("T")


class TransportState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


def _clamp_midi(x: int) -> int:
    return 0 if x < 0 else 127 if x > 127 else int(x)


class Transport:
    """
    Real-time scheduler. Pulls MusicalEvents from the mapper, applies the
    live modulation and hands PlaybackCommands / FrameUpdates to the sinks.

    Logical time is a beat counter integrated tick by tick from the wall
    clock:  beat += dt * tempo/60 * mean(previous scale, current scale).
    One event is pending at a time; every event whose start beat has been
    reached is delivered on the same tick, in order.

    `tick()` may be driven by hand (tests pass a fake `clock`), or by the
    internal TickTimer when started with threaded=True.
    """

    def __init__(self, mapper: EventMapper, tempo: float,
                 bus: Optional[ModulationBus] = None,
                 audio=None, visual=None,
                 velocity: int = 100,
                 clock: Callable[[], float] = time.perf_counter,
                 tick_hz: float = DEFAULT_TICK_HZ,
                 retry_budget: int = DEFAULT_RETRY_BUDGET,
                 on_error: Optional[Callable[[TransportError], None]] = None):
        if tempo <= 0:
            raise ValueError("tempo must be positive")
        self.mapper = mapper
        self.tempo = float(tempo)
        self.bus = bus if bus is not None else ModulationBus(enabled=False)
        self.audio = audio if audio is not None else NullSink()
        self.visual = visual if visual is not None else NullSink()
        self.velocity = int(velocity)
        self.clock = clock
        self.retry_budget = int(retry_budget)
        self.on_error = on_error

        self._lock = threading.RLock()
        self._state = TransportState.IDLE
        self._timer = TickTimer(1.0 / tick_hz, name="TransportTick")
        self._error: Optional[TransportError] = None

        self._t0 = 0.0
        self._last_t = 0.0
        self._elapsed = 0.0
        self._beat = 0.0
        self._scale = 1.0

        self._pending: Optional[MusicalEvent] = None
        self._pending_start = 0.0
        self._active: Optional[MusicalEvent] = None
        self._active_start: Optional[float] = None
        self._last_frame_beat = float("-inf")
        self._last_cmd_time = 0.0
        self._failures: Dict[str, int] = {"audio": 0, "visual": 0}
        self.delivered = 0
        self.frames = 0

    # ---------------- state ----------------

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def beat(self) -> float:
        with self._lock:
            return self._beat

    @property
    def elapsed(self) -> float:
        with self._lock:
            return self._elapsed

    @property
    def error(self) -> Optional[TransportError]:
        return self._error

    def start(self, threaded: bool = True) -> None:
        with self._lock:
            if self._state is not TransportState.IDLE:
                raise TransportStateError(f"cannot start a transport that is {self._state.value}")
            self._t0 = self._last_t = self.clock()
            self._scale = self.bus.read().tempo_scale
            self._pending = self.mapper.next()
            self._pending_start = 0.0
            self._state = TransportState.RUNNING
        log.info("[Transport] running at %.1f BPM", self.tempo)
        if threaded:
            self._timer.start(self._loop_tick)

    def stop(self) -> None:
        """Idempotent. Once this returns nothing more reaches the sinks."""
        with self._lock:
            if self._state is not TransportState.STOPPED:
                log.info("[Transport] stopped at beat %.2f after %d events", self._beat, self.delivered)
            self._state = TransportState.STOPPED
        self._timer.stop(join=True)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the tick thread to finish; re-raises a fatal error it hit."""
        self._timer.join(timeout)
        if self._error is not None:
            raise self._error

    @property
    def dual(self) -> bool:
        return isinstance(self.mapper.source, DualDigitSource)

    def edit_digits(self, fn: Callable[[DualDigitSource], T]) -> T:
        """
        Run `fn` on the dual digit source between two ticks and return its
        result. The pending event is already drawn, so an edit is heard from
        the event after it.
        """
        with self._lock:
            source = self.mapper.source
            if not isinstance(source, DualDigitSource):
                raise TransportStateError("digit edits need two digit streams")
            return fn(source)

    # ---------------- tick ----------------

    def _loop_tick(self) -> bool:
        try:
            self.tick()
        except Exception as exc:
            if isinstance(exc, TransportError):
                err = exc
            else:
                log.exception("[Transport] tick failed")
                err = TransportError(f"tick failed: {exc!r}")
                err.__cause__ = exc
            with self._lock:
                self._state = TransportState.STOPPED
            self._error = err
            log.error("[Transport] %s", err)
            if self.on_error is not None:
                self.on_error(err)
            return False
        return self._state is TransportState.RUNNING

    def tick(self) -> int:
        """Advance the clock, deliver due events and one frame. Returns events sent."""
        with self._lock:
            if self._state is TransportState.IDLE:
                raise TransportStateError("transport not started")
            if self._state is TransportState.STOPPED:
                return 0

            mod = self.bus.read()
            now = self.clock()
            dt = now - self._last_t
            if dt < 0:
                dt = 0.0
            else:
                self._last_t = now
            self._elapsed += dt
            prev_scale, self._scale = self._scale, mod.tempo_scale
            rate = self.tempo / 60.0 * 0.5 * (prev_scale + mod.tempo_scale)
            self._beat += dt * rate

            sent = 0
            while self._state is TransportState.RUNNING and self._pending_start <= self._beat:
                cmd = self._command_for(self._pending, self._pending_start, mod, rate)
                if not self._deliver("audio", self.audio, cmd):
                    break
                self._active, self._active_start = self._pending, self._pending_start
                self._last_cmd_time = cmd.start_time
                self.delivered += 1
                sent += 1
                log.debug("[Transport] #%d note %d at %.3fs for %.3fs",
                          cmd.source_index, cmd.pitch, cmd.start_time, cmd.duration)
                self._pending_start += self._pending.beats
                self._pending = self.mapper.next()

            if self._state is TransportState.RUNNING and self._beat > self._last_frame_beat:
                frame = FrameUpdate(
                    current_beat=self._beat,
                    elapsed=self._elapsed,
                    active_event=self._active,
                    active_start_beat=self._active_start,
                    modulation=mod,
                )
                if self._deliver("visual", self.visual, frame):
                    self._last_frame_beat = self._beat
                    self.frames += 1
            return sent

    def _command_for(self, ev: MusicalEvent, start_beat: float,
                     mod: ModulationState, rate: float) -> PlaybackCommand:
        # interpolate back to the moment the start beat was crossed
        late = (self._beat - start_beat) / rate if rate > 0 else 0.0
        start_time = max(self._last_cmd_time, self._elapsed - late, 0.0)
        seconds_per_beat = 60.0 / (self.tempo * mod.tempo_scale)
        return PlaybackCommand(
            pitch=_clamp_midi(ev.note + mod.pitch_offset),
            velocity=_clamp_midi(round(self.velocity * mod.amplitude_scale)),
            start_time=start_time,
            duration=ev.beats * seconds_per_beat,
            source_index=ev.source_index,
        )

    def _deliver(self, name: str, sink, item) -> bool:
        try:
            sink.send(item)
        except SinkBusy:
            self._failures[name] += 1
            if self._failures[name] > self.retry_budget:
                self._state = TransportState.STOPPED
                raise TransportError(
                    f"{name} sink still busy after {self._failures[name]} attempts") from None
            log.debug("[Transport] %s sink busy (%d)", name, self._failures[name])
            return False
        except SinkDisconnected as exc:
            self._state = TransportState.STOPPED
            raise TransportError(f"{name} sink disconnected: {exc}") from exc
        except Exception as exc:
            self._state = TransportState.STOPPED
            raise TransportError(f"{name} sink failed: {exc!r}") from exc
        self._failures[name] = 0
        return True

    # ---------------- helpers ----------------

    def run_for(self, seconds: float, poll: float = 0.05) -> None:
        """Block the caller until `seconds` of wall time pass or the transport stops."""
        deadline = time.monotonic() + seconds
        while self._state is TransportState.RUNNING and time.monotonic() < deadline:
            time.sleep(min(poll, max(0.0, deadline - time.monotonic())))

