import threading
from dataclasses import dataclass

from spigot.audio.dsp import lin_to_dbfs


@dataclass(frozen=True)
class MeterReading:
    peak_pre_db: float
    peak_post_db: float
    rms_db: float
    limited_blocks: int
    frames: int
    notes_started: int

    def bar(self, floor: float = -60.0, width: int = 20) -> str:
        db = max(floor, min(0.0, self.peak_post_db))
        fill = int((db - floor) / -floor * width + 0.5)
        return "[" + ("#" * fill).ljust(width, ".") + "]"


class AudioMeter:
    """
    Accumulates block statistics from the audio callback; a non-RT thread
    takes a reading and resets the window about once per second.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._clear()

    def _clear(self) -> None:
        self.frames = 0
        self.sum_sq = 0.0
        self.peak_pre = 0.0
        self.peak_post = 0.0
        self.limited = 0
        self.notes = 0

    def update(self, pre_peak: float, post_peak: float, block_rms: float,
               limited: bool, frames: int, notes: int = 0) -> None:
        with self._lock:
            self.frames += frames
            self.sum_sq += block_rms * block_rms * frames
            self.peak_pre = max(self.peak_pre, pre_peak)
            self.peak_post = max(self.peak_post, post_peak)
            self.limited += int(limited)
            self.notes += notes

    def read_and_reset(self) -> MeterReading:
        with self._lock:
            rms_lin = (self.sum_sq / self.frames) ** 0.5 if self.frames else 0.0
            reading = MeterReading(
                peak_pre_db=lin_to_dbfs(self.peak_pre),
                peak_post_db=lin_to_dbfs(self.peak_post),
                rms_db=lin_to_dbfs(rms_lin),
                limited_blocks=self.limited,
                frames=self.frames,
                notes_started=self.notes,
            )
            self._clear()
            return reading
