import logging
import threading, time
from typing import Callable, Optional

log = logging.getLogger(__name__)

# a loop that falls this many periods behind re-anchors instead of bursting
MAX_LAG_TICKS = 8

class TickTimer:
    """
    Calls `tick_fn` every `interval` seconds on its own thread.

    Deadlines are absolute (next_t += interval) so jitter does not
    accumulate. The loop ends when stop() is called or tick_fn returns False.
    """

    def __init__(self, interval: float = 0.005, name: str = "TickTimer"):
        if interval <= 0:
            raise ValueError("tick interval must be positive")
        self.interval = float(interval)
        self.name = name
        self._halt = threading.Event()
        self._th: Optional[threading.Thread] = None
        self.late_ticks = 0

    @property
    def running(self) -> bool:
        return self._th is not None and self._th.is_alive()

    def start(self, tick_fn: Callable[[], Optional[bool]]) -> None:
        if self._th is not None:
            raise RuntimeError(f"{self.name} already started")
        self._halt.clear()
        spt = self.interval

        def run():
            next_t = time.perf_counter()
            while not self._halt.is_set():
                if tick_fn() is False:
                    break
                next_t += spt
                now = time.perf_counter()
                sleep = next_t - now
                if sleep > 0:
                    # wakes early on stop()
                    self._halt.wait(sleep)
                elif -sleep > MAX_LAG_TICKS * spt:
                    self.late_ticks += 1
                    log.debug("[Clock] %.1f ms behind, re-anchoring", -sleep * 1000.0)
                    next_t = now

        self._th = threading.Thread(target=run, name=self.name, daemon=True)
        self._th.start()

    def stop(self, join: bool = True, timeout: float = 1.0) -> None:
        self._halt.set()
        th = self._th
        if join and th is not None and th is not threading.current_thread():
            th.join(timeout=timeout)
            if th.is_alive():
                log.warning("[Clock] %s still alive after join()", self.name)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._th is not None:
            self._th.join(timeout)
