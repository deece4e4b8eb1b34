import threading
from typing import Optional

from spigot.routing.sinks import FrameUpdate


class FrameBuffer:
    """
    Visual sink for a GUI that redraws at its own rate: only the latest
    FrameUpdate is kept. send() never blocks for longer than a lock swap.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[FrameUpdate] = None
        self._seen = 0

    def send(self, frame: FrameUpdate) -> None:
        with self._lock:
            self._frame = frame
            self._seen += 1

    def latest(self) -> Optional[FrameUpdate]:
        with self._lock:
            return self._frame

    @property
    def received(self) -> int:
        with self._lock:
            return self._seen
