import queue
from typing import List

from spigot.errors import SinkBusy
from spigot.routing.sinks import PlaybackCommand


class EventBus:
    """
    Bounded hand-off from the transport thread to the audio callback.
    post() never blocks: a full queue is reported as SinkBusy so the
    transport retries on its next tick.
    """

    def __init__(self, maxsize=1024) -> None:
        self.q: "queue.Queue[PlaybackCommand]" = queue.Queue(maxsize=maxsize)

    def post(self, cmd: PlaybackCommand) -> None:
        try:
            self.q.put_nowait(cmd)
        except queue.Full:
            raise SinkBusy(f"event bus full ({self.q.maxsize})") from None

    def drain(self, max_events=128) -> List[PlaybackCommand]:
        evs = []
        try:
            while len(evs) < max_events:
                evs.append(self.q.get_nowait())
        except queue.Empty:
            pass
        return evs

    def __len__(self) -> int:
        return self.q.qsize()
