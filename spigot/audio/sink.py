from spigot.errors import SinkDisconnected
from spigot.routing.bus import EventBus
from spigot.routing.sinks import PlaybackCommand


class SynthSink:
    """
    Audio sink in front of the built-in synth. Only touches the EventBus,
    so sends never wait on the audio thread. `alive` reports whether the
    engine behind the bus is still playing.
    """

    def __init__(self, bus: EventBus, alive=lambda: True):
        self.bus = bus
        self._alive = alive

    def send(self, cmd: PlaybackCommand) -> None:
        if not self._alive():
            raise SinkDisconnected("audio engine is not running")
        self.bus.post(cmd)
