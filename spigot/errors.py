class SpigotError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(SpigotError):
    """Invalid or incomplete configuration input (bad base, empty scale, unknown name)."""


class TransportError(SpigotError):
    """Playback could not continue; the transport has stopped."""


class TransportStateError(TransportError):
    """Illegal state transition, e.g. starting a transport twice."""


class SinkError(SpigotError):
    pass


class SinkBusy(SinkError):
    """Transient: the sink cannot take more right now, try again next tick."""


class SinkDisconnected(SinkError):
    """Fatal: the sink is gone (device closed, port lost, window destroyed)."""
