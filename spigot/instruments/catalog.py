"""
Instruments a session can be configured with.

Each entry carries the General MIDI program used by the MIDI sink and the
exporter, and an additive recipe (ratio -> Partial) used by the built-in
synth. Recipes only approximate the timbre.
"""
from dataclasses import dataclass
from typing import Callable, Dict

from spigot.errors import ConfigurationError
from spigot.instruments.additive import Partial, PolySynth, make_spectral, partial
from spigot.instruments.midi import MidiInstrumentAdapter


def _piano() -> Dict[float, Partial]:
    # slightly stretched harmonics
    amps = (1.0, 0.6, 0.4, 0.3, 0.2, 0.15, 0.10, 0.08, 0.06, 0.05)
    ratios = (1.00, 2.01, 3.03, 4.06, 5.10, 6.15, 7.20, 8.27, 9.35, 10.45)
    out = {1.00: partial(1.0, 0.002, 0.05, 0.6, 0.6),
           2.01: partial(0.6, 0.002, 0.04, 0.4, 0.5),
           3.03: partial(0.4, 0.002, 0.03, 0.3, 0.4)}
    for r, a in zip(ratios[3:], amps[3:]):
        out[r] = partial(a, 0.002, 0.03, 0.2 if r < 6 else 0.1, 0.4)
    return out


def _bell() -> Dict[float, Partial]:
    return {
        1.00: partial(0.5, 0.005, 0.05, 0.5, 0.4),
        1.30: partial(0.1, 0.005, 0.04, 0.3, 0.3),
        1.60: partial(0.1, 0.005, 0.04, 0.3, 0.3),
        1.90: partial(0.1, 0.005, 0.03, 0.2, 0.25),
        2.20: partial(0.1, 0.005, 0.03, 0.2, 0.25),
    }


def _vibraphone() -> Dict[float, Partial]:
    return {
        1.00: partial(1.0, 0.002, 0.6, 0.3, 0.8),
        4.00: partial(0.25, 0.002, 0.25, 0.0, 0.3),
        10.0: partial(0.05, 0.001, 0.08, 0.0, 0.1),
    }


def _marimba() -> Dict[float, Partial]:
    return {
        1.00: partial(1.0, 0.001, 0.35, 0.0, 0.15),
        3.93: partial(0.3, 0.001, 0.12, 0.0, 0.08),
        9.24: partial(0.08, 0.001, 0.05, 0.0, 0.04),
    }


def _bowed(n: int, tilt: float) -> Dict[float, Partial]:
    return {float(k): partial(1.0 / k ** tilt, 0.08, 0.1, 0.8, 0.25) for k in range(1, n + 1)}


def _flute() -> Dict[float, Partial]:
    return {
        1.0: partial(1.0, 0.06, 0.05, 0.9, 0.15),
        2.0: partial(0.35, 0.06, 0.05, 0.7, 0.15),
        3.0: partial(0.12, 0.06, 0.05, 0.5, 0.12),
    }


def _square() -> Dict[float, Partial]:
    return {float(k): partial(1.0 / k, 0.005, 0.05, 0.8, 0.1) for k in range(1, 16, 2)}


def _pad() -> Dict[float, Partial]:
    out = {}
    for k in range(1, 7):
        out[float(k)] = partial(1.0 / k, 0.4, 0.3, 0.8, 1.0)
        out[k * 1.004] = partial(0.5 / k, 0.4, 0.3, 0.8, 1.0)
    return out


def _steel_drum() -> Dict[float, Partial]:
    # https://ccrma.stanford.edu/~sdill/220A-project/drums.html#add
    out = {1.00: partial(1.0, 0.05, 0.02, 0.01, 0.01)}
    for r in (2.00, 2.60, 2.90, 3.00, 3.20, 4.20, 5.60, 6.60, 8.20):
        out[r] = partial(0.2 if r == 2.0 else 0.1, 0.01, 0.02, 0.01, 0.01)
    return out


@dataclass(frozen=True)
class Instrument:
    key: str
    display: str
    program: int                       # General MIDI, 0-based
    recipe: Callable[[], Dict[float, Partial]] = _piano

    def synth(self, master: float = 0.6, velocity_curve: float = 1.8) -> MidiInstrumentAdapter:
        return MidiInstrumentAdapter(self.frequency_synth(master, velocity_curve))

    def frequency_synth(self, master: float = 0.6, velocity_curve: float = 1.8) -> PolySynth:
        return make_spectral(self.recipe(), master=master, velocity_curve=velocity_curve)

    def __str__(self) -> str:
        return f"{self.display} (GM {self.program})"


CATALOG: Dict[str, Instrument] = {i.key: i for i in (
    Instrument("piano", "Acoustic Grand Piano", 0, _piano),
    Instrument("vibraphone", "Vibraphone", 11, _vibraphone),
    Instrument("marimba", "Marimba", 12, _marimba),
    Instrument("bells", "Tubular Bells", 14, _bell),
    Instrument("cello", "Cello", 42, lambda: _bowed(8, 1.2)),
    Instrument("flute", "Flute", 73, _flute),
    Instrument("square", "Lead 1 (square)", 80, _square),
    Instrument("pad", "Pad 2 (warm)", 89, _pad),
    Instrument("steel-drums", "Steel Drums", 114, _steel_drum),
)}

DEFAULT_INSTRUMENT = "piano"


def lookup(name) -> Instrument:
    """
    Catalog key or display name, or a raw GM program number 0-127. A program
    outside the catalog still plays through the piano recipe on the synth.
    """
    if isinstance(name, Instrument):
        return name
    text = str(name).strip().lower()
    if text.isdigit():
        program = int(text)
        if not 0 <= program <= 127:
            raise ConfigurationError(f"MIDI program must be 0–127, got {program}")
        for inst in CATALOG.values():
            if inst.program == program:
                return inst
        return Instrument(f"program-{program}", f"GM program {program}", program, _piano)
    key = text.replace(" ", "-").replace("_", "-")
    if key in CATALOG:
        return CATALOG[key]
    for inst in CATALOG.values():
        if text == inst.display.lower():
            return inst
    raise ConfigurationError(f"unknown instrument {name!r}; choose one of {', '.join(CATALOG)} "
                             "or a GM program number")
