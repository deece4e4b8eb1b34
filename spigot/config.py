import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from spigot.digits.source import DigitSource, DualDigitSource
from spigot.digits.spigots import MAX_BASE, MIN_BASE, Constant, check_base, format_in_base
from spigot.errors import ConfigurationError
from spigot.instruments.catalog import CATALOG, DEFAULT_INSTRUMENT, Instrument, lookup
from spigot.sequencing.durations import DurationTable
from spigot.sequencing.mapper import EventMapper
from spigot.sequencing.scales import SCALES, PitchMap, Scale, note_name

log = logging.getLogger(__name__)

DEFAULT_TEMPO = 120.0
TEMPO_RANGE = (20.0, 300.0)
DEFAULT_BASE = 10
DEFAULT_ROOT = 60
DEFAULT_VELOCITY = 100
MAX_ATTEMPTS = 3


@dataclass(frozen=True)
class Configuration:
    """
    Everything a session needs, fixed at startup.

    `constant` drives durations. With `pitch_constant` set, a second digit
    stream of that constant drives pitches; otherwise one digit drives both.
    """
    constant: Constant
    base: int
    scale: Scale
    instrument: Instrument
    tempo: float
    quick_mode: bool = False
    pitch_constant: Optional[Constant] = None
    root: int = DEFAULT_ROOT
    durations: DurationTable = field(default_factory=DurationTable.musical)
    velocity: int = DEFAULT_VELOCITY

    def __post_init__(self):
        def set_(name, value):
            object.__setattr__(self, name, value)

        set_("constant", Constant.parse(self.constant))
        if self.pitch_constant is not None:
            set_("pitch_constant", Constant.parse(self.pitch_constant))
        set_("base", check_base(self.base))
        if not isinstance(self.scale, Scale):
            set_("scale", Scale.named(self.scale))
        set_("instrument", lookup(self.instrument))
        set_("tempo", _check_tempo(self.tempo))
        if not isinstance(self.durations, DurationTable):
            raise ConfigurationError(f"durations must be a DurationTable, got {self.durations!r}")
        if not 0 <= int(self.root) <= 127:
            raise ConfigurationError(f"root note must be 0–127, got {self.root}")
        if not 1 <= int(self.velocity) <= 127:
            raise ConfigurationError(f"velocity must be 1–127, got {self.velocity}")

    @classmethod
    def quick(cls, **overrides) -> "Configuration":
        """π drives durations, e drives pitches; base 10, C major, piano, 120 BPM."""
        values = dict(constant=Constant.PI, pitch_constant=Constant.E, base=DEFAULT_BASE,
                      scale=Scale.major(), instrument=DEFAULT_INSTRUMENT, tempo=DEFAULT_TEMPO,
                      quick_mode=True)
        values.update(overrides)
        return cls(**values)

    @property
    def dual(self) -> bool:
        return self.pitch_constant is not None

    def digit_source(self):
        if self.pitch_constant is None:
            return DigitSource(self.constant, self.base)
        return DualDigitSource.of(self.constant, self.pitch_constant, self.base)

    def pitch_map(self) -> PitchMap:
        return PitchMap(root=self.root, scale=self.scale)

    def event_mapper(self) -> EventMapper:
        return EventMapper(self.pitch_map(), self.durations, self.digit_source())

    def describe(self) -> str:
        streams = self.constant.display
        if self.pitch_constant is not None:
            streams = f"{self.constant.display} durations / {self.pitch_constant.display} pitches"
        return (f"{streams}, base {self.base}, {note_name(self.root)} {self.scale.name}, "
                f"{self.instrument}, {self.tempo:g} BPM, {self.durations.name} durations")


def _check_tempo(value) -> float:
    try:
        tempo = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"tempo must be a number, got {value!r}") from None
    lo, hi = TEMPO_RANGE
    if not lo <= tempo <= hi:
        raise ConfigurationError(f"tempo must be {lo:g}–{hi:g} BPM, got {value}")
    return tempo


def _optional_constant(text) -> Optional[Constant]:
    if str(text).strip().lower() in ("", "none", "same", "-"):
        return None
    return Constant.parse(text)


def ask(prompt: str, parse: Callable[[str], object], default,
        input_fn: Callable[[str], str] = input,
        output_fn: Callable[[str], None] = print):
    """
    Prompt until `parse` accepts the answer. Blank keeps `default`.
    Gives up with ConfigurationError after MAX_ATTEMPTS bad answers or on EOF.
    """
    last = None
    for _ in range(MAX_ATTEMPTS):
        try:
            answer = input_fn(prompt)
        except EOFError:
            raise ConfigurationError("input closed before configuration was complete") from None
        if not answer.strip():
            return default
        try:
            return parse(answer.strip())
        except ConfigurationError as exc:
            last = exc
            output_fn(f"  {exc}")
    raise ConfigurationError(f"gave up after {MAX_ATTEMPTS} invalid answers: {last}")


def _menu(output_fn, title: str, lines) -> None:
    output_fn(title)
    for i, line in enumerate(lines, 1):
        output_fn(f"  {i:>2}. {line}")


def prompt_configuration(input_fn: Callable[[str], str] = input,
                         output_fn: Callable[[str], None] = print) -> Configuration:
    """
    Interactive setup: constant, base, scale, instrument, tempo, in that
    order, then an optional second constant for the pitch stream.
    """
    _menu(output_fn, "Constants:", [f"{c.display:<13} {c.approx}" for c in Constant])
    constant = ask("Constant [π]: ", Constant.parse, Constant.PI, input_fn, output_fn)
    base = ask(f"Base {MIN_BASE}–{MAX_BASE} [{DEFAULT_BASE}]: ", check_base, DEFAULT_BASE,
               input_fn, output_fn)
    output_fn(f"  {constant.display} in base {base}: {format_in_base(constant, base, 24)}…")

    _menu(output_fn, "Scales:", list(SCALES))
    scale = ask("Scale [major]: ", Scale.named, Scale.major(), input_fn, output_fn)

    output_fn("Instruments (name, or any GM program 0–127):")
    for key, inst in CATALOG.items():
        output_fn(f"  {key:<12} {inst}")
    instrument = ask(f"Instrument [{DEFAULT_INSTRUMENT}]: ", lookup, lookup(DEFAULT_INSTRUMENT),
                     input_fn, output_fn)

    tempo = ask(f"Tempo BPM [{DEFAULT_TEMPO:g}]: ", _check_tempo, DEFAULT_TEMPO, input_fn, output_fn)
    pitch_constant = ask("Pitch constant (blank = same stream): ", _optional_constant, None,
                         input_fn, output_fn)

    return Configuration(constant=constant, base=base, scale=scale, instrument=instrument,
                         tempo=tempo, quick_mode=False, pitch_constant=pitch_constant)


def load(args=None, input_fn: Callable[[str], str] = input,
         output_fn: Callable[[str], None] = print) -> Configuration:
    if args is not None and getattr(args, "quick", False):
        config = Configuration.quick()
    else:
        config = prompt_configuration(input_fn, output_fn)
    table = getattr(args, "durations", None)
    if table:
        config = replace(config, durations=DurationTable.named(table, config.base))
    log.info("[Config] %s", config.describe())
    return config
