import argparse
import logging
import sys
from typing import Optional, Sequence

from spigot import config as configuration
from spigot.errors import ConfigurationError, SpigotError
from spigot.sequencing.durations import DURATION_TABLES
from spigot.session import GESTURE_MODES, Session

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TRANSPORT = 1
EXIT_CONFIG = 2


def setup_logging(verbosity: int) -> None:
    level = logging.INFO
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity <= 0:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        force=True,
    )
    logging.debug("[DEBUG] Logging initialized with verbosity=%d", verbosity)


def positive_float(value: str) -> float:
    try:
        x = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if not x > 0:
        raise argparse.ArgumentTypeError("must be positive")
    return x


def positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from exc
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return n


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="spigot-music",
        description="Play the digits of π, e and friends as music, with a live visualizer.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--quick", action="store_true",
                   help="Skip the prompts: π durations, e pitches, C major, piano, 120 BPM.")
    p.add_argument("--gesture", choices=GESTURE_MODES, default="off",
                   help="Live modulation source (keys come from the visualizer window).")
    p.add_argument("--gesture-port", default=None, help="MIDI input port for --gesture midi.")
    p.add_argument("--midi-out", nargs="?", const="", default=None, metavar="PORT",
                   help="Also play to a MIDI output port (first software synth if PORT is omitted).")
    p.add_argument("--no-audio", action="store_true", help="Do not open the audio device.")
    p.add_argument("--headless", type=positive_float, default=None, metavar="SECONDS",
                   help="Play for SECONDS without opening the visualizer.")
    p.add_argument("--export", default=None, metavar="PATH",
                   help="Write the first --notes events to a Standard MIDI File and exit.")
    p.add_argument("--notes", type=positive_int, default=64, help="Number of notes for --export.")
    p.add_argument("--durations", choices=DURATION_TABLES, default=None,
                   help="Duration table (default: musical). linear, exponential and fixed span the base.")
    p.add_argument("-v", "--verbose", action="count", default=1, help="Increase verbosity (-v or -vv).")
    return p.parse_args(argv)


def run(args: argparse.Namespace, input_fn=input, output_fn=print) -> int:
    try:
        config = configuration.load(args, input_fn=input_fn, output_fn=output_fn)
        if args.export:
            from spigot.midi.export import export_midi
            export_midi(config, args.export, args.notes)
            return EXIT_OK
        session = Session(config, gesture=args.gesture, audio=not args.no_audio,
                          midi_out=args.midi_out, headless=args.headless,
                          gesture_port=args.gesture_port)
        session.run()
    except ConfigurationError as exc:
        log.error("[Config] %s", exc)
        return EXIT_CONFIG
    except SpigotError as exc:
        log.error("[Transport] %s", exc)
        return EXIT_TRANSPORT
    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)
    sys.exit(run(args))
