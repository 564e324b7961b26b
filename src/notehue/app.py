from __future__ import annotations

import argparse
import logging

from .instruments import INSTRUMENTS, VISUALIZERS
from .mapping import DEFAULT_STRATEGY, STRATEGIES, ColorMapper, note_name
from .midi import MidiInput

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="notehue: MIDI notes to background colors.")

    parser.add_argument("--list-ports", action="store_true", help="List MIDI input ports and exit.")
    parser.add_argument("--port", type=str, default=None, help="Substring to match a MIDI input port.")
    parser.add_argument("--all-ports", action="store_true", help="Open all MIDI input ports.")
    parser.add_argument("--generate", action="store_true", help="Enable internal test MIDI generator.")
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default=None,
        help="Octave adjustment applied to the base note color.",
    )
    parser.add_argument(
        "--instrument",
        choices=[o.name for o in INSTRUMENTS],
        default=None,
        help="Initial instrument.",
    )
    parser.add_argument("--visualizer", choices=list(VISUALIZERS), default=None, help="Initial visualizer.")
    parser.add_argument("--samples-dir", type=str, default=None, help="Directory holding instrument sample folders.")
    parser.add_argument("--mute", action="store_true", help="Disable audio playback.")
    parser.add_argument(
        "--velocity-sensitive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Scale visualizer levels by note velocity.",
    )
    parser.add_argument(
        "--reset-on-note-off",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Return to the idle background when a note is released (default on).",
    )
    parser.add_argument(
        "--print-colors",
        action="store_true",
        help="Print the mapped color of every MIDI note and exit.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging verbosity.",
    )
    return parser


def print_colors(strategy: str) -> None:
    mapper = ColorMapper(strategy=strategy)
    for note, color in mapper.palette():
        print(f"{note:3d} {note_name(note):<4} {color}")


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.list_ports:
        for name in MidiInput.list_ports():
            print(name)
        return

    if args.print_colors:
        print_colors(args.strategy or DEFAULT_STRATEGY)
        return

    from .live import run_live

    run_live(args)


if __name__ == "__main__":
    main()
