"""Command-line interface for the UR playground.

WHY: Developers working with Uniform Resources need to poke at payloads
from a terminal: what format is this, what is inside this UR, split this
PSBT into QR fragments, glue these scanned fragments back together. The
CLI wires the library surface behind one command with subcommands.

HOW: argparse with one subparser per operation:
  detect   — print the detected format of the input
  convert  — ConversionOrchestrator.convert() between any two formats
  split    — FountainSequencer fragments (or a JSON manifest)
  join     — feed fragments to a ScanSession and print the assembled UR
  animate  — AnimationScheduler.run() printing one fragment per frame
Input comes from the positional argument, or stdin when it is "-" or
omitted. Results go to stdout; status messages go to stderr.

RULES:
- --verbose sets logging to DEBUG (default: WARNING)
- Conversion and validation errors print "Error: ..." and exit 1
- join exits 1 when the fragments do not complete the UR
- split without --count refuses infinite mode (-1 ratio)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from ur_playground import config
from ur_playground.core.assembler import MismatchDetected, Rejected
from ur_playground.core.detector import FormatTag
from ur_playground.core.errors import ParameterValidationError
from ur_playground.core.orchestrator import ConversionOptions, ConversionOrchestrator
from ur_playground.core.scheduler import AnimationScheduler
from ur_playground.core.sequencer import (
    FountainSequencer,
    GenerationConfig,
    parse_generator_input,
    redundancy_from_ratio,
)
from ur_playground.core.session import ScanSession


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def _read_input(value: Optional[str]) -> str:
    if value is None or value == "-":
        return sys.stdin.read()
    return value


def _generation_config(args: argparse.Namespace) -> GenerationConfig:
    return GenerationConfig(
        max_fragment_len=args.max_len,
        min_fragment_len=args.min_len,
        first_seq_num=args.first_seq,
        redundancy=redundancy_from_ratio(args.ratio),
    )


def _build_sequencer(args: argparse.Namespace) -> FountainSequencer:
    ur = parse_generator_input(_read_input(args.input))
    return FountainSequencer(ur, _generation_config(args))


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_detect(args: argparse.Namespace) -> None:
    print(ConversionOrchestrator().detect(_read_input(args.input)).value)


def _cmd_convert(args: argparse.Namespace) -> None:
    options = ConversionOptions(
        ur_type=args.ur_type,
        input_bytewords_style=args.in_style,
        output_bytewords_style=args.out_style,
        allow_anonymous=not args.strict,
    )
    result = ConversionOrchestrator().convert(_read_input(args.input), args.source, args.target, options)
    if not result.ok:
        _fail(result.error.message)
    if args.metadata:
        _status(json.dumps(result.output.metadata(), indent=2))
    elif result.output.used_fallback:
        _status("Note: decoded as generic CBOR ({})".format(result.output.fallback_reason))
    print(result.output.text)


def _cmd_split(args: argparse.Namespace) -> None:
    try:
        sequencer = _build_sequencer(args)
    except ParameterValidationError as e:
        _fail(str(e))
        return

    if sequencer.is_infinite:
        if args.count is None:
            _fail("Infinite mode (ratio -1) needs --count")
        fragments = [sequencer.next_fragment() for _ in range(args.count)]
    elif args.manifest:
        print(json.dumps(sequencer.manifest(), indent=2))
        return
    else:
        fragments = sequencer.get_all_fragments()
        if args.count is not None:
            fragments = fragments[: args.count]

    _status("{} blocks, {} fragments".format(sequencer.get_original_block_count(), len(fragments)))
    for fragment in fragments:
        print(fragment)


def _cmd_join(args: argparse.Namespace) -> None:
    session = ScanSession()
    for line in _read_input(args.input).splitlines():
        line = line.strip()
        if not line:
            continue
        outcome = session.scan(line)
        if isinstance(outcome, MismatchDetected):
            _fail("Mixed UR types: expected {}, got {}".format(outcome.expected, outcome.got))
        if isinstance(outcome, Rejected) and outcome.reason == "invalid_fragment":
            _fail("Invalid fragment: {}".format(outcome.detail))
        if session.is_complete:
            break

    if not session.is_complete:
        _fail("Incomplete multi-part UR. Progress: {:.1f}%".format(session.progress * 100))
    _status("Assembled after {} fragments ({} accepted)".format(session.scan_count, session.accepted_count))
    print(session.assembler.assembled_ur_text())


def _cmd_animate(args: argparse.Namespace) -> None:
    try:
        sequencer = _build_sequencer(args)
        scheduler = AnimationScheduler(sequencer, fps=args.fps)
    except ParameterValidationError as e:
        _fail(str(e))
        return

    frames = args.frames
    if frames is None and not sequencer.is_infinite:
        frames = sequencer.fragment_count
    try:
        shown = asyncio.run(scheduler.run(lambda fragment: print(fragment, flush=True), max_frames=frames))
    except KeyboardInterrupt:
        scheduler.pause()
        sys.exit(130)
    _status("Showed {} frames at {} fps".format(shown, scheduler.fps))


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_generation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", nargs="?", default=None, help="UR or hex payload (default: stdin).")
    parser.add_argument(
        "--max-len",
        type=int,
        default=config.DEFAULT_MAX_FRAGMENT_LEN,
        help="Maximum fragment length in bytes (default: %(default)s).",
    )
    parser.add_argument(
        "--min-len",
        type=int,
        default=config.DEFAULT_MIN_FRAGMENT_LEN,
        help="Minimum fragment length in bytes (default: %(default)s).",
    )
    parser.add_argument(
        "--first-seq",
        type=int,
        default=config.DEFAULT_FIRST_SEQ_NUM,
        help="First sequence number (default: %(default)s).",
    )
    parser.add_argument(
        "--ratio",
        type=float,
        default=config.DEFAULT_REDUNDANCY_RATIO,
        help="Redundancy ratio; -1 streams indefinitely (default: %(default)s).",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    Separate from main() so tests can inspect the parser without running
    a command.
    """
    parser = argparse.ArgumentParser(
        prog="ur_playground",
        description="Inspect, convert, split and join Uniform Resources (UR).",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect = subparsers.add_parser("detect", help="Print the detected input format.")
    detect.add_argument("input", nargs="?", default=None, help="Text to classify (default: stdin).")
    detect.set_defaults(func=_cmd_detect)

    formats = [tag.value for tag in FormatTag if tag not in (FormatTag.EMPTY, FormatTag.UNKNOWN)]
    convert = subparsers.add_parser("convert", help="Convert between formats.")
    convert.add_argument("input", nargs="?", default=None, help="Text to convert (default: stdin).")
    convert.add_argument(
        "--from",
        dest="source",
        default=FormatTag.AUTO.value,
        choices=formats,
        help="Source format (default: %(default)s).",
    )
    convert.add_argument("--to", dest="target", required=True, choices=formats, help="Target format.")
    convert.add_argument("--ur-type", default=None, help="UR type for payloads that have none.")
    convert.add_argument(
        "--in-style",
        default=config.DEFAULT_BYTEWORDS_STYLE,
        choices=config.BYTEWORDS_STYLES,
        help="Bytewords style of the input (default: %(default)s).",
    )
    convert.add_argument(
        "--out-style",
        default=config.DEFAULT_BYTEWORDS_STYLE,
        choices=config.BYTEWORDS_STYLES,
        help="Bytewords style of the output (default: %(default)s).",
    )
    convert.add_argument(
        "--strict",
        action="store_true",
        help="Fail instead of using '{}' for untyped payloads.".format(config.FALLBACK_UR_TYPE),
    )
    convert.add_argument("--metadata", action="store_true", help="Print conversion metadata to stderr.")
    convert.set_defaults(func=_cmd_convert)

    split = subparsers.add_parser("split", help="Split a payload into fountain fragments.")
    _add_generation_args(split)
    split.add_argument("--count", type=int, default=None, help="Number of fragments to print.")
    split.add_argument("--manifest", action="store_true", help="Print a JSON manifest instead.")
    split.set_defaults(func=_cmd_split)

    join = subparsers.add_parser("join", help="Reassemble fragments (one per line).")
    join.add_argument("input", nargs="?", default=None, help="Fragments text (default: stdin).")
    join.set_defaults(func=_cmd_join)

    animate = subparsers.add_parser("animate", help="Print one fragment per frame.")
    _add_generation_args(animate)
    animate.add_argument(
        "--fps",
        type=float,
        default=config.DEFAULT_FPS,
        help="Frames per second (default: %(default)s).",
    )
    animate.add_argument("--frames", type=int, default=None, help="Stop after this many frames.")
    animate.set_defaults(func=_cmd_animate)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m ur_playground`` and the console script.

    argv=None means use sys.argv; an explicit list is for testing.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
