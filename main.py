#!/usr/bin/env python3
"""
count — count occurrences of a byte pattern in a (large) file.

Usage:
    python main.py <input-filename> <search-string> <output-filename>
    python main.py --hex FFD8FF disk.img matches.txt
    cat big.bin | python main.py - needle out.txt

Prints the file size and the number of (overlapping) matches to stdout and
writes the same two lines to the output file.
"""

APP_VERSION = "1.0.0"

import sys
import logging
import argparse

from patterncount.config import (
    CountConfig,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_STRATEGY,
    MAX_PATTERN_LEN,
    STRATEGIES,
    validate_config,
)
from patterncount.errors import ConfigurationError, SourceReadError
from patterncount.pattern import Pattern

logger = logging.getLogger("count")

USAGE = "Usage is: count <input-filename> <search-string> <output-filename>"


def handle_init_error(msg: str, exc: Exception = None):
    """Print an error plus the usage line and exit with status 1."""
    if exc is not None:
        detail = getattr(exc, "strerror", None) or str(exc)
        print(f"ERROR: {msg}: {detail}")
    else:
        print(f"ERROR: {msg}")
    print(USAGE)
    sys.exit(1)


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        handle_init_error(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="count",
        description="Count occurrences (overlaps included) of a byte pattern in a file.",
    )
    parser.add_argument("input", help='Input file ("-" for stdin)')
    parser.add_argument("search", help=f"Search string (max {MAX_PATTERN_LEN} bytes)")
    parser.add_argument("output", help="Output file for the report")
    parser.add_argument("--hex", action="store_true",
                        help="Search string is hex digits, e.g. FFD8FF")
    parser.add_argument("--encoding", default="utf-8",
                        help="Encoding of the search string (default: utf-8)")
    parser.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE,
                        help=f"Chunk size in bytes (default: {DEFAULT_CHUNK_SIZE})")
    parser.add_argument("--strategy", choices=STRATEGIES, default=DEFAULT_STRATEGY,
                        help=f"Scanner strategy (default: {DEFAULT_STRATEGY})")
    parser.add_argument("--workers", type=int, default=1,
                        help="Worker processes (1 = sequential, 0 = auto)")
    parser.add_argument("--no-mmap", action="store_true",
                        help="Use buffered reads instead of mmap")
    parser.add_argument("--json", action="store_true",
                        help="Also write a JSON summary to <output-filename>.json")
    parser.add_argument("--progress", action="store_true",
                        help="Show a progress bar on stderr")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


def _make_progress_printer():
    ll = 0

    def on_progress(p):
        nonlocal ll
        bw = 30
        if p.total_bytes:
            filled = int(bw * p.progress_percent / 100)
            bar = "█" * filled + "░" * (bw - filled)
            line = f"\r  [{bar}] {p.progress_percent:5.1f}%  {p.speed_mbps:.0f} MB/s  Matches: {p.matches}"
        else:
            line = f"\r  {p.bytes_read:,} bytes  {p.speed_mbps:.0f} MB/s  Matches: {p.matches}"
        pad = max(0, ll - len(line))
        sys.stderr.write(line + " " * pad)
        sys.stderr.flush()
        ll = len(line)

    return on_progress


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    from patterncount.driver import count_path
    from patterncount.report import write_stats, write_json_summary

    try:
        if args.hex:
            pattern = Pattern.from_hex(args.search)
        else:
            pattern = Pattern.from_text(args.search, args.encoding)
    except ConfigurationError as e:
        handle_init_error(str(e))

    config = CountConfig(
        chunk_size=args.chunk_size,
        strategy=args.strategy,
        use_mmap=not args.no_mmap,
        workers=args.workers,
    )
    try:
        validate_config(pattern, config)
    except ConfigurationError as e:
        handle_init_error(str(e))

    if args.input != "-":
        try:
            with open(args.input, "rb"):
                pass
        except OSError as e:
            handle_init_error(f'open_input - "{args.input}"', e)

    try:
        output_file = open(args.output, "w")
    except OSError as e:
        handle_init_error(f'open_output - "{args.output}"', e)

    try:
        result = count_path(
            args.input, pattern, config,
            on_progress=_make_progress_printer() if args.progress else None,
        )
    except ConfigurationError as e:
        output_file.close()
        handle_init_error(str(e))
    except SourceReadError as e:
        output_file.close()
        print(f"ERROR: read_input - \"{args.input}\": {e}")
        sys.exit(1)
    except OSError as e:
        output_file.close()
        handle_init_error(f'open_input - "{args.input}"', e)

    if args.progress:
        sys.stderr.write("\n")

    write_stats(sys.stdout, result.size, result.matches)
    try:
        write_stats(output_file, result.size, result.matches)
    except OSError as e:
        logger.error("write_output: %s", e)
    try:
        output_file.close()
    except OSError as e:
        logger.error("close_output: %s", e)

    if args.json:
        write_json_summary(args.output + ".json", result)

    return 0


if __name__ == "__main__":
    sys.exit(main())
