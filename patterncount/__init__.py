# patterncount — streaming byte-pattern counter.
# Counts every occurrence (overlaps included) of a fixed byte pattern in a
# stream too large for memory, one fixed-size chunk at a time.
#
# Architecture (bottom → top):
#   errors     — ConfigurationError / SourceReadError
#   config     — Limits, defaults, CountConfig, up-front validation
#   pattern    — Immutable search pattern
#   reader     — mmap / buffered byte source over a file or byte range
#   carryover  — Merges the previous chunk's tail with fresh bytes
#   scanner    — Single-pass matcher; returns matches + carryover length
#   driver     — read → merge → scan → accumulate loop, progress, cancel
#   parallel   — Multiprocessing over overlapping file windows
#   report     — "Size of file is N" / "Number of matches = M" + JSON summary

from .errors import PatternCountError, ConfigurationError, SourceReadError
from .config import CountConfig, MAX_PATTERN_LEN, DEFAULT_CHUNK_SIZE
from .pattern import Pattern
from .carryover import Chunk, merge
from .scanner import ScanResult, scan, make_scanner
from .driver import run, count_path, MatchDriver, CountResult

__version__ = "1.0.0"
