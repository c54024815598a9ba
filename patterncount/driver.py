"""
Match Driver — read → merge → scan → accumulate until the source runs dry.

The only state carried from one chunk to the next is the carryover length
returned by the scanner; it is threaded explicitly through each merge call.
Whatever carryover is left when the source is exhausted is an incomplete
match at the true end of the stream and is dropped.
"""

import sys
import time
import logging
from dataclasses import dataclass
from typing import Optional, Callable

from .carryover import merge
from .config import CountConfig, DEFAULT_STRATEGY, validate_setup, validate_config
from .pattern import Pattern
from .reader import StreamReader, stream_size
from .report import human_size
from .scanner import make_scanner

logger = logging.getLogger(__name__)


@dataclass
class CountProgress:
    total_bytes: int = 0            # 0 = unknown (stdin / pipe)
    bytes_read: int = 0
    chunks_scanned: int = 0
    matches: int = 0
    elapsed_time: float = 0.0
    is_running: bool = False
    is_cancelled: bool = False
    status_message: str = "Ready"

    @property
    def progress_percent(self) -> float:
        if self.total_bytes == 0:
            return 0.0
        return min(100.0, (self.bytes_read / self.total_bytes) * 100)

    @property
    def speed_mbps(self) -> float:
        if self.elapsed_time <= 0:
            return 0.0
        return (self.bytes_read / (1024 * 1024)) / self.elapsed_time


@dataclass
class CountResult:
    """Outcome of counting one file or stream."""
    path: str
    size: int
    matches: int
    pattern: bytes = b""
    chunks: int = 0
    elapsed: float = 0.0
    strategy: str = DEFAULT_STRATEGY
    chunk_size: int = 0
    workers: int = 1
    using_mmap: bool = False
    was_cancelled: bool = False

    @property
    def size_human(self) -> str:
        return human_size(self.size)

    @property
    def summary(self) -> dict:
        return {
            "path": self.path,
            "size": self.size,
            "matches": self.matches,
            "pattern_hex": self.pattern.hex(),
            "pattern_length": len(self.pattern),
            "strategy": self.strategy,
            "chunk_size": self.chunk_size,
            "chunks": self.chunks,
            "workers": self.workers,
            "using_mmap": self.using_mmap,
            "elapsed_seconds": round(self.elapsed, 3),
            "was_cancelled": self.was_cancelled,
        }


def run(source, pattern, chunk_capacity: int, strategy: str = DEFAULT_STRATEGY) -> int:
    """
    Count every (overlapping) occurrence of `pattern` in `source`.

    Args:
        source:         Object with read(n) -> bytes; b"" means end of data.
        pattern:        Pattern or bytes.
        chunk_capacity: Chunk buffer size; must exceed len(pattern).
        strategy:       Scanner strategy name.

    Raises:
        ConfigurationError: before any read, for an invalid setup.
        SourceReadError / OSError: from the source, unmodified.
    """
    config = CountConfig(chunk_size=chunk_capacity, strategy=strategy)
    return MatchDriver(pattern, config).count(source)


class MatchDriver:
    """
    Sequential counting loop with progress reporting and cancellation.

    One driver per search; the only cross-chunk state lives in the local
    variables of count().
    """

    NOTIFY_INTERVAL = 0.3   # seconds between progress callbacks

    def __init__(self, pattern, config: Optional[CountConfig] = None):
        self.config = config or CountConfig()
        if not isinstance(pattern, Pattern):
            pattern = Pattern(pattern)
        validate_setup(pattern, self.config.chunk_size, self.config.strategy)
        self.pattern = bytes(pattern)
        self.scanner = make_scanner(self.pattern, self.config.strategy)
        self.progress = CountProgress()
        self._on_progress: Optional[Callable] = None

    def set_progress_callback(self, cb):
        self._on_progress = cb

    def cancel(self):
        """Stop after the chunk currently being scanned."""
        self.progress.is_cancelled = True

    def _notify_progress(self):
        if self._on_progress:
            self._on_progress(self.progress)

    def count(self, source, total_size: int = 0) -> int:
        capacity = self.config.chunk_size
        scanner = self.scanner
        progress = self.progress
        progress.total_bytes = total_size
        progress.bytes_read = 0
        progress.chunks_scanned = 0
        progress.matches = 0
        progress.is_running = True
        progress.is_cancelled = False
        progress.status_message = "Counting..."

        start_time = time.time()
        last_notify = 0.0
        chunk = None
        carryover = 0
        total = 0

        try:
            while not progress.is_cancelled:
                chunk, is_final = merge(chunk, carryover, source, capacity)
                result = scanner.scan(chunk.buffer, chunk.valid_length)
                total += result.match_count
                progress.bytes_read += chunk.valid_length - carryover
                carryover = result.carryover_length

                progress.chunks_scanned += 1
                progress.matches = total
                now = time.time()
                progress.elapsed_time = now - start_time
                if now - last_notify >= self.NOTIFY_INTERVAL:
                    last_notify = now
                    progress.status_message = (
                        f"Counting... {human_size(progress.bytes_read)} read, "
                        f"{total} matches"
                    )
                    self._notify_progress()

                if is_final:
                    if carryover:
                        logger.debug(
                            "Dropping %d carryover bytes at end of stream: %r",
                            carryover, chunk.tail(carryover),
                        )
                    break
        finally:
            progress.is_running = False
            progress.elapsed_time = time.time() - start_time

        if progress.is_cancelled:
            progress.status_message = (
                f"Cancelled after {human_size(progress.bytes_read)}: {total} matches so far"
            )
        else:
            progress.status_message = f"Done: {total} matches"
        self._notify_progress()
        logger.debug(
            "Counted %d matches in %d chunks (%d bytes)",
            total, progress.chunks_scanned, progress.bytes_read,
        )
        return total


def count_path(
    path: str,
    pattern,
    config: Optional[CountConfig] = None,
    on_progress: Optional[Callable] = None,
) -> CountResult:
    """
    Count matches in a file ("-" = stdin) and report its size.

    Large regular files are handed to the parallel engine when
    config.workers allows it; everything else runs sequentially.
    """
    config = config or CountConfig()
    if not isinstance(pattern, Pattern):
        pattern = Pattern(pattern)
    validate_config(pattern, config)

    if path == "-":
        return _count_stream(sys.stdin.buffer, "-", pattern, config, on_progress)

    with open(path, "rb") as fd:
        size = stream_size(fd)
        if config.workers != 1 and size:
            from .parallel import count_parallel

            result = count_parallel(path, pattern, config, size, on_progress)
            if result is not None:
                return result
        return _count_stream(fd, path, pattern, config, on_progress, size)


def _count_stream(fd, name, pattern, config, on_progress, size=None) -> CountResult:
    driver = MatchDriver(pattern, config)
    driver.set_progress_callback(on_progress)
    with StreamReader(fd, total_size=size, use_mmap=config.use_mmap) as reader:
        matches = driver.count(reader, total_size=size or 0)
        using_mmap = reader.is_mmap
        bytes_read = reader.bytes_read

    p = driver.progress
    logger.info(
        "%s: %d matches of %s in %s (%.1f MB/s)",
        name, matches, pattern.display, human_size(bytes_read), p.speed_mbps,
    )
    return CountResult(
        path=name,
        size=size if size is not None else bytes_read,
        matches=matches,
        pattern=bytes(pattern),
        chunks=p.chunks_scanned,
        elapsed=p.elapsed_time,
        strategy=config.strategy,
        chunk_size=config.chunk_size,
        workers=1,
        using_mmap=using_mmap,
        was_cancelled=p.is_cancelled,
    )
