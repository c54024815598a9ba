"""
Parallel Counting — multiprocessing over overlapping file windows.

APPROACH
────────
Python threads → the GIL serialises the byte-by-byte scanners.
multiprocessing → one process per window = real parallelism.

  • The file is split into N owned ranges [s, e).
  • Worker k runs the ordinary sequential driver over
    [s, min(e + len(pattern) - 1, size)).
  • A match lying entirely inside that window must start in [s, e), and every
    match starting in [s, e) fits inside it, so the worker totals add up to
    exactly the sequential count. Nothing is deduplicated.
  • Results come back through a multiprocessing Queue. A failed worker fails
    the whole count; no partial total is returned.
"""

import os
import time
import queue
import logging
import dataclasses
import multiprocessing as mp
from dataclasses import dataclass
from typing import Callable, Optional

from .config import CountConfig
from .errors import SourceReadError

logger = logging.getLogger(__name__)

# Seconds to wait on the result queue before checking worker liveness
_POLL_INTERVAL = 0.5


@dataclass
class WorkerResult:
    """Result from a single worker process."""
    worker_id: int
    range_start: int
    range_end: int
    matches: int
    bytes_scanned: int
    elapsed: float
    chunks: int = 0
    using_mmap: bool = False
    error: str = ""


def optimal_worker_count(total_bytes: int, config: CountConfig) -> int:
    """
    Determine the number of worker processes.

    Rules:
      • An explicit config.workers is used as given, capped by max_workers.
      • Auto mode (workers=0) gives each worker at least
        min_range_per_worker bytes and never exceeds the CPU count.
      • At least 1 worker.

    count_parallel still falls back to one worker when the owned ranges
    would be smaller than the chunk size.
    """
    if config.workers > 0:
        return min(config.workers, config.max_workers)

    cpu_count = os.cpu_count() or 2
    max_by_size = max(1, total_bytes // max(1, config.min_range_per_worker))
    return min(max_by_size, cpu_count, config.max_workers)


def split_sequential_for_workers(
    total_size: int,
    num_workers: int,
    overlap: int,
    min_range: int = 1,
) -> list[tuple[int, int]]:
    """
    Split [0, total_size) into scan windows for parallel workers.

    Window k covers its owned range plus `overlap` bytes of the next one
    (overlap = pattern length - 1). Owned ranges are 4 KB aligned when they
    are large enough for alignment to matter.
    """
    if num_workers <= 1 or total_size <= 0:
        return [(0, total_size)]

    range_size = total_size // num_workers
    if range_size >= 64 * 1024:
        range_size = (range_size // 4096) * 4096
    if range_size < max(1, min_range):
        return [(0, total_size)]

    ranges = []
    for i in range(num_workers):
        start = i * range_size
        if start >= total_size:
            break
        if i == num_workers - 1:
            end = total_size
        else:
            end = (i + 1) * range_size + overlap  # Overlap into next range
        ranges.append((start, min(end, total_size)))

    return ranges


def _worker_count(
    worker_id: int,
    path: str,
    range_start: int,
    range_end: int,
    pattern: bytes,
    config: CountConfig,
    result_queue,
):
    """
    Worker process: count matches inside one window and push the result.
    """
    start_time = time.time()
    try:
        from .driver import MatchDriver
        from .reader import StreamReader

        driver = MatchDriver(pattern, config)
        with open(path, "rb") as fd:
            with StreamReader(
                fd, start=range_start, end=range_end, use_mmap=config.use_mmap,
            ) as reader:
                matches = driver.count(reader, total_size=range_end - range_start)
                using_mmap = reader.is_mmap
                bytes_scanned = reader.bytes_read

        result_queue.put(WorkerResult(
            worker_id=worker_id,
            range_start=range_start,
            range_end=range_end,
            matches=matches,
            bytes_scanned=bytes_scanned,
            elapsed=time.time() - start_time,
            chunks=driver.progress.chunks_scanned,
            using_mmap=using_mmap,
        ))

    except Exception as e:
        logger.error("Worker %d failed: %s", worker_id, e, exc_info=True)
        result_queue.put(WorkerResult(
            worker_id=worker_id,
            range_start=range_start, range_end=range_end,
            matches=0, bytes_scanned=0,
            elapsed=time.time() - start_time,
            error=f"{type(e).__name__}: {e}",
        ))


def count_parallel(
    path: str,
    pattern,
    config: CountConfig,
    total_size: int,
    on_progress: Optional[Callable] = None,
):
    """
    Count matches in `path` with several worker processes.

    on_progress receives a CountProgress each time a worker finishes; its
    bytes_read counts the owned ranges completed so far.

    Returns a CountResult, or None when the file is too small to be worth
    splitting (caller falls back to the sequential driver).

    Raises:
        SourceReadError: a worker failed or died without reporting.
    """
    from .driver import CountProgress, CountResult

    pattern_bytes = bytes(pattern)
    num_workers = optimal_worker_count(total_size, config)
    if num_workers <= 1:
        return None

    windows = split_sequential_for_workers(
        total_size, num_workers,
        overlap=len(pattern_bytes) - 1,
        min_range=max(config.chunk_size, len(pattern_bytes)),
    )
    if len(windows) <= 1:
        return None

    logger.info(
        "Parallel count: %d workers over %d bytes", len(windows), total_size,
    )

    worker_config = dataclasses.replace(config, workers=1)
    result_queue = mp.Queue()
    processes = []
    for i, (start, end) in enumerate(windows):
        p = mp.Process(
            target=_worker_count,
            args=(i, path, start, end, pattern_bytes, worker_config, result_queue),
            daemon=True,
        )
        processes.append(p)

    # Owned range of each window, without the overlap into the next one
    owned = [
        (windows[i + 1][0] if i + 1 < len(windows) else total_size) - start
        for i, (start, _) in enumerate(windows)
    ]
    progress = CountProgress(
        total_bytes=total_size, is_running=True,
        status_message=f"Counting with {len(windows)} workers...",
    )

    start_time = time.time()
    for p in processes:
        p.start()

    results: dict[int, WorkerResult] = {}
    try:
        while len(results) < len(processes):
            try:
                result = result_queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if not any(p.is_alive() for p in processes) and result_queue.empty():
                    missing = sorted(set(range(len(processes))) - set(results))
                    raise SourceReadError(
                        f"Worker(s) {missing} exited without reporting a result"
                    ) from None
                continue
            results[result.worker_id] = result
            if result.error:
                raise SourceReadError(
                    f"Worker {result.worker_id} failed on bytes "
                    f"[{result.range_start}, {result.range_end}): {result.error}"
                )
            logger.info(
                "Worker %d complete: %d matches in %.1fs (%d bytes)",
                result.worker_id, result.matches, result.elapsed, result.bytes_scanned,
            )
            progress.bytes_read += owned[result.worker_id]
            progress.chunks_scanned += result.chunks
            progress.matches += result.matches
            progress.elapsed_time = time.time() - start_time
            progress.status_message = (
                f"{len(results)}/{len(processes)} workers done, "
                f"{progress.matches} matches"
            )
            if on_progress:
                on_progress(progress)
    finally:
        progress.is_running = False
        for p in processes:
            if p.is_alive() and len(results) < len(processes):
                p.terminate()
        for p in processes:
            p.join(timeout=5)

    ordered = [results[i] for i in range(len(processes))]
    return CountResult(
        path=path,
        size=total_size,
        matches=sum(r.matches for r in ordered),
        pattern=pattern_bytes,
        chunks=sum(r.chunks for r in ordered),
        elapsed=time.time() - start_time,
        strategy=config.strategy,
        chunk_size=config.chunk_size,
        workers=len(ordered),
        using_mmap=all(r.using_mmap for r in ordered),
    )
