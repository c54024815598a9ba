"""
Carryover Buffer Manager — assembles the next chunk the scanner will examine.

Each chunk is:

    ┌──────────────────────┬──────────────────────────────────────┐
    │ carryover (< L bytes) │ fresh bytes read from the source     │
    └──────────────────────┴──────────────────────────────────────┘
    0                carryover_length                      valid_length ≤ capacity

The carryover is the tail of the previous chunk that may still be the start
of a match. One buffer is allocated on the first merge and reused after that.
No matching happens here.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import SourceReadError

logger = logging.getLogger(__name__)


@dataclass
class Chunk:
    """Fixed-capacity byte buffer plus the number of bytes currently valid."""
    buffer: bytearray
    valid_length: int = 0

    @property
    def capacity(self) -> int:
        return len(self.buffer)

    @property
    def data(self) -> memoryview:
        """Read-only view of the valid bytes."""
        return memoryview(self.buffer)[:self.valid_length].toreadonly()

    def tail(self, length: int) -> bytes:
        return bytes(self.buffer[self.valid_length - length:self.valid_length])


def _read_fully(source, size: int) -> bytes:
    """
    Read until `size` bytes arrive or the source reports end of data.

    Pipes and sockets may hand back fewer bytes than asked for while more
    data is still coming; only an empty read means the source is exhausted.
    A non-blocking source with nothing ready returns None, which is an error
    rather than end of data.
    """
    data = source.read(size)
    if data is None:
        raise SourceReadError("Source returned no data (non-blocking read)")
    if len(data) >= size or not data:
        return data
    parts = [data]
    got = len(data)
    while got < size:
        more = source.read(size - got)
        if more is None:
            raise SourceReadError(
                f"Source returned no data (non-blocking read) after {got} bytes"
            )
        if not more:
            break
        parts.append(more)
        got += len(more)
    return b"".join(parts)


def merge(
    previous: Optional[Chunk],
    carryover_length: int,
    source,
    chunk_capacity: int,
) -> tuple[Chunk, bool]:
    """
    Move the carryover to the front of the buffer and refill it from `source`.

    Args:
        previous:         Chunk from the last iteration (None on the first).
        carryover_length: Trailing bytes of `previous` to keep.
        source:           Object with read(n) -> bytes.
        chunk_capacity:   Buffer size in bytes.

    Returns:
        (chunk, is_final_read) — is_final_read is True when the source gave
        fewer bytes than requested, i.e. it is exhausted.
    """
    if carryover_length < 0 or carryover_length >= chunk_capacity:
        raise ValueError(
            f"carryover_length {carryover_length} outside [0, {chunk_capacity})"
        )

    if previous is None:
        if carryover_length:
            raise ValueError("carryover requested without a previous chunk")
        chunk = Chunk(bytearray(chunk_capacity))
    else:
        if previous.capacity != chunk_capacity:
            raise ValueError(
                f"chunk capacity changed from {previous.capacity} to {chunk_capacity}"
            )
        if carryover_length > previous.valid_length:
            raise ValueError(
                f"carryover_length {carryover_length} exceeds previous "
                f"valid length {previous.valid_length}"
            )
        chunk = previous
        if carryover_length:
            start = chunk.valid_length - carryover_length
            chunk.buffer[:carryover_length] = chunk.buffer[start:chunk.valid_length]

    requested = chunk_capacity - carryover_length
    data = _read_fully(source, requested)
    got = len(data)
    if got > requested:
        raise SourceReadError(f"Source returned {got} bytes, more than the {requested} requested")
    chunk.buffer[carryover_length:carryover_length + got] = data
    chunk.valid_length = carryover_length + got

    is_final = got < requested
    logger.debug(
        "merge: carryover=%d read=%d/%d valid=%d final=%s",
        carryover_length, got, requested, chunk.valid_length, is_final,
    )
    return chunk, is_final
