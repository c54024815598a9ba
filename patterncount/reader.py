"""
Byte Source Reader — mmap-backed sequential reads over a file or byte range.

APPROACH
────────
1. Memory-mapped I/O (mmap) where the file allows it — the OS handles paging.
2. Fallback to seek + read() when mmap fails (pipes, some devices, empty files).
3. Optional [start, end) window so parallel workers read only their range.

The engine only needs one operation from a source: read(n) → up to n bytes,
b"" at end of data. StreamReader provides that; so do io.BytesIO and any
file opened in binary mode.
"""

import io
import os
import mmap
import logging
from typing import Optional, BinaryIO

from .errors import SourceReadError

logger = logging.getLogger(__name__)


def stream_size(fd: BinaryIO) -> Optional[int]:
    """
    Size of a seekable stream in bytes, leaving the position at the start.

    Returns None for pipes / stdin and other non-seekable streams.
    """
    try:
        if not fd.seekable():
            return None
        size = fd.seek(0, os.SEEK_END)
        fd.seek(0)
        return size
    except (OSError, ValueError):
        return None


class StreamReader:
    """
    Sequential reader with mmap support and an optional byte window.

    Usage:
        with open(path, "rb") as f:
            reader = StreamReader(f)
            while True:
                data = reader.read(65536)
                if not data:
                    break
                ...
            reader.close()

    Underlying OSErrors are re-raised as SourceReadError.
    """

    def __init__(
        self,
        fd: BinaryIO,
        total_size: Optional[int] = None,
        start: int = 0,
        end: int = 0,
        use_mmap: bool = True,
    ):
        self._fd = fd
        self._size = total_size if total_size is not None else stream_size(fd)
        self._mmap: Optional[mmap.mmap] = None
        self._using_mmap = False

        if self._size is None:
            # Non-seekable: plain sequential reads, no window support
            if start or end:
                raise ValueError("Byte ranges need a seekable source")
            self._start = 0
            self._end = None
        else:
            if end <= 0:
                end = self._size
            self._start = max(0, start)
            self._end = min(end, self._size)
        self._pos = self._start
        self._bytes_read = 0

        if use_mmap and self._size:
            self._try_mmap()
        elif self._size is not None:
            self._seek(self._start)

    def _try_mmap(self):
        """Attempt to memory-map the file."""
        try:
            self._mmap = mmap.mmap(
                self._fd.fileno(),
                0,  # Map entire file
                access=mmap.ACCESS_READ,
            )
            self._using_mmap = True
            logger.info(
                "mmap enabled: %d bytes (%.1f MB)",
                self._size, self._size / (1024 ** 2),
            )
        except (OSError, ValueError, OverflowError, io.UnsupportedOperation) as e:
            # BytesIO has no fileno(); some devices refuse mmap
            logger.info("mmap unavailable (%s), using buffered reads", e)
            self._mmap = None
            self._using_mmap = False
            self._seek(self._start)

    def _seek(self, offset: int):
        try:
            self._fd.seek(offset)
        except OSError as e:
            raise SourceReadError(f"Cannot seek to offset {offset}: {e}") from e

    @property
    def is_mmap(self) -> bool:
        return self._using_mmap

    @property
    def size(self) -> Optional[int]:
        """Size of the underlying stream, or None when unknown."""
        return self._size

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    def read(self, size: int) -> bytes:
        """Read up to `size` bytes from the current position (b"" at end)."""
        if size <= 0:
            return b""
        if self._end is not None:
            size = min(size, self._end - self._pos)
            if size <= 0:
                return b""

        if self._using_mmap and self._mmap is not None:
            try:
                data = self._mmap[self._pos:self._pos + size]
            except (OSError, ValueError) as e:
                raise SourceReadError(f"mmap read failed at offset {self._pos}: {e}") from e
        else:
            try:
                data = self._fd.read(size)
            except OSError as e:
                raise SourceReadError(f"Read failed at offset {self._pos}: {e}") from e
            if data is None:
                # Non-blocking stream with nothing available
                raise SourceReadError(f"Source returned no data at offset {self._pos}")

        self._pos += len(data)
        self._bytes_read += len(data)
        return data

    def close(self):
        """Release mmap resources. The file object stays open (caller owns it)."""
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
            self._using_mmap = False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
