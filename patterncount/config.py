"""
Engine configuration — limits, defaults, and up-front validation.

Everything that can make a search meaningless is checked here, once, before
the first byte is read. Nothing in the scan loop re-validates.
"""

import logging
from dataclasses import dataclass

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Longest pattern accepted. Longer patterns are rejected, never truncated.
MAX_PATTERN_LEN = 1024

# Bytes per chunk (carryover + fresh data).
DEFAULT_CHUNK_SIZE = 64 * 1024

# Chunks smaller than this multiple of the pattern length still work, but
# spend most of each read re-scanning carryover.
RECOMMENDED_CHUNK_FACTOR = 5

# Scanner strategies, in order of preference for the CLI help text.
STRATEGIES = ("first-byte", "prefix", "find")
DEFAULT_STRATEGY = "first-byte"


@dataclass
class CountConfig:
    """Settings for one counting run."""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    strategy: str = DEFAULT_STRATEGY
    use_mmap: bool = True
    workers: int = 1                # 1 = sequential, 0 = auto-detect
    max_workers: int = 8
    min_range_per_worker: int = 16 * 1024 * 1024  # 16 MB minimum per worker


def validate_setup(pattern, chunk_capacity: int, strategy: str = DEFAULT_STRATEGY) -> None:
    """
    Reject configurations that could never produce a correct count.

    Raises:
        ConfigurationError: empty pattern, pattern over MAX_PATTERN_LEN,
            pattern not shorter than the chunk, or unknown strategy.
    """
    length = len(pattern)
    if length == 0:
        raise ConfigurationError("Search pattern must not be empty")
    if length > MAX_PATTERN_LEN:
        raise ConfigurationError(
            f"Search pattern is {length} bytes; the maximum is {MAX_PATTERN_LEN}"
        )
    if chunk_capacity <= 0:
        raise ConfigurationError(f"Chunk size must be positive, got {chunk_capacity}")
    if length >= chunk_capacity:
        raise ConfigurationError(
            f"Chunk size ({chunk_capacity}) must exceed the pattern length ({length})"
        )
    if strategy not in STRATEGIES:
        raise ConfigurationError(
            f"Unknown scan strategy {strategy!r} (expected one of: {', '.join(STRATEGIES)})"
        )

    if chunk_capacity < length * RECOMMENDED_CHUNK_FACTOR:
        logger.warning(
            "Chunk size %d is below the recommended %dx pattern length (%d bytes)",
            chunk_capacity, RECOMMENDED_CHUNK_FACTOR, length,
        )


def validate_config(pattern, config: CountConfig) -> None:
    """validate_setup() plus the parallel settings in CountConfig."""
    validate_setup(pattern, config.chunk_size, config.strategy)
    if config.workers < 0:
        raise ConfigurationError(f"Worker count must not be negative, got {config.workers}")
    if config.max_workers < 1:
        raise ConfigurationError(f"max_workers must be at least 1, got {config.max_workers}")
