"""
Exceptions raised by the pattern counting engine.

Two kinds of failure exist:
  • ConfigurationError — bad pattern / chunk / strategy, raised before scanning.
  • SourceReadError    — the byte source failed for a reason other than EOF.

The scanner itself never raises once its inputs are validated.
"""


class PatternCountError(Exception):
    """Base class for all patterncount errors."""


class ConfigurationError(PatternCountError, ValueError):
    """Invalid setup: empty or oversized pattern, chunk too small, etc."""


class SourceReadError(PatternCountError, OSError):
    """The byte source could not deliver the requested data."""
