"""
Pattern Scanner — counts (overlapping) matches in one merged chunk.

CONTRACT
────────
scan(chunk, valid_length) → ScanResult(match_count, carryover_length)

  • match_count      — matches lying entirely inside chunk[0:valid_length].
  • carryover_length — how many trailing bytes could still be the start of a
                       match once more data arrives. Always < len(pattern).

Every position before valid_length - carryover_length is fully resolved, so
feeding the carryover back in front of the next read never double counts and
never misses a match that straddles the chunk edge.

STRATEGIES
──────────
1. first-byte (default)
   • Compare the pattern at cursor i byte by byte.
   • While comparing, remember the first later byte equal to pattern[0];
     on a mismatch resume there instead of at i + 1.
   • Only skips positions that cannot start a match. Patterns with repeated
     internal structure (e.g. "aaab" over "aaaa...") are still quadratic.

2. prefix
   • Full prefix-function (KMP) automaton. Linear time.
   • Carryover = automaton state at the end of the chunk.

3. find
   • bytearray.find() in C for the counting, then a short suffix/prefix
     check for the carryover. Fastest in CPython on ordinary data.
"""

from dataclasses import dataclass

from .config import DEFAULT_STRATEGY
from .errors import ConfigurationError


@dataclass(frozen=True)
class ScanResult:
    """Outcome of scanning one chunk."""
    match_count: int
    carryover_length: int


def _pattern_bytes(pattern) -> bytes:
    # Accept a Pattern or any bytes-like value
    return bytes(pattern)


class PatternScanner:
    """Base class. Subclasses implement scan()."""
    name = ""

    def __init__(self, pattern):
        self.pattern = _pattern_bytes(pattern)
        if not self.pattern:
            raise ConfigurationError("Search pattern must not be empty")

    def scan(self, chunk, valid_length: int) -> ScanResult:
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.pattern!r})"


class FirstByteScanner(PatternScanner):
    """Single forward pass with first-byte skip-ahead."""
    name = "first-byte"

    def scan(self, chunk, valid_length: int) -> ScanResult:
        pat = self.pattern
        pat_len = len(pat)
        first = pat[0]
        matches = 0
        restart = valid_length
        i = 0

        while i < valid_length:
            candidate = 0       # 0 = none seen (a candidate is always > i)
            pos = i
            k = 0
            while k < pat_len and pos < valid_length:
                b = chunk[pos]
                if k and not candidate and b == first:
                    candidate = pos
                if b != pat[k]:
                    break
                pos += 1
                k += 1

            if k == pat_len:
                matches += 1
                # Overlaps: a candidate is never earlier than i + 1
                i += 1
            elif pos < valid_length:
                # Mismatch at pos
                i = candidate if candidate else pos + 1
            else:
                # Ran off the end with pattern[:k] matched at i. Every
                # position before i is resolved; i is the earliest start
                # that may still complete.
                restart = i
                break

        return ScanResult(matches, valid_length - restart)


def prefix_function(pattern: bytes) -> list[int]:
    """fail[k] = length of the longest proper border of pattern[:k + 1]."""
    fail = [0] * len(pattern)
    k = 0
    for q in range(1, len(pattern)):
        while k and pattern[q] != pattern[k]:
            k = fail[k - 1]
        if pattern[q] == pattern[k]:
            k += 1
        fail[q] = k
    return fail


class PrefixScanner(PatternScanner):
    """Knuth–Morris–Pratt matcher; linear in the chunk length."""
    name = "prefix"

    def __init__(self, pattern):
        super().__init__(pattern)
        self._fail = prefix_function(self.pattern)

    def scan(self, chunk, valid_length: int) -> ScanResult:
        pat = self.pattern
        pat_len = len(pat)
        fail = self._fail
        matches = 0
        q = 0

        for pos in range(valid_length):
            b = chunk[pos]
            while q and b != pat[q]:
                q = fail[q - 1]
            if b == pat[q]:
                q += 1
                if q == pat_len:
                    matches += 1
                    q = fail[q - 1]

        # q = longest suffix of the valid bytes that is a proper prefix
        return ScanResult(matches, q)


class FindScanner(PatternScanner):
    """bytes.find()-based counting."""
    name = "find"

    def scan(self, chunk, valid_length: int) -> ScanResult:
        pat = self.pattern
        if not isinstance(chunk, (bytes, bytearray)):
            chunk = bytes(chunk[:valid_length])

        matches = 0
        pos = chunk.find(pat, 0, valid_length)
        while pos != -1:
            matches += 1
            pos = chunk.find(pat, pos + 1, valid_length)

        return ScanResult(matches, _longest_prefix_suffix(chunk, valid_length, pat))


def _longest_prefix_suffix(chunk, valid_length: int, pat: bytes) -> int:
    """Length of the longest suffix of chunk[:valid_length] that is a proper prefix of pat."""
    for start in range(max(0, valid_length - len(pat) + 1), valid_length):
        length = valid_length - start
        if chunk[start:valid_length] == pat[:length]:
            return length
    return 0


SCANNERS = {
    FirstByteScanner.name: FirstByteScanner,
    PrefixScanner.name: PrefixScanner,
    FindScanner.name: FindScanner,
}


def make_scanner(pattern, strategy: str = DEFAULT_STRATEGY) -> PatternScanner:
    """Build the scanner for `strategy` ("first-byte", "prefix" or "find")."""
    try:
        cls = SCANNERS[strategy]
    except KeyError:
        raise ConfigurationError(
            f"Unknown scan strategy {strategy!r} (expected one of: {', '.join(SCANNERS)})"
        ) from None
    return cls(pattern)


def scan(chunk, valid_length: int, pattern) -> ScanResult:
    """Scan one chunk with the reference first-byte strategy."""
    return FirstByteScanner(pattern).scan(chunk, valid_length)
