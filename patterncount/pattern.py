"""
Search pattern — the immutable byte sequence the engine counts.
"""

import binascii
from dataclasses import dataclass

from .config import MAX_PATTERN_LEN
from .errors import ConfigurationError


@dataclass(frozen=True)
class Pattern:
    """A validated, read-only search pattern."""
    data: bytes

    def __post_init__(self):
        if not isinstance(self.data, (bytes, bytearray, memoryview)):
            raise ConfigurationError(
                f"Pattern must be bytes, got {type(self.data).__name__}"
            )
        # Freeze bytearray / memoryview input into bytes
        object.__setattr__(self, "data", bytes(self.data))
        if not self.data:
            raise ConfigurationError("Search pattern must not be empty")
        if len(self.data) > MAX_PATTERN_LEN:
            raise ConfigurationError(
                f"Search pattern is {len(self.data)} bytes; "
                f"the maximum is {MAX_PATTERN_LEN}"
            )

    @classmethod
    def from_text(cls, text: str, encoding: str = "utf-8") -> "Pattern":
        try:
            return cls(text.encode(encoding))
        except (LookupError, UnicodeEncodeError) as e:
            raise ConfigurationError(f"Cannot encode pattern as {encoding}: {e}") from e

    @classmethod
    def from_hex(cls, text: str) -> "Pattern":
        """Build from hex digits, e.g. "FFD8FF" or "ff d8 ff"."""
        cleaned = "".join(text.split())
        if cleaned[:2].lower() == "0x":
            cleaned = cleaned[2:]
        try:
            return cls(binascii.unhexlify(cleaned))
        except (binascii.Error, ValueError) as e:
            raise ConfigurationError(f"Invalid hex pattern {text!r}: {e}") from e

    def __len__(self) -> int:
        return len(self.data)

    def __bytes__(self) -> bytes:
        return self.data

    @property
    def display(self) -> str:
        """Printable form for logs: text if ASCII-printable, hex otherwise."""
        if all(32 <= b <= 126 for b in self.data):
            return repr(self.data.decode("ascii"))
        return self.data.hex(" ").upper()
