"""Hex byte-string encoding used in contract metadata JSON."""

from __future__ import annotations

import string

__all__ = ["HexDecodeError", "to_byte_str", "from_byte_str", "from_byte_str_32"]

_HEX_DIGITS = frozenset(string.hexdigits)


class HexDecodeError(ValueError):
    """Raised when a string is not a valid hex byte string."""


def to_byte_str(data: bytes) -> str:
    """Encode bytes as a ``0x``-prefixed lower-case hex string.

    Empty input gives an empty string without the prefix.
    """
    data = bytes(data)
    if not data:
        return ""
    return "0x" + data.hex()


def from_byte_str(text: str) -> bytes:
    """Decode a hex string with an optional ``0x`` prefix.

    An odd number of digits is accepted; the leading digit then forms
    the low nibble of the first byte.
    """
    if not isinstance(text, str):
        raise HexDecodeError(
            f"invalid type: expected hex string with optional 0x prefix, got {type(text).__name__}"
        )
    prefixed = text.startswith("0x")
    digits = text[2:] if prefixed else text
    offset = 2 if prefixed else 0
    for index, character in enumerate(digits):
        if character not in _HEX_DIGITS:
            raise HexDecodeError(
                f"invalid hex character: {character}, at {index + offset}"
            )
    if len(digits) % 2:
        digits = "0" + digits
    return bytes.fromhex(digits)


def from_byte_str_32(text: str) -> bytes:
    """Decode a hex string that must hold exactly 32 bytes."""
    result = from_byte_str(text)
    if len(result) != 32:
        raise HexDecodeError("Expected exactly 32 bytes")
    return result