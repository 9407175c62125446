"""Lexicographically sortable identifiers (ULID, Crockford Base32).

A ULID packs a 48-bit millisecond timestamp and 80 random bits into 26
characters, so ids created later sort after ids created earlier.
"""

from __future__ import annotations

import secrets
import time

ULID_STR_LENGTH = 26

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ALPHABET_SET = frozenset(_ALPHABET)


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Return a new canonical 26-character ULID string."""
    ts_ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ts_ms < 0 or ts_ms >= (1 << 48):
        raise ValueError("timestamp_ms out of ULID 48-bit range")

    number = (ts_ms << 80) | secrets.randbits(80)
    chars: list[str] = []
    for _ in range(ULID_STR_LENGTH):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))


def is_ulid_str(value: str) -> bool:
    """Return ``True`` when ``value`` is a canonical upper-case ULID."""
    return (
        len(value) == ULID_STR_LENGTH
        and value[0] in "01234567"
        and all(char in _ALPHABET_SET for char in value)
    )
