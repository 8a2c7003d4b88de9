"""Tracking of the highest used address position per extended public key."""

from __future__ import annotations

import string

from walletstate.kvstore import KeyValueStore
from walletstate.validate import InvalidValueError

PREFIX_KEY = "xpubpos:"

_ALLOWED = frozenset(string.ascii_letters + string.digits)
_U32_MAX = 2**32 - 1


def is_valid_xpub(xpub: str) -> bool:
    """Whether `xpub` can be used as a storage key (ASCII letters and digits only)."""
    return all(char in _ALLOWED for char in xpub)


def _key(xpub: str) -> str:
    if not is_valid_xpub(xpub):
        raise InvalidValueError("xpub")
    return f"{PREFIX_KEY}{xpub}"


def serialize_position(value: int) -> bytes:
    """Position as four big-endian bytes."""
    if not 0 <= value <= _U32_MAX:
        raise ValueError(f"position out of range: {value}")
    return value.to_bytes(4, "big")


def deserialize_position(data: bytes) -> int:
    """Position from up to four big-endian bytes; 0 when the data is empty or too long."""
    if not data or len(data) > 4:
        return 0
    return int.from_bytes(data, "big")


class XPubPositionStore:
    """Keeps, for each xpub, the largest position seen so far."""

    def __init__(self, db: KeyValueStore) -> None:
        self._db = db

    def set_at_least(self, xpub: str, pos: int) -> None:
        """Store `pos` unless a position at least as large is already stored."""
        key = _key(xpub)
        encoded = serialize_position(pos)
        while True:
            previous = self._db.get(key)
            if previous is None:
                replacement = encoded
            else:
                existing = deserialize_position(previous)
                if existing >= pos:
                    return
                replacement = encoded
            if self._db.compare_and_swap(key, previous, replacement):
                return

    def get(self, xpub: str) -> int | None:
        """Current position for `xpub`, or None if nothing was stored."""
        stored = self._db.get(_key(xpub))
        return None if stored is None else deserialize_position(stored)

    def get_next(self, xpub: str) -> int:
        """Position after the current one, or 0 if nothing was stored."""
        current = self.get(xpub)
        return 0 if current is None else current + 1