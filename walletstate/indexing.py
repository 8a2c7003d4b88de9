"""Encoding of sortable index keys and tracking of the indexes written per item."""

from __future__ import annotations

import json
import re
import time
from collections.abc import Iterable
from typing import Protocol

from walletstate.kvstore import Batch, KeyValueStore

IDX_BACKREF = "idx_back:"

_MAX_TIMESTAMP = 9_999_999_999_999
_U64_MAX = 2**64 - 1
_HEX = re.compile(r"[0-9a-fA-F]*")


class _IndexEncoding(Protocol):
    def key(self) -> str: ...


def _check_range(value: int, upper: int, name: str) -> None:
    if not 0 <= value <= upper:
        raise ValueError(f"{name} out of range: {value}")


def desc_timestamp(ts: int) -> str:
    """Millisecond timestamp encoded so that later times sort first."""
    _check_range(ts, _MAX_TIMESTAMP, "timestamp")
    return f"D{_MAX_TIMESTAMP - ts:013d}"


def asc_number(value: int) -> str:
    """Unsigned 64-bit number encoded in ascending order."""
    _check_range(value, _U64_MAX, "number")
    return f"A{value:020d}"


def desc_number(value: int) -> str:
    """Unsigned 64-bit number encoded so that larger numbers sort first."""
    _check_range(value, _U64_MAX, "number")
    return f"D{_U64_MAX - value:020d}"


def bool_ft(value: bool) -> str:
    """Flag encoded so that False sorts before True."""
    return f"F{int(bool(value))}"


def bool_tf(value: bool) -> str:
    """Flag encoded so that True sorts before False."""
    return f"T{int(not value)}"


def txid_as_pos(tx_id: str) -> int:
    """First 64 bits of a hex transaction id (optionally 0x-prefixed); 0 if it is not valid hex."""
    while tx_id.startswith("0x"):
        tx_id = tx_id[2:]
    if len(tx_id) % 2 or _HEX.fullmatch(tx_id) is None:
        return 0
    return int.from_bytes(bytes.fromhex(tx_id)[:8], "big")


def index_keys(keys: Iterable[_IndexEncoding]) -> list[str]:
    """Sorted, de-duplicated string keys of the given index entries."""
    return sorted({entry.key() for entry in keys})


def add_backrefs(indexes: list[str], target_key: str, batch: Batch) -> None:
    """Record in `batch` which index keys point at `target_key`, so they can be removed later."""
    stamp = int(time.time() * 1000)
    batch.insert(
        f"{IDX_BACKREF}{target_key}/{stamp}",
        json.dumps(list(indexes)).encode("utf-8"),
    )


def remove_backref(target_key: str, db: KeyValueStore, batch: Batch) -> None:
    """Add to `batch` the removal of every index recorded for `target_key`, and of the records."""
    deleting: set[str] = set()
    for ref_key, payload in db.scan_prefix(f"{IDX_BACKREF}{target_key}/"):
        batch.remove(ref_key)
        try:
            keys = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            continue
        if not isinstance(keys, list):
            continue
        for key in keys:
            if isinstance(key, str) and key not in deleting:
                deleting.add(key)
                batch.remove(key)