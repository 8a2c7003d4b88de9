"""Remote cursors that mark how far the transactions of an address have been loaded."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from walletstate.kvstore import Batch, KeyValueStore
from walletstate.validate import StateError

PREFIX_CURSOR = "addr_cursor"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _from_millis(millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=millis)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _key(address: str) -> str:
    return f"{PREFIX_CURSOR}:{address}"


@dataclass(frozen=True)
class RemoteCursor:
    """Opaque position on a remote service and the time it was stored."""

    value: str
    since: datetime


class CursorStore:
    """Keeps one remote cursor per address."""

    def __init__(
        self, db: KeyValueStore, clock: Callable[[], datetime] = _utc_now
    ) -> None:
        self._db = db
        self._clock = clock

    def get_cursor(self, address: str) -> RemoteCursor | None:
        """Cursor stored for `address`, or None if there is none or it is empty.

        Raises StateError if the stored data is corrupted.
        """
        stored = self._db.get(_key(address))
        if stored is None:
            return None
        try:
            raw = json.loads(stored.decode("utf-8"))
            value = str(raw["value"])
            ts = int(raw["ts"])
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            raise StateError(f"corrupted cursor: {exc}") from exc
        if not value:
            return None
        try:
            since = _from_millis(ts)
        except OverflowError as exc:
            raise StateError(f"corrupted cursor: {exc}") from exc
        return RemoteCursor(value=value, since=since)

    def set_cursor(self, address: str, cursor: str) -> None:
        """Store `cursor` for `address`, stamped with the current time."""
        payload = json.dumps(
            {
                "address": address,
                "ts": _to_millis(self._clock()),
                "value": cursor,
            }
        ).encode("utf-8")
        batch = Batch()
        batch.insert(_key(address), payload)
        self._db.apply_batch(batch)

    def migrate(self, version: int) -> None:
        """Upgrade stored data to `version`.

        Version 1 drops all cursors so that every transaction is loaded again
        with full details.
        """
        if version == 1:
            for key, _ in self._db.scan_prefix(PREFIX_CURSOR):
                try:
                    self._db.remove(key)
                except StateError:
                    pass