"""A generic persistent cache with time-to-live and periodic purging."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from walletstate.kvstore import Batch, KeyValueStore
from walletstate.validate import StateError

PREFIX_KEY = "cache:"

DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 7
MAX_TTL_SECONDS = 60 * 60 * 24 * 30

PURGE_KEY = "_purge"
PURGE_EVERY = timedelta(hours=1)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _from_millis(millis: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=millis)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _key(id: str) -> str:
    return f"{PREFIX_KEY}{id}"


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the time it was stored and the time it expires."""

    id: str
    value: str
    ts: datetime
    ttl: datetime

    def to_bytes(self) -> bytes:
        return json.dumps(
            {
                "id": self.id,
                "value": self.value,
                "ts": _to_millis(self.ts),
                "ttl": _to_millis(self.ttl),
            }
        ).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> CacheEntry:
        """Decode a stored entry; raises StateError if the data is corrupted."""
        try:
            raw = json.loads(data.decode("utf-8"))
            return cls(
                id=str(raw["id"]),
                value=str(raw["value"]),
                ts=_from_millis(int(raw["ts"])),
                ttl=_from_millis(int(raw["ttl"])),
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError, OverflowError) as exc:
            raise StateError(f"corrupted cache entry: {exc}") from exc


class CacheStore:
    """Cache of string values; expired entries are purged at most once an hour."""

    def __init__(
        self, db: KeyValueStore, clock: Callable[[], datetime] = _utc_now
    ) -> None:
        self._db = db
        self._clock = clock

    def _should_purge(self) -> bool:
        try:
            stored = self.get(PURGE_KEY)
        except StateError:
            stored = None
        try:
            last_purge = int(stored) if stored is not None else 0
        except ValueError:
            last_purge = 0
        return _from_millis(last_purge) < self._clock() - PURGE_EVERY

    def _mark_purged(self) -> None:
        try:
            self.put(PURGE_KEY, str(_to_millis(self._clock())), MAX_TTL_SECONDS)
        except StateError:
            pass

    def put(self, id: str, value: str, ttl_seconds: int | None = None) -> None:
        """Store `value`; the TTL defaults to one week and is capped at thirty days."""
        seconds = DEFAULT_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        if seconds < 0:
            raise ValueError(f"ttl must not be negative: {seconds}")
        seconds = min(seconds, MAX_TTL_SECONDS)
        now = self._clock()
        entry = CacheEntry(id=id, value=value, ts=now, ttl=now + timedelta(seconds=seconds))
        self._db.insert(_key(id), entry.to_bytes())
        if self._should_purge():
            try:
                self.purge()
            except StateError:
                pass

    def get(self, id: str) -> str | None:
        """Cached value for `id`, or None."""
        stored = self._db.get(_key(id))
        if stored is None:
            return None
        return CacheEntry.from_bytes(stored).value

    def evict(self, id: str) -> None:
        """Remove the value for `id`."""
        self._db.remove(_key(id))

    def purge(self) -> int:
        """Delete expired and corrupted entries; return how many were deleted."""
        now = self._clock()
        batch = Batch()
        for key, data in self._db.scan_prefix(PREFIX_KEY):
            try:
                expired = CacheEntry.from_bytes(data).ttl < now
            except StateError:
                expired = True
            if expired:
                batch.remove(key)
        if len(batch):
            try:
                self._db.apply_batch(batch)
            except StateError:
                pass
        self._mark_purged()
        return len(batch)