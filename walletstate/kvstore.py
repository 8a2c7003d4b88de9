"""An ordered, persistent key-value store with atomic batches."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from walletstate.validate import StateError

_DB_FILE = "store.db"

KeyLike = str | bytes | bytearray | memoryview


def _as_bytes(data: KeyLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"expected str or bytes, got {type(data).__name__}")


def _prefix_end(prefix: bytes) -> bytes | None:
    """Smallest key greater than every key starting with `prefix`, or None if unbounded."""
    trimmed = prefix.rstrip(b"\xff")
    if not trimmed:
        return None
    return trimmed[:-1] + bytes([trimmed[-1] + 1])


@dataclass
class Batch:
    """A sequence of writes applied atomically, in order."""

    operations: list[tuple[bytes, bytes | None]] = field(default_factory=list)

    def insert(self, key: KeyLike, value: KeyLike) -> None:
        self.operations.append((_as_bytes(key), _as_bytes(value)))

    def remove(self, key: KeyLike) -> None:
        self.operations.append((_as_bytes(key), None))

    def __len__(self) -> int:
        return len(self.operations)


class KeyValueStore:
    """Byte-ordered key-value store kept in a directory, or in memory when no path is given."""

    def __init__(self, path: str | Path | None = None) -> None:
        if path is None:
            target = ":memory:"
        else:
            directory = Path(path)
            directory.mkdir(parents=True, exist_ok=True)
            target = str(directory / _DB_FILE)
        self._lock = threading.RLock()
        try:
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                target, isolation_level=None, check_same_thread=False
            )
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv "
                "(key BLOB PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
            )
        except sqlite3.Error as exc:
            raise StateError(f"cannot open store: {exc}") from exc

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StateError("store is closed")
        return self._conn

    def _fetch(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            try:
                return self._connection().execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StateError(str(exc)) from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._connection()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StateError(str(exc)) from exc
            try:
                yield conn
            except sqlite3.Error as exc:
                conn.execute("ROLLBACK")
                raise StateError(str(exc)) from exc
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            else:
                conn.execute("COMMIT")

    @staticmethod
    def _read(conn: sqlite3.Connection, key: bytes) -> bytes | None:
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return None if row is None else bytes(row[0])

    @staticmethod
    def _write(conn: sqlite3.Connection, key: bytes, value: bytes | None) -> None:
        if value is None:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        else:
            conn.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))

    def get(self, key: KeyLike) -> bytes | None:
        """Value stored under `key`, or None."""
        rows = self._fetch("SELECT value FROM kv WHERE key = ?", (_as_bytes(key),))
        return bytes(rows[0][0]) if rows else None

    def insert(self, key: KeyLike, value: KeyLike) -> bytes | None:
        """Store `value` under `key`; return the value it replaced."""
        key_bytes = _as_bytes(key)
        with self._transaction() as conn:
            previous = self._read(conn, key_bytes)
            self._write(conn, key_bytes, _as_bytes(value))
        return previous

    def remove(self, key: KeyLike) -> bytes | None:
        """Delete `key`; return the value it held."""
        key_bytes = _as_bytes(key)
        with self._transaction() as conn:
            previous = self._read(conn, key_bytes)
            self._write(conn, key_bytes, None)
        return previous

    def scan_prefix(self, prefix: KeyLike) -> Iterator[tuple[bytes, bytes]]:
        """Entries whose key starts with `prefix`, in key order."""
        start = _as_bytes(prefix)
        end = _prefix_end(start)
        if end is None:
            rows = self._fetch("SELECT key, value FROM kv WHERE key >= ? ORDER BY key", (start,))
        else:
            rows = self._fetch(
                "SELECT key, value FROM kv WHERE key >= ? AND key < ? ORDER BY key",
                (start, end),
            )
        return iter([(bytes(k), bytes(v)) for k, v in rows])

    def range(
        self,
        low: KeyLike | None = None,
        high: KeyLike | None = None,
        include_low: bool = True,
        include_high: bool = True,
    ) -> Iterator[tuple[bytes, bytes]]:
        """Entries between `low` and `high` in key order; None leaves a side unbounded."""
        conditions: list[str] = []
        params: list[bytes] = []
        if low is not None:
            conditions.append("key >= ?" if include_low else "key > ?")
            params.append(_as_bytes(low))
        if high is not None:
            conditions.append("key <= ?" if include_high else "key < ?")
            params.append(_as_bytes(high))
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self._fetch(f"SELECT key, value FROM kv{where} ORDER BY key", tuple(params))
        return iter([(bytes(k), bytes(v)) for k, v in rows])

    def apply_batch(self, batch: Batch) -> None:
        """Apply all operations of `batch` atomically."""
        with self._transaction() as conn:
            for key, value in batch.operations:
                self._write(conn, key, value)

    def compare_and_swap(self, key: KeyLike, old: KeyLike | None, new: KeyLike | None) -> bool:
        """Set `key` to `new` only if it currently holds `old`; None means absent."""
        key_bytes = _as_bytes(key)
        expected = None if old is None else _as_bytes(old)
        replacement = None if new is None else _as_bytes(new)
        with self._transaction() as conn:
            if self._read(conn, key_bytes) != expected:
                return False
            self._write(conn, key_bytes, replacement)
        return True

    def close(self) -> None:
        """Close the store; further use raises StateError."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None