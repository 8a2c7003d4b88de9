"""Entry point to the wallet state storage."""

from __future__ import annotations

import logging
from pathlib import Path

from walletstate.cache import CacheStore
from walletstate.cursors import CursorStore
from walletstate.kvstore import KeyValueStore
from walletstate.validate import StateError
from walletstate.version import Version
from walletstate.xpubpos import XPubPositionStore

_log = logging.getLogger(__name__)


class Storage:
    """Persistent wallet state backed by a key-value store."""

    def __init__(self, db: KeyValueStore) -> None:
        self.db = db

    @classmethod
    def open(cls, path: str | Path | None = None) -> Storage:
        """Open the storage at `path` (in memory when None) and migrate its data."""
        db = KeyValueStore(path)
        try:
            Version(db).migrate()
        except StateError as exc:
            _log.warning("Failed to migrate DB: %s", exc)
        return cls(db)

    def __enter__(self) -> Storage:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def version(self) -> Version:
        """Access to the data version."""
        return Version(self.db)

    def get_cache(self) -> CacheStore:
        """Generic persistent cache."""
        return CacheStore(self.db)

    def get_xpub_pos(self) -> XPubPositionStore:
        """Positions used per extended public key."""
        return XPubPositionStore(self.db)

    def get_cursors(self) -> CursorStore:
        """Remote cursors per address."""
        return CursorStore(self.db)

    def close(self) -> None:
        """Close the underlying store."""
        self.db.close()