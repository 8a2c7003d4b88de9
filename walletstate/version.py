"""Versioning of the stored data and migration to the current version."""

from __future__ import annotations

import re

from walletstate.cursors import CursorStore
from walletstate.kvstore import KeyValueStore
from walletstate.validate import StateError

KEY = "version"
CURRENT_VERSION = 1

PREFIX_BALANCE = "balance:"

_UNSIGNED = re.compile(r"\+?[0-9]+")


def _migrate_balances(db: KeyValueStore, version: int) -> None:
    """Upgrade cached balances to `version`.

    Before version 1 some balances could be stored without a token, which the
    wallet may show as outdated or impossible to update. All balances are
    dropped; the wallet reloads the actual ones anyway.
    """
    if version != 1:
        return
    for key, _ in db.scan_prefix(PREFIX_BALANCE):
        try:
            db.remove(key)
        except StateError:
            pass


class Version:
    """Access to the version of the stored data."""

    def __init__(self, db: KeyValueStore) -> None:
        self._db = db

    def get_version(self) -> int | None:
        """Current data version, or None if it is not set or not readable."""
        stored = self._db.get(KEY)
        if stored is None:
            return None
        try:
            text = stored.decode("utf-8")
        except UnicodeDecodeError:
            return None
        if _UNSIGNED.fullmatch(text) is None:
            return None
        return int(text)

    def _set_version(self, version: int) -> None:
        self._db.insert(KEY, str(version).encode("utf-8"))

    def migrate(self) -> None:
        """Bring the stored data to the current version; this may delete some data."""
        current = self.get_version()
        if current is None or current < CURRENT_VERSION:
            _migrate_balances(self._db, CURRENT_VERSION)
            CursorStore(self._db).migrate(CURRENT_VERSION)
            self._set_version(CURRENT_VERSION)