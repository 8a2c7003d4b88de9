"""Transaction records and the sortable index keys they are stored under.

Indexes are laid out as:

- ``idx:tx:1/<TIMESTAMP>``
- ``idx:tx:2/<WALLET_ID>/<TIMESTAMP>``
- ``idx:tx:3/<WALLET_ID>/<IS_RECENT>/<TIMESTAMP>/<POS>/<TXHASH>``

Timestamps and positions are encoded in descending order, so a forward scan
yields the newest entries first.
"""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field

from walletstate.indexing import (
    asc_number,
    bool_tf,
    desc_number,
    desc_timestamp,
    index_keys,
    txid_as_pos,
)

PREFIX_IDX = "idx:tx"

# Position used for a confirmed transaction whose block is unknown.
UNKNOWN_BLOCK_POS = 999_999

_U64_MAX = 2**64 - 1


class TxState(enum.Enum):
    """Life-cycle state of a transaction."""

    PREPARED = 0
    SUBMITTED = 1
    REPLACED = 2
    CONFIRMED = 3
    DROPPED = 4

    @property
    def is_recent(self) -> bool:
        """Whether the transaction is not yet settled in a block."""
        return self in (TxState.PREPARED, TxState.SUBMITTED)


@dataclass
class Change:
    """A change of a balance of one address caused by a transaction."""

    wallet_id: str = ""
    entry_id: int = 0
    address: str = ""
    amount: str = ""

    def wallet_uuid(self) -> uuid.UUID | None:
        """The wallet id as a UUID, or None if it is empty or malformed."""
        try:
            return uuid.UUID(self.wallet_id)
        except ValueError:
            return None


@dataclass(frozen=True)
class EverythingIndex:
    """Index over all transactions, newest first."""

    ts: int

    prefix = 1

    def key(self) -> str:
        return f"{PREFIX_IDX}:{self.prefix}/{desc_timestamp(self.ts)}"


@dataclass(frozen=True)
class ByWalletIndex:
    """Index over the transactions of one wallet, newest first."""

    wallet_id: uuid.UUID
    ts: int

    prefix = 2

    def key(self) -> str:
        return f"{PREFIX_IDX}:{self.prefix}/{self.wallet_id}/{desc_timestamp(self.ts)}"


@dataclass(frozen=True)
class ByWalletAndConfirmIndex:
    """Index over a wallet's transactions: unconfirmed first, then newest, then by position."""

    wallet_id: uuid.UUID
    recent: bool
    ts: int
    pos: int
    tx_id: str

    prefix = 3

    def key(self) -> str:
        return (
            f"{PREFIX_IDX}:{self.prefix}/{self.wallet_id}/{bool_tf(self.recent)}/"
            f"{desc_timestamp(self.ts)}/{desc_number(self.pos)}/"
            f"{asc_number(txid_as_pos(self.tx_id))}"
        )


IndexEntry = EverythingIndex | ByWalletIndex | ByWalletAndConfirmIndex


@dataclass
class Transaction:
    """A transaction as known to the wallet."""

    blockchain: int = 0
    tx_id: str = ""
    since_timestamp: int = 0
    confirm_timestamp: int = 0
    state: TxState = TxState.PREPARED
    block: str | None = None
    block_pos: int = 0
    changes: list[Change] = field(default_factory=list)

    @property
    def timestamp(self) -> int:
        """Confirmation time if known, otherwise the time it was first seen."""
        return self.confirm_timestamp if self.confirm_timestamp > 0 else self.since_timestamp

    def index_entries(self) -> list[IndexEntry]:
        """All index entries pointing at this transaction, possibly with duplicates."""
        ts = self.timestamp
        recent = self.state.is_recent
        if recent:
            pos = txid_as_pos(self.tx_id)
        elif self.block is not None:
            pos = self.block_pos
        else:
            pos = UNKNOWN_BLOCK_POS

        entries: list[IndexEntry] = [EverythingIndex(ts)]
        for change in self.changes:
            wallet_id = change.wallet_uuid()
            if wallet_id is None:
                continue
            entries.append(ByWalletIndex(wallet_id, ts))
            entries.append(ByWalletAndConfirmIndex(wallet_id, recent, ts, pos, self.tx_id))
        return entries

    def index_keys(self) -> list[str]:
        """Sorted, de-duplicated index keys of this transaction."""
        return index_keys(self.index_entries())


def index_bounds(wallet_id: uuid.UUID | None = None, now: int | None = None) -> tuple[str, str]:
    """Inclusive (first, last) index keys covering every transaction up to `now` (millis).

    With a wallet the bounds cover that wallet's confirmation-ordered index,
    otherwise the index of all transactions.
    """
    if now is None:
        now = int(time.time() * 1000)
    if wallet_id is not None:
        first = ByWalletAndConfirmIndex(wallet_id, True, now, _U64_MAX, "0000000000000000")
        last = ByWalletAndConfirmIndex(wallet_id, False, 0, 0, "ffffffffffffffff")
        return first.key(), last.key()
    return EverythingIndex(now).key(), EverythingIndex(0).key()