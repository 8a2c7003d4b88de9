# walletstate

Local state storage for a cryptocurrency wallet. It keeps data that the
wallet can rebuild but would rather not fetch again: a generic cache with
expiry, remote sync cursors per address, and the last used position of each
extended public key (xpub). It also computes the sortable index keys under
which transactions are ordered.

Everything lives in one ordered key-value store
(`walletstate.kvstore.KeyValueStore`, a single SQLite file `store.db` in the
chosen directory, or in memory). The stored data is versioned and migrated
when the storage is opened.

## Installing

```
pip install .
```

The package has no runtime dependencies beyond the standard library.

## Opening the storage

```python
from walletstate.storage import Storage

with Storage.open("/path/to/state-dir") as storage:
    print(storage.version().get_version())   # 1 after the first open
```

`Storage.open(None)` opens a store kept in memory. Opening migrates older
data to the current version: on the way to version 1, cached balances
(keys starting with `balance:`) and all remote cursors are dropped. A failed
migration is logged as a warning and the storage is opened anyway. Outside a
`with` block, call `storage.close()` when done.

## Cache

```python
cache = storage.get_cache()
cache.put("rates", "{...}", None)        # default lifetime is one week
cache.put("quote", "42", 60)             # lifetime in seconds, at most 30 days
cache.get("rates")                       # the stored string, or None
cache.evict("quote")
removed = cache.purge()                  # drops expired and corrupted entries, returns how many
```

A negative lifetime raises `ValueError`. When a value is put, expired
entries are also purged if the last purge was more than an hour ago.

## Xpub positions

```python
positions = storage.get_xpub_pos()
positions.set_at_least(xpub, 5)          # only ever moves forward
positions.get(xpub)                      # 5, or None if never set
positions.get_next(xpub)                 # 6, or 0 if never set
```

An xpub must be plain ASCII letters and digits, otherwise a
`walletstate.validate.InvalidValueError` is raised. Positions are stored as
four big-endian bytes (`serialize_position` / `deserialize_position`).

## Remote cursors

```python
cursors = storage.get_cursors()
cursors.set_cursor("0x6218b36c1d19d4a2e9eb0ce3606eb48a0b86991c", "MTA5MjQ5MS81ODE=")
cursor = cursors.get_cursor("0x6218b36c1d19d4a2e9eb0ce3606eb48a0b86991c")
cursor.value, cursor.since               # the stored string and when it was stored (UTC)
```

`get_cursor` returns None when no cursor, or an empty one, is stored.

## Transaction index keys

`walletstate.transactions.Transaction` describes a transaction (chain,
id, timestamps, `TxState`, block position and its `Change` list) and
computes the index keys it would be stored under with `index_keys()`:

- `idx:tx:1/<TIMESTAMP>` for all transactions by time;
- `idx:tx:2/<WALLET_ID>/<TIMESTAMP>` per wallet by time;
- `idx:tx:3/<WALLET_ID>/<IS_RECENT>/<TIMESTAMP>/<POS>/<TXHASH>` per wallet,
  pending (prepared or submitted) transactions first, then by time and
  block position.

Changes with an empty or malformed wallet id give no wallet index.
`index_bounds(wallet_id, now)` returns the inclusive first and last keys of
the range to scan, newest first; without a wallet it covers the index of all
transactions.

The helpers in `walletstate.indexing` encode timestamps, numbers and flags
as strings that sort in the wanted order (`desc_timestamp`, `asc_number`,
`desc_number`, `bool_ft`, `bool_tf`, `txid_as_pos`), and `add_backrefs` /
`remove_backref` record, in a `Batch`, which index keys point at an item so
they can be removed together with it. `walletstate.trigrams` splits text
into 1-, 2- and 3-character parts for a simple text search.

## Address checks

```python
from walletstate.validate import check_address
check_address("0xdac17f958d2ee523a2206206994597c13d831ec7")
```

Raises `InvalidValueError` (a `StateError`) for an address that is neither
an Ethereum address nor plain ASCII.

## What it does not do

The package stores no transactions itself: there is no store to submit,
query, page through, count or forget transactions, nor for per-transaction
metadata. It computes their index keys only. It also keeps no balances,
token allowances or address book; the `balance:` keys are only ever removed
by the migration. There is no command-line tool.

## Tests

```
pip install .[test]
pytest
```