from datetime import datetime, timezone

import pytest

from walletstate.cursors import CursorStore, RemoteCursor
from walletstate.kvstore import KeyValueStore
from walletstate.validate import StateError

ADDRESS = "0x6218b36c1d19d4a2e9eb0ce3606eb48a0b86991c"
OTHER_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
FIXED_NOW = datetime(2022, 3, 15, 3, 10, 50, 992000, tzinfo=timezone.utc)


@pytest.fixture
def db():
    store = KeyValueStore()
    yield store
    store.close()


@pytest.fixture
def cursors(db):
    return CursorStore(db, clock=lambda: FIXED_NOW)


def test_no_cursor_by_default(cursors):
    assert cursors.get_cursor(ADDRESS) is None


def test_save_and_provide_cursor(cursors):
    cursors.set_cursor(ADDRESS, "MTA5MjQ5MS81ODE=")
    act = cursors.get_cursor(ADDRESS)
    assert act == RemoteCursor(value="MTA5MjQ5MS81ODE=", since=FIXED_NOW)


def test_cursor_since_uses_default_clock(db):
    store = CursorStore(db)
    before = datetime.now(timezone.utc).replace(microsecond=0)
    store.set_cursor(ADDRESS, "abc")
    act = store.get_cursor(ADDRESS)
    assert act.value == "abc"
    assert act.since >= before


def test_cursor_is_replaced(cursors):
    cursors.set_cursor(ADDRESS, "first")
    cursors.set_cursor(ADDRESS, "second")
    assert cursors.get_cursor(ADDRESS).value == "second"


def test_cursors_are_per_address(cursors):
    cursors.set_cursor(ADDRESS, "one")
    cursors.set_cursor(OTHER_ADDRESS, "two")
    assert cursors.get_cursor(ADDRESS).value == "one"
    assert cursors.get_cursor(OTHER_ADDRESS).value == "two"


def test_empty_cursor_reads_as_none(cursors):
    cursors.set_cursor(ADDRESS, "")
    assert cursors.get_cursor(ADDRESS) is None


def test_corrupted_cursor_raises(db, cursors):
    db.insert(f"addr_cursor:{ADDRESS}", b"\xff\x00garbage")
    with pytest.raises(StateError):
        cursors.get_cursor(ADDRESS)


def test_migrate_to_version_one_drops_cursors(db, cursors):
    cursors.set_cursor(ADDRESS, "one")
    cursors.set_cursor(OTHER_ADDRESS, "two")
    db.insert("balance:x", b"keep")
    cursors.migrate(1)
    assert cursors.get_cursor(ADDRESS) is None
    assert cursors.get_cursor(OTHER_ADDRESS) is None
    assert db.get("balance:x") == b"keep"


def test_migrate_other_version_keeps_cursors(cursors):
    cursors.set_cursor(ADDRESS, "one")
    cursors.migrate(2)
    assert cursors.get_cursor(ADDRESS).value == "one"


def test_cursor_stored_under_address_key(db, cursors):
    cursors.set_cursor(ADDRESS, "one")
    keys = [key for key, _ in db.scan_prefix("addr_cursor:")]
    assert keys == [f"addr_cursor:{ADDRESS}".encode()]