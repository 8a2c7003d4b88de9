import pytest

from walletstate.kvstore import KeyValueStore
from walletstate.version import CURRENT_VERSION, KEY, Version


@pytest.fixture
def db():
    store = KeyValueStore()
    yield store
    store.close()


def test_no_version_for_new_store(db):
    assert Version(db).get_version() is None


def test_migrate_sets_current_version(db):
    version = Version(db)
    version.migrate()
    assert version.get_version() == CURRENT_VERSION
    assert db.get(KEY) == str(CURRENT_VERSION).encode("utf-8")


def test_reads_stored_number(db):
    db.insert(KEY, b"7")
    assert Version(db).get_version() == 7


@pytest.mark.parametrize("raw", [b"abc", b"-1", b"", b"\xff\xfe", b" 1"])
def test_unreadable_version_is_none(db, raw):
    db.insert(KEY, raw)
    assert Version(db).get_version() is None


def test_migrate_drops_balances_and_cursors(db):
    db.insert("balance:0xCD2a3d9F938E13CD947Ec05AbC7FE734Df8DD826", b"data")
    db.insert("addr_cursor:0x6218b36c1d19d4a2e9eb0ce3606eb48a0b86991c", b"data")
    db.insert("cache:kept", b"data")

    Version(db).migrate()

    assert list(db.scan_prefix("balance:")) == []
    assert list(db.scan_prefix("addr_cursor")) == []
    assert db.get("cache:kept") == b"data"


def test_migrate_skipped_when_up_to_date(db):
    version = Version(db)
    version.migrate()
    db.insert("balance:12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S", b"data")

    version.migrate()

    assert db.get("balance:12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S") == b"data"
    assert version.get_version() == CURRENT_VERSION


def test_migrate_runs_for_older_version(db):
    db.insert(KEY, b"0")
    db.insert("balance:12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S", b"data")

    Version(db).migrate()

    assert db.get("balance:12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S") is None
    assert Version(db).get_version() == CURRENT_VERSION