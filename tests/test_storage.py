import pytest

from walletstate.kvstore import KeyValueStore
from walletstate.storage import Storage
from walletstate.validate import StateError
from walletstate.version import CURRENT_VERSION

XPUB = (
    "zpub6tWCR2jxaKabCC5rHL8skXr6HsqLY58oihn7Dm6pTvNSa4gpde5T2eQT12Wid8h3ygM5y"
    "WWwSzbjmFRGHut6JBPDD6kaESPsQCrGSMSSwJy"
)
ADDRESS = "0x6218b36c1d19d4a2e9eb0ce3606eb48a0b86991c"


def test_open_sets_version(tmp_path):
    with Storage.open(tmp_path) as storage:
        assert storage.version().get_version() == CURRENT_VERSION


def test_new_storage_holds_only_version(tmp_path):
    with Storage.open(tmp_path) as storage:
        assert [key for key, _ in storage.db.scan_prefix("")] == [b"version"]


def test_cache_round_trip(tmp_path):
    with Storage.open(tmp_path) as storage:
        storage.get_cache().put("test", "hello world!")
        assert storage.get_cache().get("test") == "hello world!"


def test_xpub_positions(tmp_path):
    with Storage.open(tmp_path) as storage:
        positions = storage.get_xpub_pos()
        positions.set_at_least(XPUB, 5)
        assert positions.get_next(XPUB) == 6


def test_cursors(tmp_path):
    with Storage.open(tmp_path) as storage:
        storage.get_cursors().set_cursor(ADDRESS, "MTA5MjQ5MS81ODE=")
        cursor = storage.get_cursors().get_cursor(ADDRESS)
        assert cursor is not None
        assert cursor.value == "MTA5MjQ5MS81ODE="


def test_data_persists_after_reopen(tmp_path):
    with Storage.open(tmp_path) as storage:
        storage.get_xpub_pos().set_at_least(XPUB, 3)
    with Storage.open(tmp_path) as storage:
        assert storage.get_xpub_pos().get(XPUB) == 3


def test_open_migrates_existing_data(tmp_path):
    with KeyValueStore(tmp_path) as db:
        db.insert("balance:12cbQLTFMXRnSzktFkuoG3eHoMeFtpTu3S", b"data")
        db.insert(f"addr_cursor:{ADDRESS}", b"data")
    with Storage.open(tmp_path) as storage:
        assert list(storage.db.scan_prefix("balance:")) == []
        assert storage.get_cursors().get_cursor(ADDRESS) is None


def test_in_memory_storage():
    storage = Storage.open()
    try:
        storage.get_cache().put("key", "value")
        assert storage.get_cache().get("key") == "value"
    finally:
        storage.close()


def test_closed_storage_raises(tmp_path):
    storage = Storage.open(tmp_path)
    storage.close()
    with pytest.raises(StateError):
        storage.get_cache().get("test")