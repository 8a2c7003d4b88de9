"""Validation of values accepted by the wallet state storage."""

from __future__ import annotations

import re

_ETHEREUM_ADDRESS = re.compile(r"0x[a-fA-F0-9]{40}")


class StateError(Exception):
    """Base error raised by the wallet state storage."""


class InvalidValueError(StateError):
    """A value passed to the storage is not acceptable."""

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        self.message = message
        super().__init__(f"{name}: {message}" if message else name)


def check_ethereum_address(address: str) -> None:
    """Raise InvalidValueError unless the value is a 0x-prefixed 20-byte hex address."""
    if _ETHEREUM_ADDRESS.fullmatch(address) is None:
        raise InvalidValueError("address", "invalid")


def check_bitcoin_address(address: str) -> None:
    """Raise InvalidValueError unless the value consists of ASCII characters only."""
    if not address.isascii():
        raise InvalidValueError("address", "non-ascii")


def check_address(address: str) -> None:
    """Accept either an Ethereum or a Bitcoin address."""
    for check in (check_ethereum_address, check_bitcoin_address):
        try:
            check(address)
        except InvalidValueError:
            continue
        return
    raise InvalidValueError("address", "invalid")