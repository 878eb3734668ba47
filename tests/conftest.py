"""Shared test fixtures for vaultrelay."""

from __future__ import annotations

from pathlib import Path

import pytest

from vaultrelay.core.key import Key
from vaultrelay.services.relay_log import InMemoryRelayLog, SqlRelayLog

ALICE_HEX = "00112233445566778899aabbccddeeff" * 2
BOB_HEX = "ffeeddccbbaa99887766554433221100" * 2


@pytest.fixture
def room_key() -> Key:
    """The room key shared by the test room."""
    return Key.from_hex(ALICE_HEX)


@pytest.fixture
def other_key() -> Key:
    """A key for a different room."""
    return Key.from_hex(BOB_HEX)


@pytest.fixture
def memory_log() -> InMemoryRelayLog:
    return InMemoryRelayLog()


@pytest.fixture
def sql_log(tmp_path: Path) -> SqlRelayLog:
    """SQLite-backed relay log in a temporary directory."""
    return SqlRelayLog.from_url(f"sqlite:///{tmp_path / 'relay.db'}")


@pytest.fixture(params=["memory", "sql"])
def relay_log(request, memory_log, sql_log):
    """Every relay log implementation, one at a time."""
    return memory_log if request.param == "memory" else sql_log
