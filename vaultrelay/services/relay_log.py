# vaultrelay/services/relay_log.py

import logging
import threading
from abc import ABC, abstractmethod

from sqlalchemy import func

from vaultrelay.infra.database import build_engine, build_session_factory, db_session, init_db
from vaultrelay.models.message import EncryptedMessage
from vaultrelay.models.relay_entry import RelayEntry

logger = logging.getLogger(__name__)


class RelayLog(ABC):
    """
    Append-only, densely indexed sequence of envelopes shared by all rooms.

    append() returns indices 0, 1, 2, ... in commit order. fetch_since()
    never fails on range: any index at or past the end yields [] and a
    negative index is treated as 0. Entries are never deleted or rewritten.
    """

    @abstractmethod
    def append(self, envelope: EncryptedMessage) -> int:
        ...

    @abstractmethod
    def fetch_since(self, index: int) -> list[EncryptedMessage]:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemoryRelayLog(RelayLog):
    """
    List-backed log. Appends serialize on a lock; readers take no lock and
    see an entry only once list.append has published it whole.
    """

    def __init__(self):
        self._entries: list[EncryptedMessage] = []
        self._append_lock = threading.Lock()

    def append(self, envelope: EncryptedMessage) -> int:
        with self._append_lock:
            index = len(self._entries)
            self._entries.append(envelope)
        return index

    def fetch_since(self, index: int) -> list[EncryptedMessage]:
        start = max(index, 0)
        end = len(self._entries)
        if start >= end:
            return []
        return self._entries[start:end]

    def __len__(self) -> int:
        return len(self._entries)


class SqlRelayLog(RelayLog):
    """
    SQLAlchemy-backed log. Positions are assigned under a process-wide lock,
    so a single relay process must own the table; the unique primary key
    rejects a second writer instead of letting indices collide.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._append_lock = threading.Lock()

    @classmethod
    def from_engine(cls, engine) -> "SqlRelayLog":
        init_db(engine)
        return cls(build_session_factory(engine))

    @classmethod
    def from_url(cls, url: str) -> "SqlRelayLog":
        return cls.from_engine(build_engine(url))

    def append(self, envelope: EncryptedMessage) -> int:
        with self._append_lock:
            with db_session(self._session_factory) as session:
                position = session.query(func.count(RelayEntry.position)).scalar()
                session.add(RelayEntry(
                    position=position,
                    nonce=envelope.nonce,
                    data=envelope.data
                ))
        return position

    def fetch_since(self, index: int) -> list[EncryptedMessage]:
        start = max(index, 0)
        with db_session(self._session_factory) as session:
            # Positions past the row count do not exist, and may not fit the column type.
            if start >= session.query(func.count(RelayEntry.position)).scalar():
                return []
            rows = (
                session.query(RelayEntry.nonce, RelayEntry.data)
                .filter(RelayEntry.position >= start)
                .order_by(RelayEntry.position)
                .all()
            )
            return [EncryptedMessage(nonce=bytes(nonce), data=bytes(data)) for nonce, data in rows]

    def __len__(self) -> int:
        with db_session(self._session_factory) as session:
            return session.query(func.count(RelayEntry.position)).scalar()


def build_relay_log(store: str, database_url: str) -> RelayLog:
    if store == "memory":
        return InMemoryRelayLog()
    if store == "sql":
        return SqlRelayLog.from_url(database_url)
    raise ValueError(f"Unknown relay store: {store!r} (expected 'memory' or 'sql')")
