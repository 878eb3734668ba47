# vaultrelay/models/relay_entry.py

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, LargeBinary

from vaultrelay.models.base import Base


class RelayEntry(Base):
    __tablename__ = "relay_entries"

    # Dense log index, assigned by the relay; never reused
    position = Column(Integer, primary_key=True, autoincrement=False)

    nonce = Column(LargeBinary(12), nullable=False)
    data = Column(LargeBinary, nullable=False)

    received_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
