# vaultrelay/services/relay_service.py

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from vaultrelay.clients.transport import Payload, SelfAddress, Transport, TransportEvent, TransportFailure
from vaultrelay.core.config import DATABASE_URL, STORE
from vaultrelay.core.errors import EnvelopeDecodeError
from vaultrelay.models.message import EncryptedMessage
from vaultrelay.services.relay_log import RelayLog, build_relay_log

logger = logging.getLogger(__name__)


class RelayIngest:
    """
    Relay side of the transport: turns incoming payloads into log entries.

    The relay never holds a room key. It only checks that a payload has the
    envelope shape before storing it.
    """

    def __init__(self, relay_log: RelayLog):
        self.relay_log = relay_log
        self.address: Optional[str] = None

    def ingest(self, payload: bytes) -> Optional[int]:
        """Store one wire-form envelope. Returns its index, or None if undecodable."""
        try:
            envelope = EncryptedMessage.from_wire(payload)
        except EnvelopeDecodeError as e:
            logger.warning("Could not decode client submission")
            logger.debug("Client submission decoding error: %s", e)
            return None
        index = self.relay_log.append(envelope)
        logger.debug("Stored envelope at index %d", index)
        return index

    def handle(self, event: TransportEvent) -> Optional[int]:
        if isinstance(event, Payload):
            return self.ingest(event.data)
        if isinstance(event, SelfAddress):
            self.address = event.address
            logger.info("Listening on %s", event.address)
        elif isinstance(event, TransportFailure):
            logger.error("Received error from transport: %s", event.reason)
        else:
            logger.warning("Ignoring unknown transport event %r", event)
        return None

    def listen(self, transport: Transport) -> None:
        """Process transport events until the transport closes."""
        while True:
            event = transport.receive()
            if event is None:
                break
            self.handle(event)


# =========================
# DEPENDENCIES
# =========================

@lru_cache(maxsize=None)
def get_relay_log() -> RelayLog:
    """
    FastAPI dependency providing the process-wide relay log.
    Tests and the CLI swap it through app.dependency_overrides.
    """
    return build_relay_log(STORE, DATABASE_URL)


def get_ingest(relay_log: RelayLog = Depends(get_relay_log)) -> RelayIngest:
    return RelayIngest(relay_log)
