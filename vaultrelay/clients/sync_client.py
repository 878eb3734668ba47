# vaultrelay/clients/sync_client.py

import logging
import queue
import threading
from typing import Callable, Optional

from vaultrelay.clients.fetcher import RelayFetcher
from vaultrelay.clients.transport import Transport
from vaultrelay.core.config import FETCH_INTERVAL
from vaultrelay.core.crypto import CryptoCodec
from vaultrelay.core.errors import (
    AuthenticationFailed,
    MessageFormatError,
    RelayUnavailable,
    TransportError,
)
from vaultrelay.core.key import Key
from vaultrelay.models.message import EncryptedMessage, Message

logger = logging.getLogger(__name__)

_STOP = object()


class SyncClient:
    """
    Room client for one key.

    Two workers run side by side: the sender drains submitted lines, encrypts
    them and hands them to the transport; the poller asks the relay for
    everything past the cursor once per fetch_interval and forwards what
    decrypts under the room key. A slow relay on one path never holds up
    the other.

    The cursor counts envelopes returned by the relay, not messages delivered,
    so it tracks the absolute log position. A client built with the last
    cursor resumes where an earlier one stopped.

    Usage:
        with SyncClient(key, "alice", transport, fetcher, relay_url, on_message=print) as client:
            client.submit("hello")
    """

    def __init__(
        self,
        key: Key,
        name: str,
        transport: Transport,
        fetcher: RelayFetcher,
        destination: str,
        on_message: Callable[[Message], None],
        codec: Optional[CryptoCodec] = None,
        fetch_interval: float = FETCH_INTERVAL,
        on_send_error: Optional[Callable[[str, TransportError], None]] = None,
        cursor: int = 0,
    ):
        self.key = key
        self.name = name
        self.transport = transport
        self.fetcher = fetcher
        self.destination = destination
        self.on_message = on_message
        self.on_send_error = on_send_error
        self.codec = codec if codec is not None else CryptoCodec()
        self.fetch_interval = fetch_interval
        self.cursor = cursor
        self.delivered = 0

        self._outgoing: queue.Queue = queue.Queue()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []
        self._closed = False

    # ---------- outgoing ----------

    def send(self, body: str) -> EncryptedMessage:
        """Encrypt and deliver one line now. Raises TransportError on failure."""
        envelope = self.codec.encrypt(Message(sender=self.name, body=body), self.key)
        self.transport.send(envelope.to_wire(), self.destination)
        return envelope

    def submit(self, body: str) -> None:
        """Queue a line for the sender worker."""
        self._outgoing.put(body)

    # ---------- incoming ----------

    def poll_once(self) -> list[Message]:
        """
        One fetch round. Raises RelayUnavailable with the cursor untouched
        when the relay can't be read.

        The cursor moves past each envelope before its message is handed to
        on_message, so a failing consumer never sees the same entry twice.
        """
        batch = self.fetcher.fetch_since(self.cursor)
        received = []
        for envelope in batch:
            index = self.cursor
            self.cursor += 1
            try:
                message = self.codec.decrypt(envelope, self.key)
            except AuthenticationFailed:
                continue
            except MessageFormatError as e:
                logger.warning("Dropping malformed message at index %d", index)
                logger.debug("Message format error: %s", e)
                continue
            self.delivered += 1
            received.append(message)
            try:
                self.on_message(message)
            except Exception:
                logger.exception("Message handler failed at index %d", index)
        return received

    # ---------- workers ----------

    def _send_loop(self):
        while not self._stop.is_set():
            body = self._outgoing.get()
            if body is _STOP:
                break
            try:
                self.send(body)
            except TransportError as e:
                logger.warning("Could not send message: %s", e)
                if self.on_send_error is not None:
                    try:
                        self.on_send_error(body, e)
                    except Exception:
                        logger.exception("Send error handler failed")

    def _poll_loop(self):
        while not self._stop.is_set():
            try:
                self.poll_once()
            except RelayUnavailable as e:
                logger.warning("Fetch from index %d failed: %s", self.cursor, e)
            except Exception:
                logger.exception("Fetch round from index %d failed", self.cursor)
            self._stop.wait(self.fetch_interval)

    def start(self) -> "SyncClient":
        if self._threads:
            raise RuntimeError("client already started")
        self._threads = [
            threading.Thread(target=self._send_loop, name="vaultrelay-send", daemon=True),
            threading.Thread(target=self._poll_loop, name="vaultrelay-poll", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop both workers and close the transport. An in-flight send or fetch
        finishes first; lines still queued are dropped.
        """
        self._stop.set()
        self._outgoing.put(_STOP)
        for thread in self._threads:
            thread.join(timeout)
        if not self._closed:
            self._closed = True
            self.transport.close()
            logger.info("Disconnected from transport")

    def __enter__(self) -> "SyncClient":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()
