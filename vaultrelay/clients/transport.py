# vaultrelay/clients/transport.py

import logging
import queue
import random
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

import requests

from vaultrelay.core.config import (
    HTTP_TIMEOUT,
    MAX_DELAY_MS,
    MIN_DELAY_MS,
    TOR_PROXY,
)
from vaultrelay.core.errors import TransportError

logger = logging.getLogger(__name__)

# =========================
# EVENTS
# =========================

@dataclass(frozen=True)
class Payload:
    data: bytes


@dataclass(frozen=True)
class SelfAddress:
    address: str


@dataclass(frozen=True)
class TransportFailure:
    reason: str


TransportEvent = Union[Payload, SelfAddress, TransportFailure]


class Transport(ABC):
    """
    Anonymous delivery layer between clients and the relay.

    send() raises TransportError on failure and never retries.
    receive() returns the next event, or None once the transport is closed.
    """

    @abstractmethod
    def send(self, payload: bytes, destination: str) -> None:
        ...

    @abstractmethod
    def receive(self) -> Optional[TransportEvent]:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


# =========================
# IN-PROCESS TRANSPORT
# =========================

_CLOSED = object()


class MemoryNetwork:
    """Address -> mailbox map connecting MemoryTransports in one process."""

    def __init__(self):
        self._mailboxes: dict[str, queue.Queue] = {}
        self._lock = threading.Lock()

    def open(self, address: str) -> "MemoryTransport":
        with self._lock:
            if address in self._mailboxes:
                raise TransportError(f"address already in use: {address}")
            mailbox = queue.Queue()
            self._mailboxes[address] = mailbox
        mailbox.put(SelfAddress(address))
        return MemoryTransport(self, address, mailbox)

    def deliver(self, destination: str, event: TransportEvent) -> None:
        with self._lock:
            mailbox = self._mailboxes.get(destination)
        if mailbox is None:
            raise TransportError(f"no route to {destination}")
        mailbox.put(event)

    def detach(self, address: str) -> None:
        with self._lock:
            mailbox = self._mailboxes.pop(address, None)
        if mailbox is not None:
            mailbox.put(_CLOSED)


class MemoryTransport(Transport):
    def __init__(self, network: MemoryNetwork, address: str, mailbox: queue.Queue):
        self.network = network
        self.address = address
        self._mailbox = mailbox
        self._closed = False

    def send(self, payload: bytes, destination: str) -> None:
        if self._closed:
            raise TransportError("transport is closed")
        self.network.deliver(destination, Payload(bytes(payload)))

    def receive(self) -> Optional[TransportEvent]:
        event = self._mailbox.get()
        if event is _CLOSED:
            self._mailbox.put(_CLOSED)
            return None
        return event

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self.network.detach(self.address)

    @property
    def closed(self) -> bool:
        return self._closed


# =========================
# TOR SESSION
# =========================

def create_tor_session(use_tor: bool = True) -> requests.Session:
    """Create a requests session, routed through Tor when asked"""
    session = requests.Session()
    if use_tor:
        session.proxies.update(TOR_PROXY)
    return session


def random_delay(min_ms=MIN_DELAY_MS, max_ms=MAX_DELAY_MS):
    """Random delay to prevent timing analysis"""
    time.sleep(random.uniform(min_ms / 1000, max_ms / 1000))


class TorHttpTransport(Transport):
    """
    Client-side HTTP leg: POSTs envelopes to <destination>/submit.

    Send-only. The relay receives these through its HTTP submit route, so
    receive() has nothing to yield and reports the transport as closed.
    """

    def __init__(self, use_tor: bool = True, enable_delays: bool = True,
                 timeout: float = HTTP_TIMEOUT, session: Optional[requests.Session] = None):
        self.use_tor = use_tor
        self.enable_delays = enable_delays
        self.timeout = timeout
        self.session = session if session is not None else create_tor_session(use_tor)

    def send(self, payload: bytes, destination: str) -> None:
        if self.enable_delays:
            random_delay()
        url = f"{destination.rstrip('/')}/submit"
        try:
            resp = self.session.post(
                url,
                data=payload,
                headers={"Content-Type": "application/octet-stream"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"could not reach relay at {url}: {e}") from e
        if resp.status_code != 200:
            raise TransportError(f"relay rejected envelope ({resp.status_code}): {resp.text}")
        logger.debug("Envelope delivered to %s", url)

    def receive(self) -> Optional[TransportEvent]:
        return None

    def close(self) -> None:
        self.session.close()
