# vaultrelay/clients/fetcher.py

import logging
from typing import Optional, Protocol

import requests
from pydantic import TypeAdapter, ValidationError

from vaultrelay.core.config import HTTP_TIMEOUT
from vaultrelay.core.errors import RelayUnavailable
from vaultrelay.models.message import EncryptedMessage

logger = logging.getLogger(__name__)

_envelope_list = TypeAdapter(list[EncryptedMessage])


class RelayFetcher(Protocol):
    """Anything that can answer "every envelope from index on". RelayLog qualifies."""

    def fetch_since(self, index: int) -> list[EncryptedMessage]:
        ...


class HttpRelayFetcher:
    """Reads the shared log over GET /fetch/{index}."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: float = HTTP_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout

    def fetch_since(self, index: int) -> list[EncryptedMessage]:
        url = f"{self.base_url}/fetch/{index}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            return _envelope_list.validate_json(resp.content)
        except requests.RequestException as e:
            raise RelayUnavailable(f"fetch from {url} failed: {e}") from e
        except ValidationError as e:
            # The relay validates envelopes on ingest, so this is a relay fault
            raise RelayUnavailable(f"relay sent a malformed batch: {e}") from e

    def close(self) -> None:
        self.session.close()
