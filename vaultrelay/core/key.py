# vaultrelay/core/key.py

import re
from dataclasses import dataclass, field

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vaultrelay.core.errors import KeyFormatError

KEY_SIZE = 32
_HEX_KEY = re.compile(r"[0-9a-fA-F]{%d}" % (KEY_SIZE * 2))


@dataclass(frozen=True)
class Key:
    """
    Pre-shared 256-bit room key.

    Everyone holding the same key is in the same room. The relay never
    holds one.
    """

    secret: bytes = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.secret, bytes) or len(self.secret) != KEY_SIZE:
            raise KeyFormatError(f"room key must be exactly {KEY_SIZE} bytes")

    @classmethod
    def from_hex(cls, text: str) -> "Key":
        """Parse a 64-character hex string into a key."""
        if not isinstance(text, str):
            raise KeyFormatError("room key must be a hex string")
        text = text.strip()
        if not _HEX_KEY.fullmatch(text):
            raise KeyFormatError(
                f"room key must be {KEY_SIZE * 2} hex characters, got {len(text)}"
            )
        return cls(bytes.fromhex(text))

    @classmethod
    def generate(cls) -> "Key":
        return cls(AESGCM.generate_key(bit_length=256))

    def hex(self) -> str:
        return self.secret.hex()
