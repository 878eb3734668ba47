# vaultrelay/models/message.py

import json

from pydantic import BaseModel, ConfigDict, ValidationError, field_serializer, field_validator

from vaultrelay.core.errors import EnvelopeDecodeError

NONCE_SIZE = 12
TAG_SIZE = 16


class Message(BaseModel):
    """A plaintext chat line. Only ever exists on clients."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sender: str
    body: str

    def canonical_bytes(self) -> bytes:
        return json.dumps(
            {"sender": self.sender, "body": self.body},
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")


class EncryptedMessage(BaseModel):
    """
    Envelope stored by the relay: nonce + AES-GCM ciphertext (tag appended).

    Wire form is JSON with both fields hex encoded:
        {"nonce": "<24 hex chars>", "data": "<hex>"}
    """

    model_config = ConfigDict(frozen=True)

    nonce: bytes
    data: bytes

    @field_validator("nonce", "data", mode="before")
    @classmethod
    def _decode_hex(cls, value):
        if isinstance(value, str):
            return bytes.fromhex(value)
        return value

    @field_validator("nonce")
    @classmethod
    def _check_nonce(cls, value: bytes) -> bytes:
        if len(value) != NONCE_SIZE:
            raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(value)}")
        return value

    @field_serializer("nonce", "data")
    def _encode_hex(self, value: bytes) -> str:
        return value.hex()

    def to_wire(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_wire(cls, payload: bytes) -> "EncryptedMessage":
        try:
            return cls.model_validate_json(payload)
        except ValidationError as e:
            raise EnvelopeDecodeError(str(e)) from e
