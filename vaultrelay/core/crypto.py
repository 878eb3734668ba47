# vaultrelay/core/crypto.py

import os
from typing import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vaultrelay.core.config import PADDED_MESSAGE_SIZE
from vaultrelay.core.errors import AuthenticationFailed, MessageFormatError
from vaultrelay.core.key import Key
from vaultrelay.models.message import NONCE_SIZE, EncryptedMessage, Message

LENGTH_PREFIX = 4

RandomSource = Callable[[int], bytes]

# ---------- FRAMING ----------

def pad_message(message_bytes: bytes, padded_size: int = 0,
                random_source: RandomSource = os.urandom) -> bytes:
    """
    Length prefix (4, big endian) + message + random fill.

    The frame is rounded up to a multiple of padded_size so ciphertext
    lengths only reveal the bucket. padded_size 0 means no fill.
    """
    actual_length = len(message_bytes)
    if actual_length >= 2 ** 32:
        raise ValueError("Message too large")
    framed_length = LENGTH_PREFIX + actual_length
    if padded_size > 0:
        buckets = -(-framed_length // padded_size)
        framed_length = buckets * padded_size
    length_prefix = actual_length.to_bytes(LENGTH_PREFIX, 'big')
    padding = random_source(framed_length - LENGTH_PREFIX - actual_length)
    return length_prefix + message_bytes + padding


def unpad_message(padded_bytes: bytes) -> bytes:
    """Extract original message from a frame"""
    if len(padded_bytes) < LENGTH_PREFIX:
        raise MessageFormatError("plaintext shorter than its length prefix")
    length = int.from_bytes(padded_bytes[:LENGTH_PREFIX], 'big')
    if length > len(padded_bytes) - LENGTH_PREFIX:
        raise MessageFormatError(f"length prefix {length} exceeds plaintext size")
    return padded_bytes[LENGTH_PREFIX:LENGTH_PREFIX + length]


# ---------- CODEC ----------

class CryptoCodec:
    """
    AES-256-GCM envelope codec.

    Nonces are 12 random bytes per message, no counter, so nothing has to be
    remembered across restarts. The random source is injectable so encoding
    can be checked with fixed bytes.

    Every reader decrypts every envelope in the shared log and keeps the ones
    that authenticate under its room key, which is O(N) AES-GCM attempts per
    reader. That cost is the scaling limit of the relay.
    """

    def __init__(self, random_source: RandomSource = os.urandom,
                 padded_size: int = PADDED_MESSAGE_SIZE):
        if padded_size < 0:
            raise ValueError("padded_size must be >= 0")
        self._random = random_source
        self.padded_size = padded_size

    def encrypt(self, message: Message, key: Key) -> EncryptedMessage:
        plaintext = pad_message(message.canonical_bytes(), self.padded_size, self._random)
        nonce = self._random(NONCE_SIZE)
        ciphertext = AESGCM(key.secret).encrypt(nonce, plaintext, None)
        return EncryptedMessage(nonce=nonce, data=ciphertext)

    def decrypt(self, encrypted: EncryptedMessage, key: Key) -> Message:
        """
        Raises AuthenticationFailed when the tag does not verify (wrong room
        or tampered envelope) and MessageFormatError when it verifies but the
        payload does not parse.
        """
        try:
            plaintext = AESGCM(key.secret).decrypt(encrypted.nonce, encrypted.data, None)
        except InvalidTag:
            raise AuthenticationFailed("envelope did not authenticate") from None

        payload = unpad_message(plaintext)
        try:
            return Message.model_validate_json(payload)
        except ValueError as e:
            raise MessageFormatError(f"authenticated payload is not a message: {e}") from e


_default_codec = CryptoCodec()


def encrypt_message(message: Message, key: Key) -> EncryptedMessage:
    return _default_codec.encrypt(message, key)


def decrypt_message(encrypted: EncryptedMessage, key: Key) -> Message:
    return _default_codec.decrypt(encrypted, key)
