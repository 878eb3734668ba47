"""Tests for the AES-GCM envelope codec."""

from __future__ import annotations

import logging
from collections import Counter

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from vaultrelay.core.crypto import (
    CryptoCodec,
    decrypt_message,
    encrypt_message,
    pad_message,
    unpad_message,
)
from vaultrelay.core.errors import AuthenticationFailed, MessageFormatError
from vaultrelay.core.key import Key
from vaultrelay.models.message import NONCE_SIZE, TAG_SIZE, EncryptedMessage, Message


def fixed_source(n: int) -> bytes:
    """Deterministic stand-in for os.urandom."""
    return bytes(range(n))


@pytest.fixture
def message() -> Message:
    return Message(sender="alice", body="hello room")


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    """decrypt(encrypt(m, k), k) == m."""

    @pytest.mark.parametrize(
        "sender,body",
        [
            ("alice", "hello"),
            ("", ""),
            ("bob", "ünïcödé ✓ 日本語"),
            ("carol", 'quotes " and \\ backslashes\nnewline'),
            ("dave", "x" * 10_000),
        ],
    )
    def test_roundtrip(self, room_key: Key, sender: str, body: str) -> None:
        codec = CryptoCodec()
        m = Message(sender=sender, body=body)
        assert codec.decrypt(codec.encrypt(m, room_key), room_key) == m

    def test_module_helpers(self, room_key: Key, message: Message) -> None:
        assert decrypt_message(encrypt_message(message, room_key), room_key) == message

    def test_padded_roundtrip(self, room_key: Key, message: Message) -> None:
        codec = CryptoCodec(padded_size=256)
        assert codec.decrypt(codec.encrypt(message, room_key), room_key) == message

    def test_padded_and_unpadded_interoperate(self, room_key: Key, message: Message) -> None:
        """Readers decode frames regardless of the writer's padding setting."""
        padded = CryptoCodec(padded_size=512).encrypt(message, room_key)
        assert CryptoCodec(padded_size=0).decrypt(padded, room_key) == message


# ---------------------------------------------------------------------------
# Encoding with an injected random source
# ---------------------------------------------------------------------------


class TestEncoding:
    """Tests using a deterministic random source."""

    def test_nonce_comes_from_source(self, room_key: Key, message: Message) -> None:
        envelope = CryptoCodec(random_source=fixed_source).encrypt(message, room_key)
        assert envelope.nonce == bytes(range(NONCE_SIZE))

    def test_deterministic_with_fixed_source(self, room_key: Key, message: Message) -> None:
        codec = CryptoCodec(random_source=fixed_source)
        assert codec.encrypt(message, room_key) == codec.encrypt(message, room_key)

    def test_ciphertext_layout(self, room_key: Key, message: Message) -> None:
        """data = AES-GCM(frame) with the 16-byte tag appended, no associated data."""
        envelope = CryptoCodec(random_source=fixed_source, padded_size=0).encrypt(message, room_key)
        frame = pad_message(message.canonical_bytes())
        assert len(envelope.data) == len(frame) + TAG_SIZE
        expected = AESGCM(room_key.secret).encrypt(envelope.nonce, frame, None)
        assert envelope.data == expected

    def test_padding_hides_length(self, room_key: Key) -> None:
        codec = CryptoCodec(padded_size=256)
        short = codec.encrypt(Message(sender="a", body="hi"), room_key)
        longer = codec.encrypt(Message(sender="a", body="x" * 150), room_key)
        assert len(short.data) == len(longer.data) == 256 + TAG_SIZE

    def test_negative_padding_rejected(self) -> None:
        with pytest.raises(ValueError):
            CryptoCodec(padded_size=-1)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuthentication:
    """Tampering and wrong keys never yield plaintext."""

    def test_wrong_key(self, room_key: Key, other_key: Key, message: Message) -> None:
        envelope = CryptoCodec().encrypt(message, room_key)
        with pytest.raises(AuthenticationFailed):
            CryptoCodec().decrypt(envelope, other_key)

    def test_every_data_bit_flip_fails(self, room_key: Key) -> None:
        codec = CryptoCodec()
        envelope = codec.encrypt(Message(sender="a", body="b"), room_key)
        for i in range(len(envelope.data)):
            for bit in range(8):
                data = bytearray(envelope.data)
                data[i] ^= 1 << bit
                tampered = EncryptedMessage(nonce=envelope.nonce, data=bytes(data))
                with pytest.raises(AuthenticationFailed):
                    codec.decrypt(tampered, room_key)

    def test_every_nonce_bit_flip_fails(self, room_key: Key, message: Message) -> None:
        codec = CryptoCodec()
        envelope = codec.encrypt(message, room_key)
        for i in range(NONCE_SIZE):
            for bit in range(8):
                nonce = bytearray(envelope.nonce)
                nonce[i] ^= 1 << bit
                tampered = EncryptedMessage(nonce=bytes(nonce), data=envelope.data)
                with pytest.raises(AuthenticationFailed):
                    codec.decrypt(tampered, room_key)

    def test_truncated_data_fails(self, room_key: Key, message: Message) -> None:
        envelope = CryptoCodec().encrypt(message, room_key)
        for length in (0, 1, TAG_SIZE - 1, len(envelope.data) - 1):
            tampered = EncryptedMessage(nonce=envelope.nonce, data=envelope.data[:length])
            with pytest.raises(AuthenticationFailed):
                CryptoCodec().decrypt(tampered, room_key)

    def test_auth_failure_is_quiet(self, room_key: Key, other_key: Key, message: Message,
                                   caplog: pytest.LogCaptureFixture) -> None:
        """Other rooms' envelopes are expected; nothing is logged at warning or above."""
        envelope = CryptoCodec().encrypt(message, room_key)
        with caplog.at_level(logging.DEBUG):
            with pytest.raises(AuthenticationFailed):
                CryptoCodec().decrypt(envelope, other_key)
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


# ---------------------------------------------------------------------------
# Post-authentication format errors
# ---------------------------------------------------------------------------


def seal(key: Key, plaintext: bytes) -> EncryptedMessage:
    """Encrypt arbitrary bytes so they authenticate under key."""
    nonce = bytes(NONCE_SIZE)
    return EncryptedMessage(nonce=nonce, data=AESGCM(key.secret).encrypt(nonce, plaintext, None))


class TestFormatErrors:
    """Authenticated payloads that are not messages."""

    @pytest.mark.parametrize(
        "plaintext",
        [
            b"",
            b"\x00\x01",
            b"\x00\x00\x00\xff{}",
            pad_message(b"not json"),
            pad_message(b'{"sender": "a"}'),
            pad_message(b'{"sender": 1, "body": 2}'),
            pad_message(b'{"sender": "a", "body": "b", "extra": true}'),
            pad_message(b"\xff\xfe"),
        ],
    )
    def test_format_error(self, room_key: Key, plaintext: bytes) -> None:
        with pytest.raises(MessageFormatError):
            CryptoCodec().decrypt(seal(room_key, plaintext), room_key)

    def test_format_error_is_not_auth_failure(self, room_key: Key) -> None:
        with pytest.raises(MessageFormatError) as excinfo:
            CryptoCodec().decrypt(seal(room_key, pad_message(b"[]")), room_key)
        assert not isinstance(excinfo.value, AuthenticationFailed)


# ---------------------------------------------------------------------------
# Nonce distribution
# ---------------------------------------------------------------------------


class TestNonces:
    """Nonces are drawn from the real random source."""

    SAMPLE = 4000

    def test_no_collisions_in_sample(self, room_key: Key, message: Message) -> None:
        """With 96-bit nonces a collision among a few thousand is ~2^-73."""
        codec = CryptoCodec()
        nonces = {codec.encrypt(message, room_key).nonce for _ in range(self.SAMPLE)}
        assert len(nonces) == self.SAMPLE

    def test_byte_values_spread(self, room_key: Key, message: Message) -> None:
        """Every byte value shows up and none dominates (48k bytes, ~188 per value)."""
        codec = CryptoCodec()
        counts = Counter()
        for _ in range(self.SAMPLE):
            counts.update(codec.encrypt(message, room_key).nonce)
        assert len(counts) == 256
        expected = self.SAMPLE * NONCE_SIZE / 256
        assert max(counts.values()) < expected * 1.6
        assert min(counts.values()) > expected * 0.4

    def test_every_position_varies(self, room_key: Key, message: Message) -> None:
        codec = CryptoCodec()
        nonces = [codec.encrypt(message, room_key).nonce for _ in range(200)]
        for position in range(NONCE_SIZE):
            assert len({n[position] for n in nonces}) > 100


# ---------------------------------------------------------------------------
# Framing
# ---------------------------------------------------------------------------


class TestFraming:
    """Tests for pad_message / unpad_message."""

    def test_unpadded_frame(self) -> None:
        assert pad_message(b"abc") == b"\x00\x00\x00\x03abc"

    def test_bucket_rounding(self) -> None:
        assert len(pad_message(b"a" * 10, padded_size=16)) == 16
        assert len(pad_message(b"a" * 12, padded_size=16)) == 16
        assert len(pad_message(b"a" * 13, padded_size=16)) == 32

    def test_unpad(self) -> None:
        assert unpad_message(pad_message(b"payload", padded_size=64)) == b"payload"

    def test_length_prefix_too_large(self) -> None:
        with pytest.raises(MessageFormatError):
            unpad_message(b"\x00\x00\x00\x09abc")
