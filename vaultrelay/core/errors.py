# vaultrelay/core/errors.py


class VaultRelayError(Exception):
    """Base class for all vaultrelay errors."""


class KeyFormatError(VaultRelayError, ValueError):
    """The room key is not 64 hex characters (32 bytes)."""


class DecryptionError(VaultRelayError):
    pass


class AuthenticationFailed(DecryptionError):
    """
    The AES-GCM tag did not verify.

    This is the normal outcome for envelopes from other rooms, since every
    room shares the same relay log.
    """


class MessageFormatError(DecryptionError):
    """The envelope authenticated but the plaintext could not be parsed."""


class EnvelopeDecodeError(VaultRelayError, ValueError):
    """Bytes received by the relay are not a valid envelope."""


class TransportError(VaultRelayError):
    """Delivery through the transport failed."""


class RelayUnavailable(TransportError):
    """The relay could not be queried or returned an unusable response."""
