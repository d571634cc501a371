"""Typed errors raised by the dongle client.

``retryable`` separates transient transport problems from failures that
invalidate the secure channel.
"""

from __future__ import annotations


class DaplugError(Exception):
    """Base class for every error raised by this package."""

    retryable = False


class InvalidInput(DaplugError, ValueError):
    """Malformed key, diversifier, challenge or frame (rejected before I/O)."""


class InvalidDiversifier(InvalidInput):
    """Diversifier is not exactly 16 bytes."""


class PaddingInvalid(InvalidInput):
    """No 0x80 padding marker found while stripping padding."""


class CommunicationError(DaplugError):
    """Transport I/O error or timeout."""

    retryable = True


class SessionClosed(DaplugError):
    """Operation requires an open secure channel."""

    def __init__(self, message: str = "secure channel is not open") -> None:
        super().__init__(message)


class DeviceRejected(DaplugError):
    """The device answered with a status word other than 9000."""

    def __init__(self, sw: int, message: str | None = None) -> None:
        super().__init__(message or f"device rejected command (SW={sw:04X})")
        self.sw = sw


class SecureChannelError(DaplugError):
    """Cryptographic failure; the secure channel is closed when raised."""


class AuthenticationFailed(SecureChannelError):
    """Handshake failed: bad status word, truncated data or cryptogram mismatch."""

    def __init__(self, message: str, sw: int | None = None) -> None:
        if sw is not None:
            message = f"{message} (SW={sw:04X})"
        super().__init__(message)
        self.sw = sw


class ResponseIntegrityFailed(SecureChannelError):
    """R-MAC missing or not matching."""


class ResponseDecryptionFailed(SecureChannelError):
    """Encrypted response data could not be decrypted or unpadded."""
