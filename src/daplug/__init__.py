from daplug.core.errors import (
    AuthenticationFailed,
    CommunicationError,
    DaplugError,
    DeviceRejected,
    InvalidDiversifier,
    InvalidInput,
    PaddingInvalid,
    ResponseDecryptionFailed,
    ResponseIntegrityFailed,
    SecureChannelError,
    SessionClosed,
)
from daplug.core.scp import (
    C_DEC,
    C_MAC,
    R_ENC,
    R_MAC,
    AuthenticateResult,
    Keyset,
    Session,
    diversify_keyset,
)
from daplug.core.smartcard import APDU, Response, Transport

__all__ = [
    "APDU",
    "AuthenticateResult",
    "AuthenticationFailed",
    "C_DEC",
    "C_MAC",
    "CommunicationError",
    "DaplugError",
    "DeviceRejected",
    "InvalidDiversifier",
    "InvalidInput",
    "Keyset",
    "PaddingInvalid",
    "R_ENC",
    "R_MAC",
    "Response",
    "ResponseDecryptionFailed",
    "ResponseIntegrityFailed",
    "SecureChannelError",
    "Session",
    "SessionClosed",
    "Transport",
    "diversify_keyset",
]
