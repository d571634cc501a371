from daplug.core.scp.channel import SecureChannel
from daplug.core.scp.keyset import Keyset, diversify_keyset
from daplug.core.scp.security import (
    C_DEC,
    C_MAC,
    R_ENC,
    R_MAC,
    AuthenticateResult,
    SessionKeys,
)
from daplug.core.scp.session import Session

__all__ = [
    "AuthenticateResult",
    "C_DEC",
    "C_MAC",
    "Keyset",
    "R_ENC",
    "R_MAC",
    "SecureChannel",
    "Session",
    "SessionKeys",
    "diversify_keyset",
]
