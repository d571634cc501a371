"""Security levels and session key material."""

from __future__ import annotations

from dataclasses import dataclass

# Security level flags
C_MAC = 0x01
C_DEC = 0x02
R_MAC = 0x10
R_ENC = 0x20

ALL_LEVELS = C_MAC | C_DEC | R_MAC | R_ENC

LEVEL_NAMES = {"C_MAC": C_MAC, "C_DEC": C_DEC, "R_MAC": R_MAC, "R_ENC": R_ENC}


def format_level(level: int) -> str:
    """Return e.g. ``C_MAC|R_MAC`` for a security level bitmask."""
    names = [name for name, flag in LEVEL_NAMES.items() if level & flag]
    return "|".join(names) or "NONE"


@dataclass(frozen=True)
class SessionKeys:
    """Session keys derived during the handshake."""

    s_enc: bytes
    r_enc: bytes
    c_mac: bytes
    r_mac: bytes
    dek: bytes

    def __repr__(self) -> str:
        return "SessionKeys(<redacted>)"


@dataclass(frozen=True)
class AuthenticateResult:
    """Outcome of a successful handshake."""

    security_level: int
    host_challenge: bytes
    key_diversification_data: bytes
    key_info: bytes
    counter: bytes
    card_challenge: bytes
