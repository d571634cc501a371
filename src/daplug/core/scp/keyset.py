from __future__ import annotations

from dataclasses import dataclass, field, replace

from daplug.core.errors import InvalidDiversifier, InvalidInput
from daplug.core.scp.crypto import KEY_LEN, diversify, kcv

# Keyset usage (role) values
USAGE_GP = 0x01
USAGE_GP_AUTH = 0x02
USAGE_HOTP = 0x03
USAGE_HOTP_VALIDATION = 0x04
USAGE_TOTP_VALIDATION = 0x04
USAGE_OTP = 0x05
USAGE_ENC = 0x06
USAGE_DEC = 0x07
USAGE_ENC_DEC = 0x08
USAGE_SAM_CTX = 0x09
USAGE_SAM_GP = 0x0A
USAGE_SAM_DIV1 = 0x0B
USAGE_SAM_DIV2 = 0x0C
USAGE_SAM_CLEAR_EXPORT_DIV1 = 0x0D
USAGE_SAM_CLEAR_EXPORT_DIV2 = 0x0E
USAGE_IMPORT_EXPORT_TRANSIENT = 0x0F
USAGE_TOTP_TIME_SRC = 0x10
USAGE_TOTP = 0x11
USAGE_HMAC_SHA1 = 0x12
USAGE_HOTP_LOCK = 0x13
USAGE_TOTP_LOCK = 0x14

ENC = 0
MAC = 1
DEK = 2


@dataclass(frozen=True)
class Keyset:
    """Host-side keyset: ENC, MAC and DEK keys plus version/usage/access.

    MAC and DEK default to the ENC key when omitted. ``access`` packs two
    access bytes whose meaning depends on ``usage``.
    """

    version: int
    enc: bytes
    mac: bytes | None = None
    dek: bytes | None = None
    usage: int = 0
    access: int = 0
    _keys: tuple[bytes, bytes, bytes] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= self.version <= 0xFF:
            raise InvalidInput(f"keyset version out of range: {self.version!r}")
        if not 0 <= self.usage <= 0xFF:
            raise InvalidInput(f"keyset usage out of range: {self.usage!r}")
        if not 0 <= self.access <= 0xFFFF:
            raise InvalidInput(f"keyset access out of range: {self.access!r}")
        keys = []
        for name in ("enc", "mac", "dek"):
            value = getattr(self, name)
            value = bytes(self.enc if value is None else value)
            if len(value) != KEY_LEN:
                raise InvalidInput(f"{name} key must be {KEY_LEN} bytes, got {len(value)}")
            object.__setattr__(self, name, value)
            keys.append(value)
        object.__setattr__(self, "_keys", tuple(keys))

    def key(self, index: int) -> bytes:
        """Return key 0 (ENC), 1 (MAC) or 2 (DEK)."""
        if index not in (ENC, MAC, DEK):
            raise InvalidInput(f"invalid key index: {index}")
        return self._keys[index]

    def kcvs(self) -> tuple[bytes, bytes, bytes]:
        return tuple(kcv(k) for k in self._keys)

    def __repr__(self) -> str:
        kcvs = "/".join(k.hex().upper() for k in self.kcvs())
        return (
            f"Keyset(version={self.version:02X}, usage={self.usage:02X}, "
            f"access={self.access:04X}, kcv={kcvs})"
        )


def diversify_keyset(keyset: Keyset, diversifier: bytes) -> Keyset:
    """Diversify each key of *keyset*; version, usage and access are kept."""
    if len(diversifier) != KEY_LEN:
        raise InvalidDiversifier(
            f"not a valid diversifier: {bytes(diversifier).hex().upper()}"
        )
    return replace(
        keyset,
        enc=diversify(keyset.enc, diversifier),
        mac=diversify(keyset.mac, diversifier),
        dek=diversify(keyset.dek, diversifier),
    )
