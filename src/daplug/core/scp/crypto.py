"""Two-key triple-DES primitives for the Daplug secure channel.

Keys are 16-byte GlobalPlatform keys (K1 || K2), expanded to K1 || K2 || K1
before use.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from daplug.core.errors import InvalidDiversifier, InvalidInput
from daplug.core.scp.padding import pad80
from daplug.core.scp.security import SessionKeys

if TYPE_CHECKING:
    from daplug.core.scp.keyset import Keyset

KEY_LEN = 16
BLOCK_LEN = 8

# Session key derivation constants
KEY_CONSTANT_S_ENC = b"\x01\x82"
KEY_CONSTANT_R_ENC = b"\x01\x83"
KEY_CONSTANT_C_MAC = b"\x01\x01"
KEY_CONSTANT_R_MAC = b"\x01\x02"
KEY_CONSTANT_DEK = b"\x01\x81"

_ZERO_ICV = b"\x00" * BLOCK_LEN


def _check_key(key: bytes) -> None:
    if len(key) != KEY_LEN:
        raise InvalidInput(f"invalid key length: {len(key)} (expected {KEY_LEN})")


def _check_blocks(data: bytes) -> None:
    if len(data) % BLOCK_LEN:
        raise InvalidInput(f"data length {len(data)} is not a multiple of {BLOCK_LEN}")


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def expand_key(key: bytes) -> bytes:
    """Return the 24-byte K1 || K2 || K1 form of a 16-byte key."""
    _check_key(key)
    return key + key[:8]


def generate_challenge(size: int = 8) -> bytes:
    return os.urandom(size)


def cbc_des3(
    data: bytes, key: bytes, iv: bytes | None = None, encrypt: bool = True
) -> bytes:
    """3DES-CBC without padding; zero IV when *iv* is None."""
    _check_key(key)
    _check_blocks(data)
    if iv is None:
        iv = _ZERO_ICV
    if len(iv) != BLOCK_LEN:
        raise InvalidInput(f"invalid IV length: {len(iv)}")
    cipher = Cipher(TripleDES(expand_key(key)), modes.CBC(iv))
    ctx = cipher.encryptor() if encrypt else cipher.decryptor()
    return ctx.update(data) + ctx.finalize()


def ecb_des3(data: bytes, key: bytes, encrypt: bool = True) -> bytes:
    """3DES-ECB without padding."""
    _check_key(key)
    _check_blocks(data)
    cipher = Cipher(TripleDES(expand_key(key)), modes.ECB())
    ctx = cipher.encryptor() if encrypt else cipher.decryptor()
    return ctx.update(data) + ctx.finalize()


def _des_cbc(key: bytes, iv: bytes, data: bytes) -> bytes:
    """Single-DES CBC encrypt with K1 only (one-key 3DES)."""
    cipher = Cipher(TripleDES(key[:8] * 3), modes.CBC(iv))
    enc = cipher.encryptor()
    return enc.update(data) + enc.finalize()


def full_mac(data: bytes, key: bytes) -> bytes:
    """Last block of the 3DES-CBC encryption of pad80(*data*), zero IV.

    Only the handshake cryptograms use it; secure messaging uses retail_mac.
    """
    return cbc_des3(pad80(data), key)[-BLOCK_LEN:]


def retail_mac(data: bytes, key: bytes, chain: bytes, command: bool) -> bytes:
    """MAC of one secured command (*command* true) or response.

    *chain* links the MAC to the previous one of the same direction. A
    command MAC runs over chain || data from a zero ICV, so the EXTERNAL
    AUTHENTICATE MAC, whose chain is empty, covers the frame alone. A
    response MAC runs over data alone and starts from the previous R-MAC.

    Every block but the last goes through DES-CBC under K1; the last one is
    XORed with that result and encrypted with the full key.
    """
    _check_key(key)
    if command:
        icv = _ZERO_ICV
        data = chain + data
    else:
        icv = chain or _ZERO_ICV
        if len(icv) != BLOCK_LEN:
            raise InvalidInput(f"invalid MAC chain length: {len(icv)}")
    padded = pad80(data)
    head, last = padded[:-BLOCK_LEN], padded[-BLOCK_LEN:]
    cv = _des_cbc(key, icv, head)[-BLOCK_LEN:] if head else icv
    return ecb_des3(_xor(last, cv), key)


def session_key(counter: bytes, constant: bytes, master_key: bytes) -> bytes:
    """Derive one 16-byte session key from the 2-byte sequence counter."""
    if len(counter) != 2 or len(constant) != 2:
        raise InvalidInput("counter and derivation constant must be 2 bytes")
    block = constant + counter + b"\x00" * 12
    return cbc_des3(block, master_key)


def derive_session_keys(keyset: Keyset, counter: bytes) -> SessionKeys:
    """Derive the five session keys from a Keyset's ENC/MAC/DEK keys."""
    return SessionKeys(
        s_enc=session_key(counter, KEY_CONSTANT_S_ENC, keyset.enc),
        r_enc=session_key(counter, KEY_CONSTANT_R_ENC, keyset.enc),
        c_mac=session_key(counter, KEY_CONSTANT_C_MAC, keyset.mac),
        r_mac=session_key(counter, KEY_CONSTANT_R_MAC, keyset.mac),
        dek=session_key(counter, KEY_CONSTANT_DEK, keyset.dek),
    )


# -- cryptograms -------------------------------------------------------------


def card_cryptogram(
    host_challenge: bytes, card_challenge: bytes, counter: bytes, s_enc: bytes
) -> bytes:
    """Cryptogram the dongle returns in its INITIALIZE UPDATE response."""
    return full_mac(host_challenge + counter + card_challenge, s_enc)


def host_cryptogram(
    host_challenge: bytes, card_challenge: bytes, counter: bytes, s_enc: bytes
) -> bytes:
    """Cryptogram the host sends in EXTERNAL AUTHENTICATE."""
    return full_mac(counter + card_challenge + host_challenge, s_enc)


# -- key management ----------------------------------------------------------


def kcv(key: bytes) -> bytes:
    """First 3 bytes of an all-zero block encrypted under *key*."""
    return ecb_des3(_ZERO_ICV, key)[:3]


def diversify(master_key: bytes, diversifier: bytes) -> bytes:
    """Diversify a 16-byte key: 3DES-CBC of the diversifier under zero IV."""
    if len(diversifier) != KEY_LEN:
        raise InvalidDiversifier(
            f"invalid diversifier length: {len(diversifier)} (expected {KEY_LEN})"
        )
    return cbc_des3(diversifier, master_key)
