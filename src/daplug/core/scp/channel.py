from __future__ import annotations

import hmac

from daplug.core.errors import (
    InvalidInput,
    PaddingInvalid,
    ResponseDecryptionFailed,
    ResponseIntegrityFailed,
)
from daplug.core.scp.crypto import BLOCK_LEN, cbc_des3, retail_mac
from daplug.core.scp.padding import pad80, unpad80
from daplug.core.scp.protocol import is_external_authenticate
from daplug.core.scp.security import C_DEC, C_MAC, R_ENC, R_MAC, SessionKeys
from daplug.core.smartcard import APDU, Response

MAC_LEN = 8
CLA_SECURE_MESSAGING = 0x04


class SecureChannel:
    """Secure channel state: session keys and the C-MAC / R-MAC chains.

    Created during the handshake and installed on the Session once
    EXTERNAL AUTHENTICATE succeeds. Every outgoing command goes through
    wrap() and every response through unwrap(), strictly in order: each
    MAC depends on the previous one.

    The C-MAC chain starts empty, so the first MAC of the session (the
    EXTERNAL AUTHENTICATE one) has no chain prefix. The R-MAC chain is
    seeded from the C-MAC chain when the handshake completes.
    """

    def __init__(self, keys: SessionKeys, security_level: int) -> None:
        self._keys = keys
        self._security_level = security_level
        self._c_mac = b""
        self._r_mac = b""

    @property
    def security_level(self) -> int:
        return self._security_level

    @property
    def keys(self) -> SessionKeys:
        return self._keys

    @property
    def c_mac(self) -> bytes:
        return self._c_mac

    @property
    def r_mac(self) -> bytes:
        return self._r_mac

    def start_response_chain(self) -> None:
        """Seed the R-MAC chain with the current C-MAC."""
        self._r_mac = self._c_mac

    def wrap(self, apdu: APDU) -> APDU:
        """Apply C-DEC and C-MAC to an outgoing command."""
        ext_auth = is_external_authenticate(apdu)
        data = apdu.data
        cla = apdu.cla

        # Encrypt command data (never the EXTERNAL AUTHENTICATE cryptogram)
        if (self._security_level & C_DEC) and not ext_auth:
            data = cbc_des3(pad80(data), self._keys.s_enc)

        # C-MAC is forced for EXTERNAL AUTHENTICATE
        macd = bool(self._security_level & C_MAC) or ext_auth
        size = len(data) + (MAC_LEN if macd else 0)
        if size > 0xFF:
            raise InvalidInput(f"wrapped data too long: {size} bytes")

        mac = b""
        if macd:
            cla |= CLA_SECURE_MESSAGING
            lc = apdu.lc + MAC_LEN
            # MAC covers the modified header and the plain data
            mac_input = bytes([cla, apdu.ins, apdu.p1, apdu.p2, lc]) + apdu.data
            mac = retail_mac(mac_input, self._keys.c_mac, self._c_mac, command=True)
            self._c_mac = mac

        if not data and not mac:
            return apdu
        return APDU(cla=cla, ins=apdu.ins, p1=apdu.p1, p2=apdu.p2, data=data + mac)

    def unwrap(self, apdu: APDU, response: Response) -> Response:
        """Decrypt and verify an incoming response.

        *apdu* is the command as it was before wrap(). Raises
        ResponseDecryptionFailed or ResponseIntegrityFailed; the caller is
        responsible for closing the channel.
        """
        r_mac = self._security_level & R_MAC
        r_enc = self._security_level & R_ENC
        if not (r_mac or r_enc):
            return response

        data = response.data
        received_mac = b""
        if r_mac:
            if len(data) < MAC_LEN:
                raise ResponseIntegrityFailed("response has no R-MAC")
            data, received_mac = data[:-MAC_LEN], data[-MAC_LEN:]

        if r_enc and data:
            data = self._decrypt(data)

        if r_mac:
            sw = bytes([response.sw1, response.sw2])
            mac_input = apdu.to_bytes() + bytes([len(data)]) + data + sw
            expected = retail_mac(mac_input, self._keys.r_mac, self._r_mac, command=False)
            if not hmac.compare_digest(expected, received_mac):
                raise ResponseIntegrityFailed("response integrity failed")
            self._r_mac = expected

        return Response(data=data, sw1=response.sw1, sw2=response.sw2)

    def _decrypt(self, data: bytes) -> bytes:
        if len(data) % BLOCK_LEN:
            raise ResponseDecryptionFailed(
                f"encrypted response length {len(data)} is not a multiple of {BLOCK_LEN}"
            )
        try:
            return unpad80(cbc_des3(data, self._keys.r_enc, encrypt=False))
        except PaddingInvalid as exc:
            raise ResponseDecryptionFailed("response decryption failed") from exc
