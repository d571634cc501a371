from __future__ import annotations

import pytest

from daplug.core.errors import CommunicationError
from daplug.core.scp.crypto import (
    card_cryptogram,
    cbc_des3,
    derive_session_keys,
    host_cryptogram,
    retail_mac,
)
from daplug.core.scp.keyset import Keyset, diversify_keyset
from daplug.core.scp.padding import pad80, unpad80
from daplug.core.scp.security import C_DEC, R_ENC, R_MAC
from daplug.core.smartcard.types import APDU

GP_KEY = bytes.fromhex("404142434445464748494A4B4C4D4E4F")
COUNTER = bytes.fromhex("002A")
CARD_CHALLENGE = bytes.fromhex("A1A2A3A4A5A6")
KEY_DIV_DATA = bytes.fromhex("00112233445566778899")
KEY_INFO = bytes.fromhex("0101")
HOST_CHALLENGE = bytes.fromhex("0102030405060708")

SW_OK = 0x9000


def flip_bit(data: bytes, index: int) -> bytes:
    buf = bytearray(data)
    buf[index] ^= 0x01
    return bytes(buf)


class SimulatedDongle:
    """Device side of the secure channel, as a Transport.

    Responds to INITIALIZE UPDATE and EXTERNAL AUTHENTICATE, then unwraps
    secured commands, passes them to ``handler`` and wraps its answer
    according to the negotiated security level. An unprotected command
    drops the channel.
    """

    def __init__(self, keyset: Keyset) -> None:
        self.keyset = keyset
        self.counter = COUNTER
        self.card_challenge = CARD_CHALLENGE
        self.handler = lambda apdu: (apdu.data, SW_OK)
        self.received: list[bytes] = []
        self.initialize_sw = SW_OK
        self.tamper_cryptogram = False
        self.tamper_response = None
        self.tamper_command = None
        self.fail = False
        self.error = None
        self.pad_response = True
        self.closed = False
        self._drop_channel()

    def _drop_channel(self) -> None:
        self.keys = None
        self.host_challenge = None
        self.level = 0
        self.c_mac = b""
        self.r_mac = b""
        self.open = False

    # -- transport --

    def exchange(self, command: bytes) -> bytes:
        self.received.append(command)
        if self.fail:
            raise CommunicationError("timeout")
        if self.error is not None:
            raise self.error
        apdu = APDU.from_bytes(command)
        if apdu.ins == 0x50:
            return self._initialize_update(apdu)
        if apdu.cla == 0x84 and apdu.ins == 0x82:
            return self._external_authenticate(apdu)
        if not self.open:
            return b"\x69\x85"
        if not apdu.cla & 0x04:
            self._drop_channel()
            return b"\x6D\x00"
        return self._secure_command(apdu)

    def close(self) -> None:
        self.closed = True

    # -- handshake --

    def _initialize_update(self, apdu: APDU) -> bytes:
        keyset = self.keyset
        if apdu.cla == 0xD0:
            keyset = diversify_keyset(self.keyset, apdu.data[8:24])
        self._drop_channel()
        if self.initialize_sw != SW_OK:
            return self.initialize_sw.to_bytes(2, "big")
        self.host_challenge = apdu.data[:8]
        self.keys = derive_session_keys(keyset, self.counter)
        cryptogram = card_cryptogram(
            self.host_challenge, self.card_challenge, self.counter, self.keys.s_enc
        )
        if self.tamper_cryptogram:
            cryptogram = flip_bit(cryptogram, 0)
        data = KEY_DIV_DATA + KEY_INFO + self.counter + self.card_challenge + cryptogram
        return data + b"\x90\x00"

    def _external_authenticate(self, apdu: APDU) -> bytes:
        if self.keys is None:
            return b"\x69\x85"
        cryptogram, mac = apdu.data[:8], apdu.data[8:]
        header = bytes([apdu.cla, apdu.ins, apdu.p1, apdu.p2, apdu.lc])
        expected_mac = retail_mac(header + cryptogram, self.keys.c_mac, b"", command=True)
        expected = host_cryptogram(
            self.host_challenge, self.card_challenge, self.counter, self.keys.s_enc
        )
        if mac != expected_mac or cryptogram != expected:
            self._drop_channel()
            return b"\x63\x00"
        self.level = apdu.p1
        self.c_mac = self.r_mac = mac
        self.open = True
        return b"\x90\x00"

    # -- secure messaging --

    def _secure_command(self, apdu: APDU) -> bytes:
        data = apdu.data
        if self.tamper_command is not None:
            data = flip_bit(data, self.tamper_command)
        payload, mac = data[:-8], data[-8:]
        plain = payload
        if self.level & C_DEC:
            plain = unpad80(cbc_des3(payload, self.keys.s_enc, encrypt=False))
        header = bytes([apdu.cla, apdu.ins, apdu.p1, apdu.p2, len(plain) + 8])
        expected = retail_mac(header + plain, self.keys.c_mac, self.c_mac, command=True)
        if expected != mac:
            self._drop_channel()
            return b"\x69\x82"
        self.c_mac = mac

        original = APDU(apdu.cla & ~0x04 & 0xFF, apdu.ins, apdu.p1, apdu.p2, plain)
        out_data, sw = self.handler(original)
        return self._wrap_response(original, out_data, sw)

    def _wrap_response(self, original: APDU, data: bytes, sw: int) -> bytes:
        sw_bytes = sw.to_bytes(2, "big")
        out = data
        if self.level & R_ENC and data:
            out = cbc_des3(pad80(data) if self.pad_response else data, self.keys.r_enc)
        if self.level & R_MAC:
            mac_input = original.to_bytes() + bytes([len(data)]) + data + sw_bytes
            self.r_mac = retail_mac(mac_input, self.keys.r_mac, self.r_mac, command=False)
            out += self.r_mac
        if self.tamper_response is not None:
            out = flip_bit(out, self.tamper_response)
        return out + sw_bytes


@pytest.fixture
def keyset() -> Keyset:
    return Keyset(version=0x01, enc=GP_KEY)


@pytest.fixture
def dongle(keyset) -> SimulatedDongle:
    return SimulatedDongle(keyset)
