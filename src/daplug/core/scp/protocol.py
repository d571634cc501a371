"""Secure channel establishment commands (INITIALIZE UPDATE, EXTERNAL AUTHENTICATE)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from daplug.core.errors import AuthenticationFailed
from daplug.core.smartcard import APDU, Response
from daplug.core.smartcard.logging import PROTOCOL, RESET, color_sw

if TYPE_CHECKING:
    from daplug.core.scp.channel import SecureChannel

lg = logging.getLogger(__name__)

CLA_GP = 0x80
CLA_DIVERSIFIED = 0xD0
INS_INITIALIZE_UPDATE = 0x50
INS_EXTERNAL_AUTHENTICATE = 0x82
P2_DIVERSIFIED = 0x10

# Any command the secure channel does not expect makes the dongle drop it.
RESET_APDU = APDU(cla=0x00, ins=0x00, p1=0x00, p2=0x00, le=0x00)

INITIALIZE_UPDATE_RESPONSE_LEN = 28


def is_external_authenticate(apdu: APDU) -> bool:
    return apdu.cla == CLA_GP and apdu.ins == INS_EXTERNAL_AUTHENTICATE


def initialize_update(
    key_version: int, host_challenge: bytes, diversifier: bytes | None = None
) -> APDU:
    """INITIALIZE UPDATE (80 50), or D0 50 .. 10 with a diversifier appended."""
    if diversifier is None:
        return APDU(
            cla=CLA_GP, ins=INS_INITIALIZE_UPDATE, p1=key_version, p2=0x00,
            data=host_challenge,
        )
    return APDU(
        cla=CLA_DIVERSIFIED, ins=INS_INITIALIZE_UPDATE, p1=key_version,
        p2=P2_DIVERSIFIED, data=host_challenge + diversifier,
    )


def external_authenticate(security_level: int, host_cryptogram: bytes) -> APDU:
    """EXTERNAL AUTHENTICATE (80 82), before C-MAC wrapping."""
    return APDU(
        cla=CLA_GP, ins=INS_EXTERNAL_AUTHENTICATE, p1=security_level, p2=0x00,
        data=host_cryptogram,
    )


@dataclass(frozen=True)
class InitializeUpdateResponse:
    key_diversification_data: bytes
    key_info: bytes
    counter: bytes
    card_challenge: bytes
    card_cryptogram: bytes


def parse_initialize_update(data: bytes) -> InitializeUpdateResponse:
    """Split the INITIALIZE UPDATE response into its fixed-offset fields."""
    if len(data) < INITIALIZE_UPDATE_RESPONSE_LEN:
        raise AuthenticationFailed(
            f"truncated INITIALIZE UPDATE response ({len(data)} bytes)"
        )
    return InitializeUpdateResponse(
        key_diversification_data=data[0:10],
        key_info=data[10:12],
        counter=data[12:14],
        card_challenge=data[14:20],
        card_cryptogram=data[20:28],
    )


class SCPProtocol:
    """Handshake commands, sent through a raw (unwrapped) transmit callable."""

    def __init__(self, transmit: Callable[[APDU], Response]) -> None:
        self._transmit = transmit

    def _send(self, label: str, apdu: APDU) -> Response:
        resp = self._transmit(apdu)
        lg.log(PROTOCOL, "%s %s%04X%s", label, color_sw(resp.sw1), resp.sw, RESET)
        return resp

    def send_initialize_update(
        self, key_version: int, host_challenge: bytes, diversifier: bytes | None = None
    ) -> Response:
        apdu = initialize_update(key_version, host_challenge, diversifier)
        label = f"INITIALIZE UPDATE ver={key_version:02X}"
        if diversifier is not None:
            label += " diversified"
        return self._send(label, apdu)

    def send_external_authenticate(
        self, channel: SecureChannel, security_level: int, host_cryptogram: bytes
    ) -> Response:
        """EXTERNAL AUTHENTICATE, C-MAC'd by *channel*; the response is not unwrapped."""
        apdu = channel.wrap(external_authenticate(security_level, host_cryptogram))
        return self._send(f"EXTERNAL AUTHENTICATE level={security_level:02X}", apdu)

    def send_reset(self) -> Response:
        return self._send("CLOSE SECURE CHANNEL", RESET_APDU)
