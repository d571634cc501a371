from __future__ import annotations

import hmac
import logging

from daplug.core.errors import (
    AuthenticationFailed,
    CommunicationError,
    InvalidDiversifier,
    InvalidInput,
    SecureChannelError,
    SessionClosed,
)
from daplug.core.scp import crypto
from daplug.core.scp.channel import SecureChannel
from daplug.core.scp.keyset import Keyset, diversify_keyset
from daplug.core.scp.protocol import SCPProtocol, parse_initialize_update
from daplug.core.scp.security import (
    ALL_LEVELS,
    C_MAC,
    AuthenticateResult,
    SessionKeys,
    format_level,
)
from daplug.core.smartcard import APDU, Response, Transport
from daplug.core.smartcard.logging import log_hex

lg = logging.getLogger(__name__)

HOST_CHALLENGE_LEN = 8
DIVERSIFIER_LEN = 16


class Session:
    """Secure channel session with one dongle.

    The transport is borrowed: the session never closes it. A session is
    closed until authenticate() succeeds, and is closed again by
    deauthenticate() or by any failure that leaves the MAC chains out of
    step with the dongle. Not thread-safe; callers sharing a session
    across threads must serialize access.
    """

    compute_diversified_keys = staticmethod(diversify_keyset)

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._channel: SecureChannel | None = None
        self._scp = SCPProtocol(self._transmit)

    @property
    def is_open(self) -> bool:
        return self._channel is not None

    @property
    def security_level(self) -> int:
        return self._channel.security_level if self._channel is not None else 0

    @property
    def keys(self) -> SessionKeys | None:
        return self._channel.keys if self._channel is not None else None

    @property
    def c_mac(self) -> bytes:
        return self._channel.c_mac if self._channel is not None else b""

    @property
    def r_mac(self) -> bytes:
        return self._channel.r_mac if self._channel is not None else b""

    # -- transport ------------------------------------------------------------

    def _transmit(self, apdu: APDU) -> Response:
        """Send one frame as-is and parse the response."""
        command = apdu.to_bytes()
        log_hex(lg, ">> ", command)
        raw = self._transport.exchange(command)
        log_hex(lg, "<< ", raw)
        try:
            return Response.from_bytes(raw)
        except InvalidInput as exc:
            raise CommunicationError(f"malformed response: {exc}") from exc

    def _clear(self) -> None:
        if self._channel is not None:
            lg.info("secure channel closed")
        self._channel = None

    # -- secure channel -------------------------------------------------------

    def authenticate(
        self,
        keyset: Keyset,
        security_level: int = C_MAC,
        diversifier: bytes | None = None,
        host_challenge: bytes | None = None,
    ) -> AuthenticateResult:
        """Mutually authenticate with the dongle and open a secure channel.

        C_MAC is always added to *security_level*. With a 16-byte
        *diversifier* the dongle diversifies its keyset before deriving the
        session keys; *keyset* must then already hold the diversified keys
        (see compute_diversified_keys). A random host challenge is used
        unless one is given.

        Raises AuthenticationFailed if the dongle rejects a handshake
        command or its cryptogram does not verify; the session stays closed.
        """
        if security_level & ~ALL_LEVELS:
            raise InvalidInput(f"unknown security level bits: {security_level:02X}")
        if diversifier is not None and len(diversifier) != DIVERSIFIER_LEN:
            raise InvalidDiversifier(
                f"wrong diversifier value: {bytes(diversifier).hex().upper()}"
            )
        if host_challenge is None:
            host_challenge = crypto.generate_challenge(HOST_CHALLENGE_LEN)
        elif len(host_challenge) != HOST_CHALLENGE_LEN:
            raise InvalidInput(
                f"wrong challenge value: {bytes(host_challenge).hex().upper()}"
            )
        host_challenge = bytes(host_challenge)
        security_level |= C_MAC

        # Close any channel previously opened
        self.deauthenticate()

        resp = self._scp.send_initialize_update(keyset.version, host_challenge, diversifier)
        if not resp.success:
            raise AuthenticationFailed("INITIALIZE UPDATE rejected", sw=resp.sw)
        init = parse_initialize_update(resp.data)

        keys = crypto.derive_session_keys(keyset, init.counter)
        expected = crypto.card_cryptogram(
            host_challenge, init.card_challenge, init.counter, keys.s_enc
        )
        if not hmac.compare_digest(expected, init.card_cryptogram):
            lg.warning("card cryptogram mismatch")
            raise AuthenticationFailed("card cryptogram verification failed")

        cryptogram = crypto.host_cryptogram(
            host_challenge, init.card_challenge, init.counter, keys.s_enc
        )
        channel = SecureChannel(keys, security_level)
        resp = self._scp.send_external_authenticate(channel, security_level, cryptogram)
        if not resp.success:
            raise AuthenticationFailed("EXTERNAL AUTHENTICATE rejected", sw=resp.sw)

        channel.start_response_chain()
        self._channel = channel
        lg.info("secure channel open (level=%s)", format_level(security_level))
        return AuthenticateResult(
            security_level=security_level,
            host_challenge=host_challenge,
            key_diversification_data=init.key_diversification_data,
            key_info=init.key_info,
            counter=init.counter,
            card_challenge=init.card_challenge,
        )

    def exchange(self, apdu: APDU) -> Response:
        """Send a command through the secure channel and return the plain response.

        A non-9000 status word is returned, not raised (see
        Response.raise_for_status). Integrity and decryption failures close
        the channel before propagating; so does any transport failure,
        since the dongle may have advanced its MAC chain.
        """
        channel = self._channel
        if channel is None:
            raise SessionClosed()

        wrapped = channel.wrap(apdu)
        try:
            response = self._transmit(wrapped)
        except Exception:
            self._clear()
            raise

        try:
            return channel.unwrap(apdu, response)
        except SecureChannelError as exc:
            lg.warning("%s, closing secure channel", exc)
            self.deauthenticate()
            raise

    def deauthenticate(self) -> None:
        """Close the secure channel; a no-op when it is not open.

        The dongle is told to drop the channel by an unprotected reset
        command. Its outcome does not matter and is never raised.
        """
        if self._channel is None:
            return
        try:
            self._scp.send_reset()
        except Exception as exc:
            lg.debug("reset command failed: %s", exc)
        finally:
            self._clear()
