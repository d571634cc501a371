from __future__ import annotations

import logging

from smartcard.CardConnection import CardConnection
from smartcard.Exceptions import CardConnectionException, NoCardException
from smartcard.System import readers

from daplug.core.errors import CommunicationError
from daplug.core.smartcard.observer import LoggingCardObserver

lg = logging.getLogger(__name__)


class Card:
    """PC/SC transport for a dongle in smart-card mode, backed by pyscard."""

    def __init__(self) -> None:
        self._connection: CardConnection | None = None
        self._observer = LoggingCardObserver()

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def connect(self, reader: str | None = None) -> None:
        """Connect to the reader whose name contains *reader*, or the first one."""
        available = readers()
        if reader is not None:
            available = [r for r in available if reader in str(r)]
        if not available:
            raise CommunicationError(f"no reader matching {reader!r}" if reader else "no readers found")
        connection = available[0].createConnection()
        connection.addObserver(self._observer)
        try:
            connection.connect()
        except (CardConnectionException, NoCardException) as exc:
            connection.deleteObserver(self._observer)
            raise CommunicationError(f"cannot connect to {available[0]}: {exc}") from exc
        self._connection = connection
        lg.info("connected to %s", available[0])

    def exchange(self, command: bytes) -> bytes:
        if self._connection is None:
            raise CommunicationError("not connected to a dongle")
        try:
            data, sw1, sw2 = self._connection.transmit(list(command))
        except CardConnectionException as exc:
            raise CommunicationError(str(exc)) from exc
        return bytes(data) + bytes([sw1, sw2])

    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.disconnect()
            finally:
                self._connection.deleteObserver(self._observer)
                self._connection = None
