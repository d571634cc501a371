from __future__ import annotations

import logging

from smartcard.CardConnectionObserver import CardConnectionObserver

from daplug.core.smartcard.logging import PROTOCOL

lg = logging.getLogger(__name__)


class LoggingCardObserver(CardConnectionObserver):
    """CardConnectionObserver that logs PC/SC connection events.

    Command and response bytes are traced by the Session, which sees them
    for every transport.
    """

    def update(self, observable, event):
        if event.type in ("connect", "reconnect", "disconnect"):
            lg.log(PROTOCOL, "%s %s", event.type, observable.getReader())
