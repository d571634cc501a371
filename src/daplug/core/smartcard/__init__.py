from daplug.core.smartcard.logging import PROTOCOL, TRACE
from daplug.core.smartcard.transport import Transport
from daplug.core.smartcard.types import APDU, Response

__all__ = ["APDU", "PROTOCOL", "Response", "TRACE", "Transport"]
