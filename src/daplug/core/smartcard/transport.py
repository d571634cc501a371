from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    """Byte-level link to the dongle.

    ``exchange`` sends one complete command and returns the complete
    response (data followed by SW1 SW2). Failures are reported as
    ``CommunicationError``.
    """

    def exchange(self, command: bytes) -> bytes: ...
    def close(self) -> None: ...
