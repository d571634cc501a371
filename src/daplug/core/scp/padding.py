"""ISO 9797-1 Method 2 padding: MAC input, C-DEC and R-ENC payloads."""

from __future__ import annotations

from daplug.core.errors import PaddingInvalid

MARKER = b"\x80"


def pad80(data: bytes, block_size: int = 8) -> bytes:
    """Append 0x80 then zero bytes up to the next *block_size* boundary.

    A full block of padding is added when *data* is already aligned.
    """
    fill = (-len(data) - 1) % block_size
    return data + MARKER + bytes(fill)


def unpad80(data: bytes) -> bytes:
    stripped = data.rstrip(b"\x00")
    if not stripped.endswith(MARKER):
        raise PaddingInvalid("invalid padding: no 80 marker")
    return stripped[:-1]
