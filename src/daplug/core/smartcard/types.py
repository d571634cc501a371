from __future__ import annotations

from dataclasses import dataclass

from daplug.core.errors import DeviceRejected, InvalidInput

HEADER_LEN = 5
MAX_DATA_LEN = 255
MAX_COMMAND_LEN = HEADER_LEN + MAX_DATA_LEN


def _check_byte(name: str, value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise InvalidInput(f"{name} out of range: {value!r}")


@dataclass(frozen=True)
class APDU:
    """Short command APDU: CLA INS P1 P2 Lc data.

    Lc is derived from ``data``. A frame without data is sent as a 5-byte
    header whose last byte is ``le``.
    """

    cla: int
    ins: int
    p1: int
    p2: int
    data: bytes = b""
    le: int | None = None

    def __post_init__(self) -> None:
        for name in ("cla", "ins", "p1", "p2"):
            _check_byte(name, getattr(self, name))
        object.__setattr__(self, "data", bytes(self.data))
        if len(self.data) > MAX_DATA_LEN:
            raise InvalidInput(f"data too long: {len(self.data)} bytes")
        if self.le is not None:
            _check_byte("le", self.le)
            if self.data:
                raise InvalidInput("le is only allowed on header-only frames")

    @property
    def lc(self) -> int:
        return len(self.data)

    @property
    def header(self) -> bytes:
        last = self.lc if self.data else (self.le or 0)
        return bytes([self.cla, self.ins, self.p1, self.p2, last])

    def to_bytes(self) -> bytes:
        return self.header + self.data

    @classmethod
    def from_bytes(cls, raw: bytes) -> APDU:
        if len(raw) < HEADER_LEN:
            raise InvalidInput(f"incomplete APDU header: {raw.hex().upper()}")
        if len(raw) > MAX_COMMAND_LEN:
            raise InvalidInput(f"APDU too long: {len(raw)} bytes")
        cla, ins, p1, p2, p3 = raw[:HEADER_LEN]
        if len(raw) == HEADER_LEN:
            return cls(cla, ins, p1, p2, le=p3)
        data = bytes(raw[HEADER_LEN:])
        if p3 != len(data):
            raise InvalidInput(f"Lc {p3:02X} does not match data length {len(data):02X}")
        return cls(cla, ins, p1, p2, data)

    @classmethod
    def from_hex(cls, text: str) -> APDU:
        try:
            raw = bytes.fromhex(text.replace(":", "").replace(" ", ""))
        except ValueError as exc:
            raise InvalidInput(f"not a hex APDU: {text!r}") from exc
        return cls.from_bytes(raw)

    def __repr__(self) -> str:
        return self.to_bytes().hex(" ").upper()


@dataclass(frozen=True)
class Response:
    """Response APDU: data SW1 SW2."""

    data: bytes
    sw1: int
    sw2: int

    @property
    def sw(self) -> int:
        return (self.sw1 << 8) | self.sw2

    @property
    def success(self) -> bool:
        return self.sw1 == 0x90 and self.sw2 == 0x00

    def raise_for_status(self) -> Response:
        """Raise DeviceRejected unless the status word is 9000."""
        if not self.success:
            raise DeviceRejected(self.sw)
        return self

    def to_bytes(self) -> bytes:
        return self.data + bytes([self.sw1, self.sw2])

    @classmethod
    def from_bytes(cls, raw: bytes) -> Response:
        if len(raw) < 2:
            raise InvalidInput(f"response without status word: {raw.hex().upper()}")
        if len(raw) > MAX_DATA_LEN + 2:
            raise InvalidInput(f"response too long: {len(raw)} bytes")
        return cls(data=bytes(raw[:-2]), sw1=raw[-2], sw2=raw[-1])

    def __repr__(self) -> str:
        sw = f"SW={self.sw:04X}"
        if self.data:
            return f"{self.data.hex(' ').upper()} {sw}"
        return sw
