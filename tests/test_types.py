import pytest

from daplug.core.errors import DeviceRejected, InvalidInput
from daplug.core.smartcard.types import APDU, Response


def test_command_lc_is_derived():
    apdu = APDU(cla=0x80, ins=0x50, p1=0x01, p2=0x00, data=b"\x01\x02\x03")
    assert apdu.lc == 3
    assert apdu.to_bytes() == bytes.fromhex("8050010003010203")


def test_header_only_command_carries_le():
    assert APDU(0x80, 0xE6, 0x00, 0x00).to_bytes() == bytes.fromhex("80E6000000")
    assert APDU(0x00, 0xB0, 0x00, 0x00, le=0x10).to_bytes() == bytes.fromhex("00B0000010")


def test_command_from_bytes():
    apdu = APDU.from_bytes(bytes.fromhex("D050011018") + bytes(24))
    assert (apdu.cla, apdu.ins, apdu.p1, apdu.p2) == (0xD0, 0x50, 0x01, 0x10)
    assert apdu.lc == 0x18
    assert apdu.le is None


def test_command_from_hex_round_trip():
    text = "80 82 01 00 08 0102030405060708"
    apdu = APDU.from_hex(text)
    assert apdu.data == bytes.fromhex("0102030405060708")
    assert repr(apdu) == "80 82 01 00 08 01 02 03 04 05 06 07 08"


def test_command_header_only_from_bytes():
    apdu = APDU.from_bytes(bytes.fromhex("0000000000"))
    assert apdu.data == b""
    assert apdu.le == 0


@pytest.mark.parametrize(
    "raw",
    [
        bytes.fromhex("80500100"),
        bytes.fromhex("8050010005") + b"\x01\x02",
        bytes(5) + bytes(256),
    ],
)
def test_command_from_bytes_rejects_malformed(raw):
    with pytest.raises(InvalidInput):
        APDU.from_bytes(raw)


def test_command_rejects_invalid_fields():
    with pytest.raises(InvalidInput):
        APDU(0x100, 0x00, 0x00, 0x00)
    with pytest.raises(InvalidInput):
        APDU(0x80, 0x00, 0x00, 0x00, data=bytes(256))
    with pytest.raises(InvalidInput):
        APDU(0x80, 0x00, 0x00, 0x00, data=b"\x01", le=0x00)


def test_command_max_length():
    apdu = APDU(0x80, 0x00, 0x00, 0x00, data=bytes(255))
    assert len(apdu.to_bytes()) == 260


def test_command_is_immutable():
    apdu = APDU(0x80, 0x00, 0x00, 0x00)
    with pytest.raises(AttributeError):
        apdu.cla = 0x84


def test_response_from_bytes():
    resp = Response.from_bytes(bytes.fromhex("CAFE9000"))
    assert resp.data == bytes.fromhex("CAFE")
    assert resp.sw == 0x9000
    assert resp.success
    assert resp.to_bytes() == bytes.fromhex("CAFE9000")
    assert repr(resp) == "CA FE SW=9000"


def test_response_status_only():
    resp = Response.from_bytes(bytes.fromhex("6A82"))
    assert resp.data == b""
    assert not resp.success
    assert repr(resp) == "SW=6A82"


def test_response_raise_for_status():
    assert Response.from_bytes(b"\x90\x00").raise_for_status().success
    with pytest.raises(DeviceRejected) as excinfo:
        Response.from_bytes(bytes.fromhex("6982")).raise_for_status()
    assert excinfo.value.sw == 0x6982
    assert not excinfo.value.retryable


@pytest.mark.parametrize("raw", [b"", b"\x90", bytes(258)])
def test_response_from_bytes_rejects_malformed(raw):
    with pytest.raises(InvalidInput):
        Response.from_bytes(raw)
