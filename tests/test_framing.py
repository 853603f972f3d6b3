"""Tests for frame building, header codec and checksums."""

import pytest

from dyio_mcp.errors import (
    ChecksumError,
    DesyncError,
    PayloadTooLargeError,
    TruncatedError,
)
from dyio_mcp.protocol.framing import (
    HEADER_SIZE,
    MAX_DATA_LEN,
    PROTO_VERSION,
    Frame,
    Header,
    Namespace,
    PacketKind,
    build_frame,
    decode_header,
    encode_header,
    encode_op_code,
    format_trace,
    header_checksum_valid,
    kind_name,
    parse_frame,
    payload_checksum,
)

ADDRESS = bytes([0x00, 0x1E, 0xC0, 0x12, 0x34, 0x56])


def test_encode_header_layout():
    """A GET to namespace 2 with one data byte, from the zero address."""
    header = encode_header(PacketKind.GET, Namespace.IO, bytes(6), 1)
    assert len(header) == HEADER_SIZE
    assert header[0] == PROTO_VERSION
    assert header[1:7] == bytes(6)
    assert header[7] == 0x10  # kind
    assert header[8] == 0x02  # namespace, no response flag
    assert header[9] == 5  # op code + 1 data byte
    assert header[10] == (3 + 0x10 + 0x02 + 5) & 0xFF


def test_encode_header_response_flag():
    """The response flag is the top bit of the id byte."""
    header = encode_header(PacketKind.POST, Namespace.SETMODE, ADDRESS, 3, response=True)
    assert header[8] == 0x83


def test_header_roundtrip_all_fields():
    """Every kind, namespace, flag and datalen survives encode then decode."""
    for kind in PacketKind:
        for namespace in range(8):
            for response in (False, True):
                for datalen in range(256):
                    raw = Header.create(kind, namespace, ADDRESS, datalen, response).to_bytes()
                    header = decode_header(raw)
                    assert header.version == PROTO_VERSION
                    assert header.address == ADDRESS
                    assert header.kind == kind
                    assert header.namespace == namespace
                    assert header.response is response
                    assert header.datalen == datalen
                    assert header_checksum_valid(header)


def test_encode_header_payload_ceiling():
    """251 data bytes fit the length field; 252 are rejected."""
    header = decode_header(encode_header(PacketKind.POST, 2, ADDRESS, MAX_DATA_LEN))
    assert header.datalen == 255

    with pytest.raises(PayloadTooLargeError):
        encode_header(PacketKind.POST, 2, ADDRESS, MAX_DATA_LEN + 1)
    with pytest.raises(PayloadTooLargeError):
        encode_header(PacketKind.POST, 2, ADDRESS, -1)


def test_payload_too_large_is_value_error():
    """Oversized payloads can be caught as ValueError too."""
    with pytest.raises(ValueError):
        build_frame(PacketKind.POST, 2, ADDRESS, "schv", bytes(252))


def test_encode_header_bad_address():
    with pytest.raises(ValueError):
        encode_header(PacketKind.GET, 0, b"\x00" * 5, 0)


def test_decode_header_truncated():
    """Fewer than 11 bytes cannot be a header."""
    raw = encode_header(PacketKind.GET, 0, ADDRESS, 0)
    with pytest.raises(TruncatedError):
        decode_header(raw[:10])


def test_header_checksum_detects_bit_flip():
    raw = bytearray(encode_header(PacketKind.GET, 2, ADDRESS, 1, response=True))
    raw[10] ^= 0x01
    assert not header_checksum_valid(decode_header(bytes(raw)))


def test_payload_checksum_is_byte_sum():
    """The payload checksum is the sum of op code and data modulo 256."""
    samples = [b"", b"\x00", b"\x17", bytes(range(251)), b"\xff" * 200]
    for data in samples:
        assert payload_checksum(b"gchv", data) == sum(b"gchv" + data) % 256


def test_encode_op_code():
    assert encode_op_code("_png") == b"_png"
    assert encode_op_code(b"gchv") == b"gchv"
    with pytest.raises(ValueError):
        encode_op_code("png")
    with pytest.raises(ValueError):
        encode_op_code("gchvx")
    with pytest.raises(ValueError):
        encode_op_code("gché")


def test_build_frame_layout():
    """Header, op code, data and checksum appear in that order."""
    frame = build_frame(PacketKind.GET, Namespace.IO, bytes(6), "gchv", b"\x17")
    assert len(frame) == HEADER_SIZE + 4 + 1 + 1
    assert frame[11:15] == b"gchv"
    assert frame[15] == 0x17
    assert frame[16] == sum(b"gchv\x17") & 0xFF


def test_parse_frame_roundtrip():
    frame = build_frame(PacketKind.POST, Namespace.IO, ADDRESS, "schv", b"\x01\x02", response=True)
    parsed = parse_frame(frame)
    assert parsed.op_code == b"schv"
    assert parsed.data == b"\x01\x02"
    assert parsed.header.response is True
    assert parsed.header.namespace == Namespace.IO


def test_parse_frame_errors():
    """Bad version, checksums and short buffers are each reported."""
    frame = bytearray(build_frame(PacketKind.GET, 0, ADDRESS, "_png", response=True))

    bad_version = bytearray(frame)
    bad_version[0] = 2
    with pytest.raises(DesyncError):
        parse_frame(bytes(bad_version))

    bad_hsum = bytearray(frame)
    bad_hsum[10] ^= 0xFF
    with pytest.raises(ChecksumError):
        parse_frame(bytes(bad_hsum))

    bad_sum = bytearray(frame)
    bad_sum[-1] ^= 0x01
    with pytest.raises(ChecksumError) as excinfo:
        parse_frame(bytes(bad_sum))
    assert excinfo.value.expected == sum(b"_png") & 0xFF

    with pytest.raises(TruncatedError):
        parse_frame(bytes(frame[:-1]))


def test_kind_name():
    assert kind_name(0x40) == "ASYNC"
    assert kind_name(0x50) == "UNKNOWN"


def test_frame_repr():
    f = Frame(
        header=Header.create(PacketKind.GET, 2, ADDRESS, 5, response=True),
        op_code=b"gchv",
        data=b"\x17",
    )
    r = repr(f)
    assert "GET" in r
    assert "'gchv'" in r
    assert "17" in r


def test_format_trace():
    frame = build_frame(PacketKind.GET, Namespace.IO, bytes(6), "gchv", b"\x17")
    line = format_trace("send", decode_header(frame), frame[HEADER_SIZE:])
    assert line.startswith("send 3-0-0-0-0-0-0-10-2-[5]-")
    assert line.endswith("'gchv'-17-" + f"{frame[-1]:x}")
