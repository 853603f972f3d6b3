"""Tests for the DyIO client and its device helpers."""

import pytest

from conftest import DEVICE_ADDRESS, ScriptedTransport, reply_frame

from dyio_mcp.device import DyIO
from dyio_mcp.errors import (
    ChecksumError,
    PayloadTooLargeError,
    PeerSilentError,
    ShortReplyError,
    TransportError,
)
from dyio_mcp.models.channel import ChannelMode
from dyio_mcp.protocol.framing import (
    HEADER_SIZE,
    Namespace,
    PacketKind,
    decode_header,
    parse_frame,
)


def io_reply(op_code: str, data: bytes, kind: int = PacketKind.GET) -> bytes:
    return reply_frame(op_code, data, kind=kind, namespace=Namespace.IO)


def sent(dyio: DyIO, index: int = -1):
    """Decode the request frame written at ``index``."""
    return parse_frame(dyio.transport.writes[index])


def test_get_value_button_pressed(make_device):
    """GET IO 'gchv' for channel 23 returns the value that follows the channel byte."""
    dyio = make_device(io_reply("gchv", bytes([0x16, 0, 0, 0, 1])))
    assert dyio.get_value(23) == 1

    request = sent(dyio)
    assert request.header.kind == PacketKind.GET
    assert request.header.namespace == Namespace.IO
    assert request.op_code == b"gchv"
    assert request.data == bytes([23])


def test_call_records_reply(make_device):
    """The reply data and sender address are kept on the connection."""
    dyio = make_device(reply_frame("_png"), io_reply("gchv", b"\x17\x00\x00\x00\x05"))
    dyio.ping()
    assert dyio.reply == b""
    assert dyio.reply_address == DEVICE_ADDRESS

    data = dyio.call(PacketKind.GET, Namespace.IO, "gchv", b"\x17")
    assert data == b"\x17\x00\x00\x00\x05"
    assert dyio.reply == data
    assert dyio.last_frame.op_code == b"gchv"


def test_outgoing_address():
    """Outgoing frames carry the configured address, not the reply address."""
    target = bytes([1, 2, 3, 4, 5, 6])
    dyio = DyIO(ScriptedTransport([reply_frame("_png")]), address=target)
    dyio.ping()
    header = decode_header(dyio.transport.writes[0][:HEADER_SIZE])
    assert header.address == target
    assert header.response is False
    assert dyio.address == target

    with pytest.raises(ValueError):
        DyIO(ScriptedTransport(), address=b"\x00")


def test_oversized_request_not_sent(make_device):
    """A payload over 251 bytes is rejected before anything is written."""
    dyio = make_device()
    with pytest.raises(PayloadTooLargeError):
        dyio.call(PacketKind.POST, Namespace.IO, "schv", bytes(252))
    assert dyio.transport.writes == []


def test_connection_usable_after_silence():
    """A failed call leaves the connection ready for the next one."""
    transport = ScriptedTransport()
    dyio = DyIO(transport)
    with pytest.raises(PeerSilentError):
        dyio.ping()

    transport.replies.append(reply_frame("_png"))
    dyio.ping()
    assert len(transport.writes) == 2


def test_checksum_failure_propagates(make_device):
    bad = bytearray(reply_frame("_png"))
    bad[-1] ^= 0xFF
    dyio = make_device(bytes(bad), bytes(bad))
    with pytest.raises(ChecksumError):
        dyio.ping()
    assert len(dyio.transport.writes) == 2


def test_info(make_device):
    dyio = make_device(
        reply_frame("_rev", bytes([1, 2, 3, 0, 0, 0]), namespace=Namespace.DYIO),
        reply_frame("_pwr", bytes([1, 0, 0x2E, 0xE0, 0]), namespace=Namespace.DYIO),
    )
    info = dyio.info()
    assert info.firmware_version == "1.2.3"
    assert info.power.voltage == 12.0
    assert info.address == DEVICE_ADDRESS
    assert info.to_dict()["power"]["rail_right"] == "Internal"

    assert [sent(dyio, i).op_code for i in range(2)] == [b"_rev", b"_pwr"]


def test_info_short_reply(make_device):
    dyio = make_device(reply_frame("_rev", bytes([1, 2, 3]), namespace=Namespace.DYIO))
    with pytest.raises(ShortReplyError):
        dyio.info()


def test_namespaces(make_device):
    """Method count comes from the first '_rpc' reply of each namespace."""
    get, post = PacketKind.GET, PacketKind.POST
    dyio = make_device(
        reply_frame("_nms", b"\x02"),
        reply_frame("_nms", b"bcs.core.*;0.3;;\x00"),
        reply_frame("_rpc", b"\x00\x00\x02_png", namespace=Namespace.RPC),
        reply_frame("args", bytes([0, 0, get, 0, post, 0]), namespace=Namespace.RPC),
        reply_frame("_rpc", b"\x00\x01\x02_nms", namespace=Namespace.RPC),
        reply_frame("args", bytes([0, 1, get, 1, 8, post, 1, 39]), namespace=Namespace.RPC),
        reply_frame("_nms", b"bcs.rpc.*;0.3;;\x00"),
        reply_frame("_rpc", b"\x01\x00\x01_rpc", namespace=Namespace.RPC),
        reply_frame("args", bytes([1, 0, get, 2, 8, 8, post, 0]), namespace=Namespace.RPC),
    )
    namespaces = dyio.namespaces()

    assert [ns.name for ns in namespaces] == ["bcs.core.*;0.3;;", "bcs.rpc.*;0.3;;"]
    assert [m.rpc for m in namespaces[0].methods] == ["_png", "_nms"]
    assert namespaces[0].methods[1].signature() == "_nms GET(byte) -> POST(asciiz)"
    assert namespaces[1].methods[0].args == [8, 8]

    # Namespace name queries carry the namespace index.
    assert sent(dyio, 1).data == b"\x00"
    assert sent(dyio, 2).data == b"\x00\x00"
    assert sent(dyio, 4).data == b"\x00\x01"
    assert len(dyio.transport.writes) == 9


def test_channel_features(make_device):
    dyio = make_device(
        io_reply("gchc", b"\x00\x00\x00\x02"),
        io_reply("gcml", bytes([2, ChannelMode.DI, ChannelMode.DO])),
        io_reply("gcml", bytes([1, ChannelMode.ANALOG_IN])),
    )
    features = dyio.channel_features()
    assert features.num_channels == 2
    assert features.supports(0, ChannelMode.DO)
    assert not features.supports(1, ChannelMode.DO)
    assert sent(dyio, 2).data == b"\x01"


def test_channels(make_device):
    dyio = make_device(
        io_reply("gacm", bytes([2, ChannelMode.DI, ChannelMode.SERVO])),
        io_reply("gacv", b"\x02" + b"\x00\x00\x00\x01" + b"\x00\x00\x00\x80"),
    )
    channels = dyio.channels()
    assert [(c.channel, c.mode, c.value) for c in channels] == [(0, 2, 1), (1, 7, 128)]


def test_set_mode(make_device):
    """'schm' goes to the SETMODE namespace as [channel, mode, 0]."""
    dyio = make_device(reply_frame("schm", b"\x00", kind=PacketKind.POST, namespace=Namespace.SETMODE))
    dyio.set_mode(23, "DI")

    request = sent(dyio)
    assert request.header.kind == PacketKind.POST
    assert request.header.namespace == Namespace.SETMODE
    assert request.data == bytes([23, ChannelMode.DI, 0])


def test_set_mode_empty_reply(make_device):
    dyio = make_device(reply_frame("schm", kind=PacketKind.POST, namespace=Namespace.SETMODE))
    with pytest.raises(ShortReplyError):
        dyio.set_mode(0, ChannelMode.DO)


def test_set_value(make_device):
    dyio = make_device(io_reply("schv", b"\x00\x01", kind=PacketKind.POST))
    dyio.set_value(5, 128, msec=1000)

    request = sent(dyio)
    assert request.header.kind == PacketKind.POST
    assert request.data == b"\x05" + b"\x00\x00\x00\x80" + b"\x00\x00\x03\xe8"


def test_set_value_short_reply(make_device):
    dyio = make_device(io_reply("schv", b"\x00", kind=PacketKind.POST))
    with pytest.raises(ShortReplyError):
        dyio.set_value(0, 1)


def test_invalid_channel_not_sent(make_device):
    dyio = make_device()
    with pytest.raises(ValueError):
        dyio.get_value(64)
    assert dyio.transport.writes == []


def test_close_and_context_manager():
    transport = ScriptedTransport()
    with DyIO(transport) as dyio:
        assert dyio.connected
    assert transport.closed
    assert not dyio.connected


def test_open_missing_port():
    with pytest.raises(TransportError):
        DyIO.open("/dev/does-not-exist-dyio")


def test_failed_call_clears_reply():
    """A failed call leaves no stale reply data from the previous one."""
    transport = ScriptedTransport([reply_frame("_png", b"\x01\x02")])
    dyio = DyIO(transport)
    assert dyio.call(PacketKind.GET, Namespace.CORE, "_png") == b"\x01\x02"

    with pytest.raises(PeerSilentError):
        dyio.ping()
    assert dyio.reply == b""
    assert dyio.last_frame is None
