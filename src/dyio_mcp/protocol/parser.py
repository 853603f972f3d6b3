"""Reply parsing for the device information, introspection and channel calls.

Each parser takes the reply data returned by :meth:`DyIO.call` and raises
:class:`~dyio_mcp.errors.ShortReplyError` when the reply is too short for
the fields it must contain.
"""

from __future__ import annotations

from ..models.channel import ChannelStatus
from ..models.rpc import MethodInfo
from ..models.system import PowerStatus
from .marshal import ReplyReader


def parse_revision(reply: bytes) -> tuple[int, int, int]:
    """Parse a ``_rev`` reply: firmware major, minor and patch in the first 3 bytes.

    The reply carries 6 bytes; the last 3 describe the bootloader.
    """
    reader = ReplyReader(reply, "_rev")
    reader.require(6)
    return reader.int8(), reader.int8(), reader.int8()


def parse_power(reply: bytes) -> PowerStatus:
    """Parse a ``_pwr`` reply.

    Layout: right rail source, left rail source, input voltage in millivolts
    (16 bits), override flag.
    """
    reader = ReplyReader(reply, "_pwr")
    reader.require(5)
    right = reader.boolean()
    left = reader.boolean()
    voltage = reader.int16()
    override = reader.int8()
    return PowerStatus(
        right_internal=right,
        left_internal=left,
        voltage_mv=voltage,
        override=override,
    )


def parse_namespace_count(reply: bytes) -> int:
    """Parse a ``_nms`` reply sent without arguments."""
    return ReplyReader(reply, "_nms").int8()


def parse_namespace_name(reply: bytes) -> str:
    """Parse a ``_nms[ns]`` reply: the namespace name as ASCII text."""
    reader = ReplyReader(reply, "_nms")
    reader.require(1)
    return reader.ascii()


def parse_rpc_name(reply: bytes) -> tuple[int, str]:
    """Parse an ``_rpc`` reply into (method count, method op code).

    Layout: namespace, method index, method count, 4-byte op code.
    """
    reader = ReplyReader(reply, "_rpc")
    reader.require(7)
    reader.skip(2)
    num_methods = reader.int8()
    rpc = reader.take(4).decode("ascii", errors="replace")
    return num_methods, rpc


def parse_method_args(reply: bytes, rpc: str = "") -> MethodInfo:
    """Parse an ``args`` reply describing a method signature.

    Layout: namespace, method index, query kind, argument count, argument
    type tags, response kind, response count, response type tags.
    """
    reader = ReplyReader(reply, "args")
    reader.require(6)
    reader.skip(2)
    query_kind = reader.int8()
    args = list(reader.take(reader.int8()))
    response_kind = reader.int8()
    response_args = list(reader.take(reader.int8()))
    return MethodInfo(
        rpc=rpc,
        query_kind=query_kind,
        args=args,
        response_kind=response_kind,
        response_args=response_args,
    )


def parse_channel_count(reply: bytes) -> int:
    """Parse a ``gchc`` reply; the channel count is the fourth byte."""
    reader = ReplyReader(reply, "gchc")
    reader.require(4)
    reader.skip(3)
    return reader.int8()


def parse_mode_list(reply: bytes) -> set[int]:
    """Parse a ``gcml`` reply: a count byte followed by supported mode ids."""
    reader = ReplyReader(reply, "gcml")
    return set(reader.byte_array())


def parse_all_modes(reply: bytes) -> list[int]:
    """Parse a ``gacm`` reply: a count byte followed by one mode per channel."""
    reader = ReplyReader(reply, "gacm")
    return list(reader.byte_array())


def parse_all_values(reply: bytes, num_channels: int) -> list[int]:
    """Parse a ``gacv`` reply: a leading byte, then a 32-bit value per channel."""
    reader = ReplyReader(reply, "gacv")
    reader.skip(1)
    return [reader.int32() for _ in range(num_channels)]


def parse_channel_value(reply: bytes) -> int:
    """Parse a ``gchv`` reply: channel number, then the 32-bit value."""
    reader = ReplyReader(reply, "gchv")
    reader.require(5)
    reader.skip(1)
    return reader.int32()


def parse_channel_status(modes_reply: bytes, values_reply: bytes) -> list[ChannelStatus]:
    """Combine ``gacm`` and ``gacv`` replies into per-channel status."""
    modes = parse_all_modes(modes_reply)
    values = parse_all_values(values_reply, len(modes))
    return [
        ChannelStatus(channel=c, mode=mode, value=value)
        for c, (mode, value) in enumerate(zip(modes, values))
    ]
