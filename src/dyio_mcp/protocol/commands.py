"""Operation table and request builders for the DyIO calls.

An :class:`Operation` fixes the packet kind, namespace and op code of a
remote method; a :class:`Request` pairs it with marshaled argument bytes.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models.channel import ChannelMode, check_channel
from .framing import Namespace, PacketKind, encode_op_code
from .marshal import encode_int32


@dataclass(frozen=True)
class Operation:
    """A remote method: packet kind, namespace id and 4-character op code."""

    kind: PacketKind
    namespace: Namespace
    rpc: str

    def __post_init__(self) -> None:
        encode_op_code(self.rpc)


@dataclass(frozen=True)
class Request:
    """An operation with its argument bytes."""

    operation: Operation
    data: bytes = b""


PING = Operation(PacketKind.GET, Namespace.CORE, "_png")
NAMESPACES = Operation(PacketKind.GET, Namespace.CORE, "_nms")
RPC_NAME = Operation(PacketKind.GET, Namespace.RPC, "_rpc")
RPC_ARGS = Operation(PacketKind.GET, Namespace.RPC, "args")
REVISION = Operation(PacketKind.GET, Namespace.DYIO, "_rev")
POWER = Operation(PacketKind.GET, Namespace.DYIO, "_pwr")
CHANNEL_COUNT = Operation(PacketKind.GET, Namespace.IO, "gchc")
CHANNEL_MODE_LIST = Operation(PacketKind.GET, Namespace.IO, "gcml")
ALL_CHANNEL_MODES = Operation(PacketKind.GET, Namespace.IO, "gacm")
ALL_CHANNEL_VALUES = Operation(PacketKind.GET, Namespace.IO, "gacv")
GET_VALUE = Operation(PacketKind.GET, Namespace.IO, "gchv")
SET_VALUE = Operation(PacketKind.POST, Namespace.IO, "schv")
SET_MODE = Operation(PacketKind.POST, Namespace.SETMODE, "schm")


def build_ping() -> Request:
    return Request(PING)


def build_namespace_query(namespace: int | None = None) -> Request:
    """Query the namespace count, or the name of one namespace."""
    if namespace is None:
        return Request(NAMESPACES)
    return Request(NAMESPACES, bytes([namespace]))


def build_rpc_name_query(namespace: int, method: int) -> Request:
    return Request(RPC_NAME, bytes([namespace, method]))


def build_rpc_args_query(namespace: int, method: int) -> Request:
    return Request(RPC_ARGS, bytes([namespace, method]))


def build_mode_list_query(channel: int) -> Request:
    check_channel(channel)
    return Request(CHANNEL_MODE_LIST, bytes([channel]))


def build_set_mode(channel: int, mode: int) -> Request:
    """Build a ``schm`` request switching one channel into ``mode``.

    Args:
        channel: Channel index 0-63.
        mode: A :class:`ChannelMode` id.
    """
    check_channel(channel)
    mode = ChannelMode(mode)
    return Request(SET_MODE, bytes([channel, mode, 0]))


def build_set_value(channel: int, value: int, msec: int = 0) -> Request:
    """Build a ``schv`` request.

    Args:
        channel: Channel index 0-63.
        value: New channel value, 32 bits.
        msec: Transition time in milliseconds, used by servo channels.
    """
    check_channel(channel)
    if msec < 0:
        raise ValueError(f"Transition time must not be negative, got {msec}")
    return Request(SET_VALUE, bytes([channel]) + encode_int32(value) + encode_int32(msec))


def build_get_value(channel: int) -> Request:
    check_channel(channel)
    return Request(GET_VALUE, bytes([channel]))
