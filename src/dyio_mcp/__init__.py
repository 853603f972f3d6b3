"""Client library, CLI and MCP server for the DyIO I/O controller."""

__version__ = "1.0.0"

from .device import DyIO
from .errors import (
    ChecksumError,
    DesyncError,
    DyIOError,
    PayloadTooLargeError,
    PeerSilentError,
    ProtocolError,
    ShortReplyError,
    TransportError,
    TruncatedError,
)
from .models.channel import ChannelMode
from .protocol.framing import Namespace, PacketKind
