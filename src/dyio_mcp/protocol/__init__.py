"""Protocol layer: framing, checksums, marshaling and the transaction engine."""

from .framing import (
    Frame,
    Header,
    Namespace,
    PacketKind,
    build_frame,
    decode_header,
    encode_header,
    parse_frame,
)
from .marshal import ParamType, ReplyReader
