"""Frame builder and parser for the DyIO serial protocol.

Frame layout::

    +-------+---------+------+----+---------+------+---------+------+----------+
    | Proto | Address | Kind | Id | DataLen | HSum | Op code | Data | Checksum |
    | 1 B   | 6 bytes | 1 B  | 1B | 1 byte  | 1 B  | 4 bytes | 0-251| 1 byte   |
    +-------+---------+------+----+---------+------+---------+------+----------+

- Proto: protocol revision, always 3
- Id: namespace index in the low 7 bits, 0x80 set on responses
- DataLen: length of op code + data
- HSum: sum of the 10 preceding header bytes, modulo 256
- Checksum: sum of op code + data bytes, modulo 256
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum

from ..errors import (
    ChecksumError,
    DesyncError,
    PayloadTooLargeError,
    TruncatedError,
)

PROTO_VERSION = 3
ADDRESS_SIZE = 6
HEADER_SIZE = 11
OP_CODE_SIZE = 4
MAX_DATALEN = 255
MAX_DATA_LEN = MAX_DATALEN - OP_CODE_SIZE  # 251
RESPONSE_FLAG = 0x80
NAMESPACE_MASK = 0x7F
BROADCAST_ADDRESS = bytes(ADDRESS_SIZE)


class PacketKind(IntEnum):
    """Packet types carried in the header kind byte."""

    STATUS = 0x00  # synchronous, high priority, non state changing
    GET = 0x10  # synchronous, query, non state changing
    POST = 0x20  # synchronous, state changing
    CRITICAL = 0x30  # synchronous, high priority, state changing
    ASYNC = 0x40  # unsolicited notification


class Namespace(IntEnum):
    """Namespace ids grouping the remotely callable operations."""

    CORE = 0  # _png, _nms
    RPC = 1  # _rpc, args
    IO = 2  # asyn, cchn, gacm, gacv, gchc, gchm, gchv, gcml, sacv, schv, strm
    SETMODE = 3  # schm, sacm
    DYIO = 4  # _mac, _pwr, _rev
    PID = 5  # acal, apid, cpdv, cpid, gpdc, kpid, _pid, rpid, _vpd
    DYPID = 6  # dpid
    SAFE = 7  # safe


def kind_name(kind: int) -> str:
    """Return the symbolic name of a packet kind, or ``UNKNOWN``."""
    try:
        return PacketKind(kind).name
    except ValueError:
        return "UNKNOWN"


@dataclass(frozen=True)
class Header:
    """The fixed 11-byte frame header."""

    version: int
    address: bytes
    kind: int
    namespace: int
    response: bool
    datalen: int
    checksum: int

    @property
    def id_byte(self) -> int:
        return (self.namespace & NAMESPACE_MASK) | (RESPONSE_FLAG if self.response else 0)

    @property
    def data_length(self) -> int:
        """Number of data bytes following the op code."""
        return self.datalen - OP_CODE_SIZE

    def fields(self) -> bytes:
        """The ten header bytes covered by the header checksum."""
        return (
            bytes([self.version])
            + self.address
            + bytes([self.kind, self.id_byte, self.datalen])
        )

    def to_bytes(self) -> bytes:
        return self.fields() + bytes([self.checksum])

    @classmethod
    def create(
        cls,
        kind: int,
        namespace: int,
        address: bytes,
        datalen: int,
        response: bool = False,
    ) -> Header:
        """Build a header with a correct checksum."""
        if len(address) != ADDRESS_SIZE:
            raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(address)}")
        if not 0 <= namespace <= NAMESPACE_MASK:
            raise ValueError(f"Namespace must be 0-127, got {namespace}")
        if not 0 <= datalen <= MAX_DATALEN:
            raise PayloadTooLargeError(f"Data length must be 0-{MAX_DATALEN}, got {datalen}")
        header = cls(
            version=PROTO_VERSION,
            address=bytes(address),
            kind=int(kind),
            namespace=int(namespace),
            response=response,
            datalen=datalen,
            checksum=0,
        )
        return replace(header, checksum=header_checksum(header.fields()))

    @classmethod
    def from_bytes(cls, data: bytes) -> Header:
        if len(data) < HEADER_SIZE:
            raise TruncatedError(
                f"Header needs {HEADER_SIZE} bytes, got {len(data)}"
            )
        return cls(
            version=data[0],
            address=bytes(data[1:7]),
            kind=data[7],
            namespace=data[8] & NAMESPACE_MASK,
            response=bool(data[8] & RESPONSE_FLAG),
            datalen=data[9],
            checksum=data[10],
        )


@dataclass
class Frame:
    """A validated protocol frame."""

    header: Header
    op_code: bytes
    data: bytes

    @property
    def rpc(self) -> str:
        return self.op_code.decode("ascii", errors="replace")

    def __repr__(self) -> str:
        return (
            f"Frame(kind={kind_name(self.header.kind)}, "
            f"namespace={self.header.namespace}, "
            f"response={self.header.response}, rpc={self.rpc!r}, "
            f"data={self.data.hex(' ') if self.data else '(empty)'})"
        )


def header_checksum(fields: bytes) -> int:
    """Sum of the header bytes preceding the checksum, modulo 256."""
    return sum(fields[: HEADER_SIZE - 1]) & 0xFF


def header_checksum_valid(header: Header) -> bool:
    return header_checksum(header.fields()) == header.checksum


def payload_checksum(op_code: bytes, data: bytes = b"") -> int:
    """Sum of the op code and data bytes, modulo 256."""
    return (sum(op_code) + sum(data)) & 0xFF


def encode_op_code(op_code: str | bytes) -> bytes:
    """Validate a 4-character ASCII operation code and return its bytes."""
    if isinstance(op_code, str):
        try:
            op_code = op_code.encode("ascii")
        except UnicodeEncodeError as e:
            raise ValueError(f"Op code must be ASCII, got {op_code!r}") from e
    if len(op_code) != OP_CODE_SIZE:
        raise ValueError(f"Op code must be {OP_CODE_SIZE} bytes, got {op_code!r}")
    return bytes(op_code)


def encode_header(
    kind: int,
    namespace: int,
    address: bytes,
    payload_len: int,
    response: bool = False,
) -> bytes:
    """Build the 11-byte header for a frame carrying ``payload_len`` data bytes.

    Args:
        kind: Packet kind (see :class:`PacketKind`).
        namespace: Namespace id 0-127.
        address: 6-byte device address.
        payload_len: Number of data bytes after the op code, 0-251.
        response: Set the response flag in the id byte.

    Raises:
        PayloadTooLargeError: If ``payload_len`` is outside 0-251.
    """
    if not 0 <= payload_len <= MAX_DATA_LEN:
        raise PayloadTooLargeError(
            f"Payload must be 0-{MAX_DATA_LEN} bytes, got {payload_len}"
        )
    return Header.create(
        kind, namespace, address, payload_len + OP_CODE_SIZE, response
    ).to_bytes()


def decode_header(data: bytes) -> Header:
    """Parse the first 11 bytes of ``data`` into a :class:`Header`.

    Checksums and version are not verified here.

    Raises:
        TruncatedError: If fewer than 11 bytes are given.
    """
    return Header.from_bytes(data)


def build_frame(
    kind: int,
    namespace: int,
    address: bytes,
    op_code: str | bytes,
    data: bytes = b"",
    response: bool = False,
) -> bytes:
    """Build a complete frame: header, op code, data and payload checksum."""
    rpc = encode_op_code(op_code)
    header = encode_header(kind, namespace, address, len(data), response)
    return header + rpc + bytes(data) + bytes([payload_checksum(rpc, data)])


def parse_frame(raw: bytes) -> Frame:
    """Parse and validate a complete frame buffer.

    Raises:
        TruncatedError: If the buffer ends before the declared length.
        DesyncError: If the version byte is not :data:`PROTO_VERSION`.
        ChecksumError: If either checksum fails or datalen is below 4.
    """
    header = decode_header(raw)
    if header.version != PROTO_VERSION:
        raise DesyncError(
            f"Protocol version {header.version}, expected {PROTO_VERSION}"
        )
    if not header_checksum_valid(header):
        raise ChecksumError(
            "Invalid header checksum",
            expected=header_checksum(header.fields()),
            actual=header.checksum,
        )
    if header.datalen < OP_CODE_SIZE:
        raise ChecksumError(f"Data length {header.datalen} shorter than op code")
    end = HEADER_SIZE + header.datalen
    if len(raw) < end + 1:
        raise TruncatedError(f"Frame needs {end + 1} bytes, got {len(raw)}")
    op_code = bytes(raw[HEADER_SIZE : HEADER_SIZE + OP_CODE_SIZE])
    data = bytes(raw[HEADER_SIZE + OP_CODE_SIZE : end])
    expected = payload_checksum(op_code, data)
    if raw[end] != expected:
        raise ChecksumError(
            "Invalid payload checksum", expected=expected, actual=raw[end]
        )
    return Frame(header=header, op_code=op_code, data=data)


def format_trace(direction: str, header: Header, body: bytes) -> str:
    """Render a frame as a dash-separated hex line for protocol tracing.

    ``body`` is everything after the header: op code, data and checksum.
    """
    fields = [f"{header.version:x}"]
    fields += [f"{b:x}" for b in header.address]
    fields += [
        f"{header.kind:x}",
        f"{header.id_byte:x}",
        f"[{header.datalen}]",
        f"{header.checksum:x}",
    ]
    op_code = body[:OP_CODE_SIZE]
    fields.append("'" + op_code.decode("ascii", errors="replace") + "'")
    fields += [f"{b:x}" for b in body[OP_CODE_SIZE:]]
    return f"{direction} " + "-".join(fields)
