"""Typed argument encoding and reply decoding.

All multi-byte integers are big-endian. Arrays carry a one-byte element
count prefix. Fixed-point values are scaled integers sent as 32-bit values.
"""

from __future__ import annotations

import struct
from enum import IntEnum
from typing import Any, Callable, Iterable

from ..errors import ShortReplyError

FIXED100_SCALE = 100
FIXED1K_SCALE = 1000
MAX_ARRAY_LEN = 255


class ParamType(IntEnum):
    """Parameter type tags reported by the RPC introspection namespace."""

    I08 = 8  # 8 bit integer
    I16 = 16  # 16 bit integer
    I32 = 32  # 32 bit integer
    STR = 37  # count byte, then byte values
    I32STR = 38  # count byte, then 32-bit values
    ASCII = 39  # null terminated
    FIXED100 = 41  # hundredths
    FIXED1K = 42  # thousandths
    BOOL = 43
    FIXED1K_STR = 44  # count byte, then thousandths


PARAM_TYPE_LABELS: dict[int, str] = {
    ParamType.I08: "byte",
    ParamType.I16: "int16",
    ParamType.I32: "int",
    ParamType.STR: "byte[]",
    ParamType.I32STR: "int[]",
    ParamType.ASCII: "asciiz",
    ParamType.FIXED100: "f100",
    ParamType.FIXED1K: "fixed",
    ParamType.BOOL: "bool",
    ParamType.FIXED1K_STR: "fixed[]",
}


def param_type_label(tag: int) -> str:
    return PARAM_TYPE_LABELS.get(tag, "unknown")


# ─── ENCODERS ────────────────────────────────────────────────────────

def encode_int8(value: int) -> bytes:
    if not -0x80 <= value <= 0xFF:
        raise ValueError(f"Value out of 8-bit range: {value}")
    return bytes([value & 0xFF])


def encode_int16(value: int) -> bytes:
    if not -0x8000 <= value <= 0xFFFF:
        raise ValueError(f"Value out of 16-bit range: {value}")
    return struct.pack(">H", value & 0xFFFF)


def encode_int32(value: int) -> bytes:
    """Encode a signed or unsigned 32-bit integer, big-endian."""
    if not -0x80000000 <= value <= 0xFFFFFFFF:
        raise ValueError(f"Value out of 32-bit range: {value}")
    return struct.pack(">I", value & 0xFFFFFFFF)


def _count(n: int) -> bytes:
    if n > MAX_ARRAY_LEN:
        raise ValueError(f"Array too long: {n} elements, max {MAX_ARRAY_LEN}")
    return bytes([n])


def encode_bytes(values: Iterable[int] | bytes) -> bytes:
    data = bytes(values)
    return _count(len(data)) + data


def encode_int32_array(values: Iterable[int]) -> bytes:
    values = list(values)
    return _count(len(values)) + b"".join(encode_int32(v) for v in values)


def encode_ascii(text: str) -> bytes:
    data = text.encode("ascii")
    if b"\x00" in data:
        raise ValueError("ASCII argument must not contain NUL")
    return data + b"\x00"


def encode_fixed100(value: float) -> bytes:
    return encode_int32(round(value * FIXED100_SCALE))


def encode_fixed1k(value: float) -> bytes:
    return encode_int32(round(value * FIXED1K_SCALE))


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def encode_fixed1k_array(values: Iterable[float]) -> bytes:
    values = list(values)
    return _count(len(values)) + b"".join(encode_fixed1k(v) for v in values)


_ENCODERS: dict[int, Callable[[Any], bytes]] = {
    ParamType.I08: encode_int8,
    ParamType.I16: encode_int16,
    ParamType.I32: encode_int32,
    ParamType.STR: encode_bytes,
    ParamType.I32STR: encode_int32_array,
    ParamType.ASCII: encode_ascii,
    ParamType.FIXED100: encode_fixed100,
    ParamType.FIXED1K: encode_fixed1k,
    ParamType.BOOL: encode_bool,
    ParamType.FIXED1K_STR: encode_fixed1k_array,
}


def encode_value(param_type: int, value: Any) -> bytes:
    """Encode one argument according to its :class:`ParamType` tag."""
    try:
        encoder = _ENCODERS[param_type]
    except KeyError:
        raise ValueError(f"Unknown parameter type: {param_type}") from None
    return encoder(value)


def encode_args(types: Iterable[int], values: Iterable[Any]) -> bytes:
    types, values = list(types), list(values)
    if len(types) != len(values):
        raise ValueError(f"Expected {len(types)} arguments, got {len(values)}")
    return b"".join(encode_value(t, v) for t, v in zip(types, values))


# ─── DECODER ─────────────────────────────────────────────────────────

class ReplyReader:
    """Sequential reader over reply data.

    Every read raises :class:`ShortReplyError` when the reply ends early,
    naming the operation so the failure is traceable to its call.

    Usage::

        reader = ReplyReader(reply, "gchv")
        channel = reader.int8()
        value = reader.int32()
    """

    def __init__(self, data: bytes, op_code: str = "") -> None:
        self._data = bytes(data)
        self._pos = 0
        self._op_code = op_code

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def require(self, n: int) -> None:
        """Ensure at least ``n`` more bytes are available."""
        if self.remaining < n:
            what = f"{self._op_code} reply" if self._op_code else "reply"
            raise ShortReplyError(
                f"Incorrect {what}: need {n} more bytes at offset {self._pos}, "
                f"length {len(self._data)}"
            )

    def take(self, n: int) -> bytes:
        self.require(n)
        chunk = self._data[self._pos : self._pos + n]
        self._pos += n
        return chunk

    def skip(self, n: int) -> None:
        self.take(n)

    def int8(self) -> int:
        return self.take(1)[0]

    def int16(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def int32(self) -> int:
        return struct.unpack(">i", self.take(4))[0]

    def byte_array(self) -> bytes:
        return self.take(self.int8())

    def int32_array(self) -> list[int]:
        return [self.int32() for _ in range(self.int8())]

    def ascii(self) -> str:
        """Read a null-terminated string; a missing terminator ends at the reply end."""
        rest = self._data[self._pos :]
        end = rest.find(b"\x00")
        if end < 0:
            self._pos = len(self._data)
            return rest.decode("ascii", errors="replace")
        self._pos += end + 1
        return rest[:end].decode("ascii", errors="replace")

    def fixed100(self) -> float:
        return self.int32() / FIXED100_SCALE

    def fixed1k(self) -> float:
        return self.int32() / FIXED1K_SCALE

    def boolean(self) -> bool:
        return self.int8() != 0

    def fixed1k_array(self) -> list[float]:
        return [self.fixed1k() for _ in range(self.int8())]

    def value(self, param_type: int) -> Any:
        """Read one value according to its :class:`ParamType` tag."""
        readers = {
            ParamType.I08: self.int8,
            ParamType.I16: self.int16,
            ParamType.I32: self.int32,
            ParamType.STR: self.byte_array,
            ParamType.I32STR: self.int32_array,
            ParamType.ASCII: self.ascii,
            ParamType.FIXED100: self.fixed100,
            ParamType.FIXED1K: self.fixed1k,
            ParamType.BOOL: self.boolean,
            ParamType.FIXED1K_STR: self.fixed1k_array,
        }
        reader = readers.get(param_type)
        if reader is None:
            raise ValueError(f"Unknown parameter type: {param_type}")
        return reader()


def decode_values(types: Iterable[int], data: bytes, op_code: str = "") -> list[Any]:
    """Decode a reply into a list of values, one per type tag."""
    reader = ReplyReader(data, op_code)
    return [reader.value(t) for t in types]
