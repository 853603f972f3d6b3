"""Shared fixtures: a scripted stand-in for the device end of the serial link."""

from __future__ import annotations

import pytest

from dyio_mcp.device import DyIO
from dyio_mcp.protocol.framing import PacketKind, build_frame

DEVICE_ADDRESS = bytes([0x00, 0x1E, 0xC0, 0x12, 0x34, 0x56])


def reply_frame(
    op_code: str,
    data: bytes = b"",
    kind: int = PacketKind.GET,
    namespace: int = 0,
    response: bool = True,
    address: bytes = DEVICE_ADDRESS,
) -> bytes:
    """Build a frame as the device would send it."""
    return build_frame(kind, namespace, address, op_code, bytes(data), response=response)


class ScriptedTransport:
    """Device stub: every write makes the next scripted chunk readable.

    ``chunk_size`` limits how many bytes a single read returns, to mimic
    a stream that trickles in byte by byte.
    """

    def __init__(self, replies=(), chunk_size: int | None = None) -> None:
        self.replies = [bytes(r) for r in replies]
        self.rx = bytearray()
        self.writes: list[bytes] = []
        self.timeouts: list[float | None] = []
        self.chunk_size = chunk_size
        self.write_error: Exception | None = None
        self.short_write = False
        self.closed = False

    @property
    def connected(self) -> bool:
        return not self.closed

    def write(self, data: bytes) -> int:
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))
        if self.replies:
            self.rx += self.replies.pop(0)
        return len(data) - 1 if self.short_write else len(data)

    def read(self, max_len: int, timeout: float | None) -> bytes:
        self.timeouts.append(timeout)
        n = max_len if self.chunk_size is None else min(max_len, self.chunk_size)
        chunk = bytes(self.rx[:n])
        del self.rx[:n]
        return chunk

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def make_device():
    """Build a DyIO over a scripted transport with the given reply chunks."""

    def factory(*replies: bytes, chunk_size: int | None = None) -> DyIO:
        return DyIO(ScriptedTransport(replies, chunk_size=chunk_size))

    return factory
