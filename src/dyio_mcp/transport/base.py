"""Byte-stream transport interface used by the transaction engine."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Blocking byte stream to a single device.

    :class:`~dyio_mcp.transport.serial_connection.SerialConnection`
    implements this over a serial port; tests substitute scripted stubs.
    """

    def read(self, max_len: int, timeout: Optional[float]) -> bytes:
        """Wait up to ``timeout`` seconds for data, then return what arrived.

        At most ``max_len`` bytes are returned. An empty result means nothing
        arrived within the wait. ``timeout=None`` blocks until data arrives.

        Raises:
            TransportError: If the underlying read fails.
        """
        ...

    def write(self, data: bytes) -> int:
        """Write ``data`` and return the number of bytes written.

        Raises:
            TransportError: If the write fails.
        """
        ...

    def close(self) -> None:
        ...
