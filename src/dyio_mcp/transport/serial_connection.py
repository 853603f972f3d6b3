"""Serial connection to a DyIO device.

The device enumerates as a USB CDC serial port and talks 8N1 at 115200
baud without flow control. Ports are opened through
:func:`serial.serial_for_url`, so plain device names as well as
``loop://`` and ``socket://host:port`` URLs are accepted.
"""

from __future__ import annotations

import logging
from typing import Optional

import serial

from ..errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200
READ_TIMEOUT_S = 1.0
WRITE_TIMEOUT_S = 1.0


class SerialConnection:
    """Manages the serial port used to reach the DyIO.

    Usage::

        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
        conn.write(frame_bytes)
        data = conn.read(11, timeout=1.0)
        conn.close()
    """

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        write_timeout: float = WRITE_TIMEOUT_S,
    ) -> None:
        self._port_name = port
        self._baudrate = baudrate
        self._write_timeout = write_timeout
        self._port: serial.SerialBase | None = None

    @property
    def connected(self) -> bool:
        return self._port is not None and self._port.is_open

    @property
    def port(self) -> str:
        return self._port_name

    @property
    def baudrate(self) -> int:
        return self._baudrate

    def open(self) -> SerialConnection:
        """Open the port and discard any stale input.

        Raises:
            TransportError: If the port cannot be opened or configured.
        """
        try:
            self._port = serial.serial_for_url(
                self._port_name,
                baudrate=self._baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=READ_TIMEOUT_S,
                write_timeout=self._write_timeout,
                xonxoff=False,
                rtscts=False,
                dsrdtr=False,
            )
            self._port.reset_input_buffer()
        except (serial.SerialException, ValueError) as e:
            self._port = None
            raise TransportError(f"Cannot open {self._port_name}: {e}") from e

        logger.info("Opened %s at %d baud", self._port_name, self._baudrate)
        return self

    def close(self) -> None:
        """Close the serial port."""
        if self._port is None:
            return

        try:
            self._port.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._port = None
            logger.info("Closed %s", self._port_name)

    def _require_port(self) -> serial.SerialBase:
        if self._port is None:
            raise TransportError("Serial port is not open")
        return self._port

    def write(self, data: bytes) -> int:
        """Write all of ``data`` to the port.

        Returns:
            Number of bytes written.

        Raises:
            TransportError: If the port is closed or the write fails.
        """
        port = self._require_port()
        try:
            written = port.write(data)
            port.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Write to {self._port_name} failed: {e}") from e
        return len(data) if written is None else written

    def read(self, max_len: int, timeout: Optional[float] = READ_TIMEOUT_S) -> bytes:
        """Wait for the first byte, then return whatever else is pending.

        Args:
            max_len: Upper bound on the number of bytes returned.
            timeout: Seconds to wait for the first byte; ``None`` waits forever.

        Returns:
            Between 1 and ``max_len`` bytes, or ``b""`` if nothing arrived.

        Raises:
            TransportError: If the port is closed or the read fails.
        """
        port = self._require_port()
        if max_len <= 0:
            return b""
        try:
            if port.timeout != timeout:
                port.timeout = timeout
            first = port.read(1)
            if not first:
                return b""
            pending = min(port.in_waiting, max_len - 1)
            rest = port.read(pending) if pending > 0 else b""
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read from {self._port_name} failed: {e}") from e
        return first + rest

    def __enter__(self) -> SerialConnection:
        return self.open()

    def __exit__(self, *exc_info) -> None:
        self.close()
