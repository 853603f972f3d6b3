"""Request/response state machine for a single call.

One :class:`Transaction` sends a request frame and waits for its reply::

    SENDING -> AWAIT_HEADER -> VALIDATING_HEADER -> AWAIT_PAYLOAD
            -> VALIDATING_PAYLOAD -> FILTERING -> COMPLETE

A version mismatch or a checksum failure flushes pending input and resends
the request once; a second occurrence in the same transaction fails it.
Frames without the response flag and asynchronous notifications are
dropped and the engine keeps waiting. Any exception leaves the state at
``FAILED``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

import serial

from ..errors import (
    ChecksumError,
    DesyncError,
    DyIOError,
    PeerSilentError,
    ProtocolError,
    TransportError,
)
from ..transport.base import Transport
from .framing import (
    HEADER_SIZE,
    OP_CODE_SIZE,
    PROTO_VERSION,
    Frame,
    Header,
    PacketKind,
    decode_header,
    format_trace,
    header_checksum,
    header_checksum_valid,
    payload_checksum,
)

logger = logging.getLogger(__name__)

READ_TIMEOUT_S = 1.0
FLUSH_CHUNK = 300
MAX_RESYNC = 1


class TransactionState(Enum):
    SENDING = "sending"
    AWAIT_HEADER = "await_header"
    VALIDATING_HEADER = "validating_header"
    AWAIT_PAYLOAD = "await_payload"
    VALIDATING_PAYLOAD = "validating_payload"
    FILTERING = "filtering"
    COMPLETE = "complete"
    FAILED = "failed"


class Transaction:
    """Drives one request frame through to its validated reply.

    Args:
        transport: Byte stream to the device.
        frame: Complete request frame, as built by
            :func:`~dyio_mcp.protocol.framing.build_frame`.
        timeout: Seconds to wait for the first byte of a reply header.
        frame_timeout: Seconds to wait for each further byte of a frame
            once it has started; ``None`` blocks without limit.
    """

    def __init__(
        self,
        transport: Transport,
        frame: bytes,
        timeout: Optional[float] = READ_TIMEOUT_S,
        frame_timeout: Optional[float] = None,
    ) -> None:
        self._transport = transport
        self._frame = bytes(frame)
        self._timeout = timeout
        self._frame_timeout = frame_timeout
        self._header: Header | None = None
        self._body = b""
        self._result: Frame | None = None

        self.state = TransactionState.SENDING
        self.resyncs = 0
        self.dropped = 0
        self.reply_address: bytes | None = None

    @property
    def request(self) -> bytes:
        return self._frame

    def run(self) -> Frame:
        """Run the state machine until the reply arrives.

        Returns:
            The validated reply frame.

        Raises:
            TransportError: The write or a read failed, including an
                ``OSError`` raised by the transport itself.
            PeerSilentError: The device sent nothing within the wait.
            DesyncError: Version mismatch after the resend.
            ChecksumError: Checksum failure after the resend.
        """
        steps: dict[TransactionState, Callable[[], TransactionState]] = {
            TransactionState.SENDING: self._send,
            TransactionState.AWAIT_HEADER: self._await_header,
            TransactionState.VALIDATING_HEADER: self._validate_header,
            TransactionState.AWAIT_PAYLOAD: self._await_payload,
            TransactionState.VALIDATING_PAYLOAD: self._validate_payload,
            TransactionState.FILTERING: self._filter,
        }
        try:
            while self.state is not TransactionState.COMPLETE:
                self.state = steps[self.state]()
        except DyIOError:
            self.state = TransactionState.FAILED
            raise
        except (OSError, serial.SerialException) as e:
            self.state = TransactionState.FAILED
            raise TransportError(f"Transport failure: {e}") from e
        return self._result

    # ─── STATES ──────────────────────────────────────────────────────

    def _send(self) -> TransactionState:
        if logger.isEnabledFor(logging.DEBUG):
            header = decode_header(self._frame)
            logger.debug(format_trace("send", header, self._frame[HEADER_SIZE:]))

        written = self._transport.write(self._frame)
        if written != len(self._frame):
            raise TransportError(
                f"Short write: {written} of {len(self._frame)} bytes"
            )
        return TransactionState.AWAIT_HEADER

    def _await_header(self) -> TransactionState:
        raw = self._read_exact(HEADER_SIZE, self._timeout)
        self._header = decode_header(raw)
        return TransactionState.VALIDATING_HEADER

    def _validate_header(self) -> TransactionState:
        header = self._header
        if header.version != PROTO_VERSION:
            logger.warning(
                "Invalid header: %s", header.to_bytes().hex("-")
            )
            return self._resync(
                DesyncError(
                    f"Unable to synchronize: protocol version {header.version}, "
                    f"expected {PROTO_VERSION}"
                )
            )
        self.reply_address = header.address
        return TransactionState.AWAIT_PAYLOAD

    def _await_payload(self) -> TransactionState:
        self._body = self._read_exact(self._header.datalen + 1, self._frame_timeout)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(format_trace("reply", self._header, self._body))
        return TransactionState.VALIDATING_PAYLOAD

    def _validate_payload(self) -> TransactionState:
        header, body = self._header, self._body

        if not header_checksum_valid(header):
            expected = header_checksum(header.fields())
            logger.warning(
                "Invalid reply header sum = %02x, expected %02x",
                header.checksum,
                expected,
            )
            return self._resync(
                ChecksumError(
                    "Invalid reply header checksum",
                    expected=expected,
                    actual=header.checksum,
                )
            )

        if header.datalen < OP_CODE_SIZE:
            logger.warning("Reply data length %d shorter than op code", header.datalen)
            return self._resync(
                ChecksumError(f"Reply data length {header.datalen} shorter than op code")
            )

        op_code = body[:OP_CODE_SIZE]
        data = body[OP_CODE_SIZE:-1]
        expected = payload_checksum(op_code, data)
        if body[-1] != expected:
            logger.warning(
                "Invalid reply data sum = %02x, expected %02x", body[-1], expected
            )
            return self._resync(
                ChecksumError(
                    "Invalid reply data checksum", expected=expected, actual=body[-1]
                )
            )

        self._result = Frame(header=header, op_code=op_code, data=data)
        return TransactionState.FILTERING

    def _filter(self) -> TransactionState:
        header = self._header
        if not header.response:
            logger.debug("Dropping frame without response flag: %r", self._result)
        elif header.kind == PacketKind.ASYNC:
            logger.debug("Dropping asynchronous frame: %r", self._result)
        else:
            return TransactionState.COMPLETE

        self.dropped += 1
        self._result = None
        return TransactionState.AWAIT_HEADER

    # ─── HELPERS ─────────────────────────────────────────────────────

    def _read_exact(self, n: int, timeout: Optional[float]) -> bytes:
        """Accumulate exactly ``n`` bytes; later reads use the frame timeout."""
        buf = bytearray()
        while len(buf) < n:
            chunk = self._transport.read(n - len(buf), timeout)
            if not chunk:
                raise PeerSilentError(
                    f"Connection lost: no data from device "
                    f"({len(buf)} of {n} bytes received)"
                )
            buf += chunk
            timeout = self._frame_timeout
        return bytes(buf)

    def _flush_input(self) -> None:
        """Discard one bounded chunk of pending input."""
        discarded = self._transport.read(FLUSH_CHUNK, self._timeout)
        if discarded:
            logger.debug("Discarded %d bytes of input", len(discarded))

    def _resync(self, error: ProtocolError) -> TransactionState:
        """Flush input and resend once; raise ``error`` when the budget is spent."""
        self._flush_input()
        self._header = None
        self._body = b""
        if self.resyncs >= MAX_RESYNC:
            raise error
        self.resyncs += 1
        logger.info("Resynchronizing: resending request (%s)", error)
        return TransactionState.SENDING
