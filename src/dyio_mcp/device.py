"""RPC client for a DyIO device.

:class:`DyIO` owns one transport and drives one :class:`Transaction` per
call. It keeps the device address used in outgoing frames, the address
echoed by the last reply and the data of the last reply.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .errors import DyIOError
from .models.channel import ChannelFeatures, ChannelStatus, parse_mode
from .models.rpc import NamespaceInfo
from .models.system import DeviceInfo, format_address
from .protocol.commands import (
    ALL_CHANNEL_MODES,
    ALL_CHANNEL_VALUES,
    CHANNEL_COUNT,
    POWER,
    REVISION,
    Request,
    build_get_value,
    build_mode_list_query,
    build_namespace_query,
    build_ping,
    build_rpc_args_query,
    build_rpc_name_query,
    build_set_mode,
    build_set_value,
)
from .protocol.framing import ADDRESS_SIZE, BROADCAST_ADDRESS, Frame, build_frame
from .protocol.marshal import ReplyReader
from .protocol.parser import (
    parse_channel_count,
    parse_channel_status,
    parse_channel_value,
    parse_method_args,
    parse_mode_list,
    parse_namespace_count,
    parse_namespace_name,
    parse_power,
    parse_revision,
    parse_rpc_name,
)
from .protocol.transaction import READ_TIMEOUT_S, Transaction
from .transport.base import Transport
from .transport.serial_connection import DEFAULT_BAUDRATE, SerialConnection

logger = logging.getLogger(__name__)


class DyIO:
    """A connection to one DyIO device.

    Calls are serialized: a lock ensures one outstanding transaction per
    connection. A failed call raises a :class:`~dyio_mcp.errors.DyIOError`
    subclass and leaves the connection usable.

    Usage::

        with DyIO.open("/dev/ttyACM0") as dyio:
            dyio.set_mode(0, ChannelMode.DO)
            dyio.set_value(0, 1)
            print(dyio.get_value(23))
    """

    def __init__(
        self,
        transport: Transport,
        address: bytes = BROADCAST_ADDRESS,
        timeout: Optional[float] = READ_TIMEOUT_S,
        frame_timeout: Optional[float] = None,
    ) -> None:
        if len(address) != ADDRESS_SIZE:
            raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(address)}")
        self._transport = transport
        self._address = bytes(address)
        self._timeout = timeout
        self._frame_timeout = frame_timeout
        self._lock = threading.Lock()

        self.reply = b""
        self.reply_address = bytes(ADDRESS_SIZE)
        self.last_frame: Frame | None = None

    @classmethod
    def open(
        cls,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        address: bytes = BROADCAST_ADDRESS,
        timeout: Optional[float] = READ_TIMEOUT_S,
        frame_timeout: Optional[float] = None,
    ) -> DyIO:
        """Open a serial port and ping the device.

        Raises:
            TransportError: If the port cannot be opened.
            DyIOError: If the device does not answer the ping.
        """
        conn = SerialConnection(port, baudrate).open()
        device = cls(conn, address=address, timeout=timeout, frame_timeout=frame_timeout)
        try:
            device.ping()
        except DyIOError:
            conn.close()
            raise
        logger.info(
            "Connected to DyIO at %s, address %s",
            port,
            format_address(device.reply_address),
        )
        return device

    @property
    def address(self) -> bytes:
        return self._address

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def connected(self) -> bool:
        return getattr(self._transport, "connected", True)

    def close(self) -> None:
        self._transport.close()

    def __enter__(self) -> DyIO:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ─── CORE CALL ───────────────────────────────────────────────────

    def call(
        self,
        kind: int,
        namespace: int,
        op_code: str | bytes,
        data: bytes = b"",
    ) -> bytes:
        """Send one request and return the data of its synchronous reply.

        Args:
            kind: Packet kind of the request.
            namespace: Namespace id 0-127.
            op_code: 4-character ASCII operation code.
            data: Marshaled arguments, at most 251 bytes.

        Returns:
            Reply data following the op code, without the checksum byte.
            ``reply`` and ``last_frame`` are cleared when the call fails.

        Raises:
            PayloadTooLargeError: If ``data`` exceeds 251 bytes.
            TransportError, PeerSilentError, DesyncError, ChecksumError:
                As raised by :meth:`Transaction.run`.
        """
        frame = build_frame(kind, namespace, self._address, op_code, data)
        with self._lock:
            self.reply = b""
            self.last_frame = None
            transaction = Transaction(
                self._transport,
                frame,
                timeout=self._timeout,
                frame_timeout=self._frame_timeout,
            )
            try:
                reply = transaction.run()
            finally:
                if transaction.reply_address is not None:
                    self.reply_address = transaction.reply_address
            self.reply = reply.data
            self.last_frame = reply
        return reply.data

    def request(self, request: Request) -> bytes:
        op = request.operation
        return self.call(op.kind, op.namespace, op.rpc, request.data)

    # ─── DEVICE HELPERS ──────────────────────────────────────────────

    def ping(self) -> None:
        self.request(build_ping())

    def info(self) -> DeviceInfo:
        """Query firmware revision and power status."""
        firmware = parse_revision(self.request(Request(REVISION)))
        power = parse_power(self.request(Request(POWER)))
        return DeviceInfo(firmware=firmware, power=power, address=self.reply_address)

    def namespaces(self) -> list[NamespaceInfo]:
        """List every namespace with the signatures of its methods."""
        count = parse_namespace_count(self.request(build_namespace_query()))
        result = []
        for ns in range(count):
            name = parse_namespace_name(self.request(build_namespace_query(ns)))
            info = NamespaceInfo(index=ns, name=name)

            # The method count arrives with the first method's name.
            num_methods = 1
            m = 0
            while m < num_methods:
                num_methods, rpc = parse_rpc_name(
                    self.request(build_rpc_name_query(ns, m))
                )
                method = parse_method_args(
                    self.request(build_rpc_args_query(ns, m)), rpc
                )
                info.methods.append(method)
                m += 1
            result.append(info)
        return result

    def channel_count(self) -> int:
        return parse_channel_count(self.request(Request(CHANNEL_COUNT)))

    def channel_modes(self, channel: int) -> set[int]:
        """Return the modes channel ``channel`` supports."""
        return parse_mode_list(self.request(build_mode_list_query(channel)))

    def channel_features(self) -> ChannelFeatures:
        count = self.channel_count()
        return ChannelFeatures(modes=[self.channel_modes(c) for c in range(count)])

    def channels(self) -> list[ChannelStatus]:
        """Return the current mode and value of every channel."""
        modes = self.request(Request(ALL_CHANNEL_MODES))
        values = self.request(Request(ALL_CHANNEL_VALUES))
        return parse_channel_status(modes, values)

    def set_mode(self, channel: int, mode: int | str) -> None:
        reply = self.request(build_set_mode(channel, parse_mode(mode)))
        ReplyReader(reply, "schm").require(1)

    def set_value(self, channel: int, value: int, msec: int = 0) -> None:
        """Set a channel value, with an optional transition time in milliseconds."""
        reply = self.request(build_set_value(channel, value, msec))
        ReplyReader(reply, "schv").require(2)

    def get_value(self, channel: int) -> int:
        return parse_channel_value(self.request(build_get_value(channel)))
