"""MCP server entry point for the DyIO.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .device import DyIO
from .errors import DyIOError
from .models.channel import MAX_MODES, MODE_LABELS, ChannelMode, parse_mode
from .models.system import format_address
from .protocol.framing import MAX_DATA_LEN, Namespace, PacketKind
from .transport.serial_connection import DEFAULT_BAUDRATE

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "dyio",
    instructions="MCP server for the DyIO I/O controller",
)

# Global connection state
_connection: DyIO | None = None


def _get_connection() -> DyIO:
    """Get the active connection, raising if not connected."""
    if _connection is None or not _connection.connected:
        raise RuntimeError(
            "Not connected to device. Use the 'connect' tool first."
        )
    return _connection


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str, baudrate: int = DEFAULT_BAUDRATE) -> dict[str, Any]:
    """Open the serial port of a DyIO and ping it.

    Args:
        port: Serial device (e.g. /dev/ttyACM0, COM3) or pyserial URL.
        baudrate: Line speed, 115200 by default.
    """
    global _connection
    if _connection is not None and _connection.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "address": format_address(_connection.reply_address),
        }

    try:
        _connection = DyIO.open(port, baudrate=baudrate)
    except DyIOError as e:
        return {"connected": False, "error": str(e)}

    return {
        "connected": True,
        "port": port,
        "address": format_address(_connection.reply_address),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to the DyIO."""
    global _connection
    if _connection is None:
        return {"disconnected": True}
    _connection.close()
    _connection = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Retrieve firmware revision, input voltage and rail power sources."""
    conn = _get_connection()
    try:
        return conn.info().to_dict()
    except DyIOError as e:
        return {"error": str(e)}


@mcp.tool()
def list_namespaces() -> dict[str, Any]:
    """List the device namespaces and the signature of every method."""
    conn = _get_connection()
    try:
        namespaces = conn.namespaces()
    except DyIOError as e:
        return {"error": str(e)}
    return {"namespaces": [ns.to_dict() for ns in namespaces]}


# ─── CHANNEL TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def get_channels() -> dict[str, Any]:
    """Read the current mode and value of every channel."""
    conn = _get_connection()
    try:
        channels = conn.channels()
    except DyIOError as e:
        return {"error": str(e)}
    return {"channels": [c.to_dict() for c in channels]}


@mcp.tool()
def get_channel_features() -> dict[str, Any]:
    """List the modes each channel supports."""
    conn = _get_connection()
    try:
        return conn.channel_features().to_dict()
    except DyIOError as e:
        return {"error": str(e)}


@mcp.tool()
def set_channel_mode(channel: int, mode: str) -> dict[str, Any]:
    """Configure a channel.

    Args:
        channel: Channel index (0-63).
        mode: Mode name such as "DO", "Digital Input", "SERVO", or its numeric id.
    """
    try:
        resolved = parse_mode(mode)
    except ValueError as e:
        return {"error": str(e)}

    conn = _get_connection()
    try:
        conn.set_mode(channel, resolved)
    except (DyIOError, ValueError) as e:
        return {"error": str(e)}
    return {"channel": channel, "mode": resolved.name, "mode_name": MODE_LABELS[resolved]}


@mcp.tool()
def set_channel_value(channel: int, value: int, msec: int = 0) -> dict[str, Any]:
    """Set a channel value.

    Args:
        channel: Channel index (0-63).
        value: New value; its meaning depends on the channel mode.
        msec: Transition time in milliseconds (servo channels).
    """
    conn = _get_connection()
    try:
        conn.set_value(channel, value, msec)
    except (DyIOError, ValueError) as e:
        return {"error": str(e)}
    return {"channel": channel, "value": value, "msec": msec}


@mcp.tool()
def get_channel_value(channel: int) -> dict[str, Any]:
    """Read the current value of one channel.

    Args:
        channel: Channel index (0-63).
    """
    conn = _get_connection()
    try:
        value = conn.get_value(channel)
    except (DyIOError, ValueError) as e:
        return {"error": str(e)}
    return {"channel": channel, "value": value}


@mcp.tool()
def call_rpc(
    kind: str,
    namespace: int,
    op_code: str,
    data_hex: str = "",
) -> dict[str, Any]:
    """Send a raw RPC and return the reply bytes as hex.

    Args:
        kind: Packet kind: STATUS, GET, POST or CRITICAL.
        namespace: Namespace id (0-7 on current firmware).
        op_code: 4-character operation code, e.g. "_png" or "gchv".
        data_hex: Argument bytes as hex, e.g. "17" for channel 23.
    """
    try:
        packet_kind = PacketKind[kind.upper()]
        data = bytes.fromhex(data_hex)
    except (KeyError, ValueError) as e:
        return {"error": f"Invalid argument: {e}"}
    if packet_kind == PacketKind.ASYNC:
        return {"error": "ASYNC packets cannot be sent as requests"}

    conn = _get_connection()
    try:
        reply = conn.call(packet_kind, namespace, op_code, data)
    except (DyIOError, ValueError) as e:
        return {"error": str(e)}
    return {
        "reply_hex": reply.hex(" "),
        "reply_length": len(reply),
        "address": format_address(conn.reply_address),
    }


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("dyio://device/info")
def resource_device_info() -> str:
    """Connection state and device address."""
    if _connection is None or not _connection.connected:
        return json.dumps({"connected": False})

    return json.dumps({
        "connected": True,
        "address": format_address(_connection.reply_address),
    })


@mcp.resource("dyio://catalog/modes")
def resource_mode_catalog() -> str:
    """All channel modes with their ids."""
    modes = [
        {"id": int(mode), "name": mode.name, "label": MODE_LABELS.get(mode, "")}
        for mode in ChannelMode
        if mode < MAX_MODES and mode != ChannelMode.UNUSED
    ]
    return json.dumps({"modes": modes, "count": len(modes)})


@mcp.resource("dyio://catalog/namespaces")
def resource_namespace_catalog() -> str:
    """Well-known namespace ids and packet kinds."""
    return json.dumps({
        "namespaces": [{"id": int(ns), "name": ns.name} for ns in Namespace],
        "packet_kinds": [{"id": int(k), "name": k.name} for k in PacketKind],
        "max_data_length": MAX_DATA_LEN,
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
