"""Human-readable reports for the command-line tool."""

from __future__ import annotations

from .models.channel import MAX_MODES, ChannelFeatures, ChannelMode, ChannelStatus, mode_name
from .models.rpc import NamespaceInfo
from .models.system import DeviceInfo, format_address


def format_info(info: DeviceInfo) -> str:
    power = info.power
    return "\n".join([
        f"Firmware Revision: {info.firmware_version}",
        f"Power Input: {power.voltage:.1f}V, Override={power.override}",
        "Rail Power Source: Right={}, Left={}".format(
            "Internal" if power.right_internal else "External",
            "Internal" if power.left_internal else "External",
        ),
    ])


def format_address_line(address: bytes) -> str:
    return f"DyIO device address: {format_address(address)}"


def format_namespaces(namespaces: list[NamespaceInfo]) -> str:
    lines = []
    for ns in namespaces:
        lines.append(f"Namespace {ns.index}: {ns.name}")
        for method in ns.methods:
            lines.append(f"    {method.signature()}")
    return "\n".join(lines)


def _column_header(num_channels: int) -> list[str]:
    tens = "".join(f"{c // 10 if c >= 10 else ' '} " for c in range(num_channels))
    units = "".join(f"{c % 10} " for c in range(num_channels))
    return [
        "Channel Features:".ljust(26) + tens.rstrip(),
        " " * 26 + units.rstrip(),
    ]


def format_channel_features(features: ChannelFeatures) -> str:
    """Render a mode-by-channel matrix: ``+`` where a channel supports a mode."""
    lines = [""] + _column_header(features.num_channels)
    for mode in range(ChannelMode.DI, MAX_MODES):
        if mode == ChannelMode.UNUSED:
            continue
        cells = "".join(
            ("+ " if features.supports(c, mode) else ". ")
            for c in range(features.num_channels)
        )
        lines.append(f"    {mode_name(mode):<22}{cells}".rstrip())
    return "\n".join(lines)


def format_channels(channels: list[ChannelStatus]) -> str:
    """Render one line per channel; values print as unsigned 32-bit."""
    lines = ["", "Channel Status:"]
    for status in channels:
        lines.append(
            f"    {status.channel:2d}: {status.mode_name:<20} = {status.value & 0xFFFFFFFF}"
        )
    return "\n".join(lines)
