"""Data models for channels, device information and RPC introspection."""

from .channel import (
    MAX_CHANNELS,
    ChannelFeatures,
    ChannelMode,
    ChannelStatus,
    mode_name,
)
from .rpc import MethodInfo, NamespaceInfo
from .system import DeviceInfo, PowerStatus
