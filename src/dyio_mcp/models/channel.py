"""Channel modes, status and capability models.

The DyIO exposes up to 64 pins ("channels"). Each channel is configured
into one mode and carries a 32-bit value whose meaning depends on the mode.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

MAX_CHANNELS = 64


class ChannelMode(IntEnum):
    """Channel mode ids used by ``schm``, ``gacm`` and ``gcml``."""

    NO_CHANGE = 0x00
    HIGH_IMPEDANCE = 0x01
    DI = 0x02
    DO = 0x03
    ANALOG_IN = 0x04
    ANALOG_OUT = 0x05
    PWM = 0x06
    SERVO = 0x07
    UART_TX = 0x08
    UART_RX = 0x09
    SPI_MOSI = 0x0A
    SPI_MISO = 0x0B
    SPI_SCK = 0x0C
    UNUSED = 0x0D
    COUNTER_INPUT_INT = 0x0E
    COUNTER_INPUT_DIR = 0x0F
    COUNTER_INPUT_HOME = 0x10
    COUNTER_OUTPUT_INT = 0x11
    COUNTER_OUTPUT_DIR = 0x12
    COUNTER_OUTPUT_HOME = 0x13
    DC_MOTOR_VEL = 0x14
    DC_MOTOR_DIR = 0x15
    PPM_IN = 0x16


MAX_MODES = 0x17

MODE_LABELS: dict[int, str] = {
    ChannelMode.NO_CHANGE: "No Change",
    ChannelMode.HIGH_IMPEDANCE: "High Impedance",
    ChannelMode.DI: "Digital Input",
    ChannelMode.DO: "Digital Output",
    ChannelMode.ANALOG_IN: "Analog Input",
    ChannelMode.ANALOG_OUT: "Analog Output",
    ChannelMode.PWM: "PWM",
    ChannelMode.SERVO: "Servo",
    ChannelMode.UART_TX: "UART Transmit",
    ChannelMode.UART_RX: "UART Receive",
    ChannelMode.SPI_MOSI: "SPI MOSI",
    ChannelMode.SPI_MISO: "SPI MISO",
    ChannelMode.SPI_SCK: "SPI SCK",
    ChannelMode.COUNTER_INPUT_INT: "Counter Input INT",
    ChannelMode.COUNTER_INPUT_DIR: "Counter Input DIR",
    ChannelMode.COUNTER_INPUT_HOME: "Counter Input HOME",
    ChannelMode.COUNTER_OUTPUT_INT: "Counter Output INT",
    ChannelMode.COUNTER_OUTPUT_DIR: "Counter Output DIR",
    ChannelMode.COUNTER_OUTPUT_HOME: "Counter Output HOME",
    ChannelMode.DC_MOTOR_VEL: "DC Motor VEL",
    ChannelMode.DC_MOTOR_DIR: "DC Motor DIR",
    ChannelMode.PPM_IN: "PPM Input",
}


def mode_name(mode: int) -> str:
    return MODE_LABELS.get(mode, "UNKNOWN")


def parse_mode(value: int | str) -> ChannelMode:
    """Resolve a mode from its id, enum name (``"DO"``) or label (``"Digital Output"``).

    Raises:
        ValueError: If nothing matches.
    """
    if isinstance(value, int):
        return ChannelMode(value)
    key = value.strip()
    if key.isdigit():
        return ChannelMode(int(key))
    normalized = key.upper().replace(" ", "_").replace("-", "_")
    if normalized in ChannelMode.__members__:
        return ChannelMode[normalized]
    for mode, label in MODE_LABELS.items():
        if label.lower() == key.lower():
            return ChannelMode(mode)
    raise ValueError(f"Unknown channel mode {value!r}")


def check_channel(channel: int) -> None:
    if not 0 <= channel < MAX_CHANNELS:
        raise ValueError(f"Channel must be 0-{MAX_CHANNELS - 1}, got {channel}")


@dataclass
class ChannelStatus:
    """Current mode and value of one channel."""

    channel: int
    mode: int
    value: int

    @property
    def mode_name(self) -> str:
        return mode_name(self.mode)

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "mode": self.mode,
            "mode_name": self.mode_name,
            "value": self.value,
        }


@dataclass
class ChannelFeatures:
    """Modes supported by each channel, as reported by ``gcml``."""

    modes: list[set[int]] = field(default_factory=list)

    @property
    def num_channels(self) -> int:
        return len(self.modes)

    def supports(self, channel: int, mode: int) -> bool:
        return 0 <= channel < len(self.modes) and mode in self.modes[channel]

    def to_dict(self) -> dict:
        return {
            "num_channels": self.num_channels,
            "channels": [
                {"channel": c, "modes": [mode_name(m) for m in sorted(modes)]}
                for c, modes in enumerate(self.modes)
            ],
        }
