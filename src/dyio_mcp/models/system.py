"""Device identification and power status models."""

from __future__ import annotations

from dataclasses import dataclass


def format_address(address: bytes) -> str:
    return "-".join(f"{b:02x}" for b in address)


@dataclass
class PowerStatus:
    """Rail power sources and input voltage from ``_pwr``."""

    right_internal: bool
    left_internal: bool
    voltage_mv: int
    override: int

    @property
    def voltage(self) -> float:
        return self.voltage_mv / 1000.0

    def to_dict(self) -> dict:
        return {
            "voltage": round(self.voltage, 3),
            "override": self.override,
            "rail_right": "Internal" if self.right_internal else "External",
            "rail_left": "Internal" if self.left_internal else "External",
        }


@dataclass
class DeviceInfo:
    """Firmware revision, power status and address of the device."""

    firmware: tuple[int, int, int]
    power: PowerStatus
    address: bytes = bytes(6)

    @property
    def firmware_version(self) -> str:
        return ".".join(str(part) for part in self.firmware)

    def to_dict(self) -> dict:
        return {
            "address": format_address(self.address),
            "firmware": self.firmware_version,
            "power": self.power.to_dict(),
        }
