"""Data models for earbud telemetry and radio events."""

from pyenco.models.channel import Channel, map_slot
from pyenco.models.radio import Advertisement, CharacteristicDescriptor, ConnectionState
from pyenco.models.snapshot import BatterySnapshot, ChargingSnapshot, MonitorSnapshot
from pyenco.models.telemetry import BatteryReading, ChargingReading, TelemetryRecord, swap_record

__all__ = [
    "Advertisement",
    "BatteryReading",
    "BatterySnapshot",
    "Channel",
    "CharacteristicDescriptor",
    "ChargingReading",
    "ChargingSnapshot",
    "ConnectionState",
    "MonitorSnapshot",
    "TelemetryRecord",
    "map_slot",
    "swap_record",
]
