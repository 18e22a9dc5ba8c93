"""Device, service and characteristic matching rules."""

from __future__ import annotations

from pyenco._constants import BATTERY_LEVEL_CHARACTERISTIC_UUID
from pyenco.config import EncoConfig
from pyenco.ingestion.normalize import normalize_uuid, uuid_contains_any


def matches_device_name(name: str | None, config: EncoConfig) -> bool:
    if not name:
        return False
    return config.device_name.casefold() in name.casefold()


def is_monitored_service(service_uuid: str, config: EncoConfig) -> bool:
    """Vendor status services plus the standard battery service."""
    if normalize_uuid(service_uuid) == normalize_uuid(config.battery_service_uuid):
        return True
    return uuid_contains_any(service_uuid, config.service_fragments)


def is_control_characteristic(characteristic_uuid: str, config: EncoConfig) -> bool:
    return uuid_contains_any(characteristic_uuid, config.control_fragments)


def is_battery_level_characteristic(characteristic_uuid: str) -> bool:
    return BATTERY_LEVEL_CHARACTERISTIC_UUID in normalize_uuid(characteristic_uuid)
