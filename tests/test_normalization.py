from __future__ import annotations

import pytest

from pyenco.config import EncoConfig
from pyenco.ingestion.advertisement import (
    is_battery_level_characteristic,
    is_control_characteristic,
    is_monitored_service,
    matches_device_name,
)
from pyenco.ingestion.normalize import as_bytes, normalize_uuid
from pyenco.ingestion.standard import parse_battery_level


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("0000180f-0000-1000-8000-00805f9b34fb", "180F"),
        ("2a19", "2A19"),
        (" 180F ", "180F"),
        ("0000079a-d102-11e1-9b23-00025b00a5a5", "0000079A-D102-11E1-9B23-00025B00A5A5"),
    ],
)
def test_normalize_uuid(raw: str, expected: str) -> None:
    assert normalize_uuid(raw) == expected


def test_monitored_services() -> None:
    config = EncoConfig()

    assert is_monitored_service("0000180f-0000-1000-8000-00805f9b34fb", config)
    assert is_monitored_service("0000079c-0000-1000-8000-00805f9b34fb", config)
    assert is_monitored_service("00007900-d102-11e1-9b23-00025b00a5a5", config)
    assert not is_monitored_service("00001800-0000-1000-8000-00805f9b34fb", config)
    assert not is_monitored_service("0000180a-0000-1000-8000-00805f9b34fb", config)


def test_control_characteristics() -> None:
    config = EncoConfig()

    assert is_control_characteristic("0000079a-d102-11e1-9b23-00025b00a5a5", config)
    assert is_control_characteristic("0000079C-0000-1000-8000-00805F9B34FB", config)
    assert not is_control_characteristic("00007900-d102-11e1-9b23-00025b00a5a5", config)


def test_battery_level_characteristic() -> None:
    assert is_battery_level_characteristic("00002a19-0000-1000-8000-00805f9b34fb")
    assert is_battery_level_characteristic("2A19")
    assert not is_battery_level_characteristic("00002a1a-0000-1000-8000-00805f9b34fb")


def test_device_name_matching() -> None:
    config = EncoConfig()

    assert matches_device_name("OPPO Enco Air3 Pro", config)
    assert matches_device_name("ENCO buds2", config)
    assert not matches_device_name("Galaxy Buds", config)
    assert not matches_device_name(None, config)
    assert not matches_device_name("", config)
    assert matches_device_name("Office Buds", EncoConfig(device_name="office"))


def test_as_bytes_accepts_common_payload_types() -> None:
    assert as_bytes(b"\xaa") == b"\xaa"
    assert as_bytes(bytearray(b"\xaa")) == b"\xaa"
    assert as_bytes(memoryview(b"\xaa")) == b"\xaa"
    assert as_bytes([0xAA, 0x01]) == b"\xaa\x01"
    assert as_bytes([300]) is None
    assert as_bytes("aa") is None
    assert as_bytes(None) is None


def test_parse_battery_level() -> None:
    assert parse_battery_level(b"\x2a") == 42
    assert parse_battery_level(b"\x65") is None
    assert parse_battery_level(b"") is None
