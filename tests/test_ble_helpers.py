from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from pyenco._ble import _describe_characteristic, _full_uuid


@dataclass
class _Characteristic:
    uuid: str
    properties: list[str] = field(default_factory=list)


@pytest.mark.parametrize(
    ("uuid", "expected"),
    [
        ("180F", "0000180f-0000-1000-8000-00805f9b34fb"),
        ("0000180F-0000-1000-8000-00805F9B34FB", "0000180f-0000-1000-8000-00805f9b34fb"),
        ("0000079A-D102-11E1-9B23-00025B00A5A5", "0000079a-d102-11e1-9b23-00025b00a5a5"),
    ],
)
def test_full_uuid(uuid: str, expected: str) -> None:
    assert _full_uuid(uuid) == expected


def test_describe_write_without_response_characteristic() -> None:
    characteristic = _Characteristic("0000079a-d102-11e1-9b23-00025b00a5a5", ["write-without-response", "notify"])

    descriptor = _describe_characteristic("svc", characteristic)  # type: ignore[arg-type]

    assert descriptor.id == "0000079a-d102-11e1-9b23-00025b00a5a5"
    assert descriptor.service_id == "svc"
    assert descriptor.can_write
    assert descriptor.write_without_response
    assert descriptor.can_notify
    assert not descriptor.can_read


def test_describe_acknowledged_write_characteristic() -> None:
    characteristic = _Characteristic("0000079c-0000-1000-8000-00805f9b34fb", ["Read", "Write", "Indicate"])

    descriptor = _describe_characteristic("svc", characteristic)  # type: ignore[arg-type]

    assert descriptor.can_read
    assert descriptor.can_write
    assert not descriptor.write_without_response
    assert descriptor.can_notify
