"""Normalization helpers.

Centralizes UUID and byte handling so the matching rules in the rest of the
package can stay simple string checks.
"""

from __future__ import annotations

from typing import Any

from pyenco._constants import BLUETOOTH_BASE_UUID_SUFFIX


def normalize_uuid(value: Any) -> str:
    """Uppercase a UUID and shorten Bluetooth-base UUIDs to 16 bits.

    ``"0000180f-0000-1000-8000-00805f9b34fb"`` -> ``"180F"``,
    ``"2a19"`` -> ``"2A19"``. Vendor 128-bit UUIDs are only uppercased.
    """
    text = str(value).strip().upper()
    if len(text) == 36 and text.startswith("0000") and text.endswith(BLUETOOTH_BASE_UUID_SUFFIX):
        return text[4:8]
    return text


def uuid_contains_any(uuid: Any, fragments: tuple[str, ...]) -> bool:
    normalized = normalize_uuid(uuid)
    return any(fragment.upper() in normalized for fragment in fragments)


def as_bytes(data: Any) -> bytes | None:
    """Best-effort conversion of a payload to immutable bytes."""
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    if isinstance(data, (list, tuple)):
        try:
            return bytes(data)
        except (TypeError, ValueError):
            return None
    return None
