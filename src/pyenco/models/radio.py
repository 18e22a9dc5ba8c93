"""Radio-facing value types.

These are what the BLE runtime hands to the connection state machine. They
carry only what the state machine needs; bleak and test fakes both produce
them.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING_SERVICES = "discovering_services"
    READY = "ready"

    @property
    def is_connected(self) -> bool:
        return self in (ConnectionState.DISCOVERING_SERVICES, ConnectionState.READY)


class Advertisement(BaseModel):
    """One advertisement (or connected-device lookup result)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    device_id: str
    name: str | None = None
    connected: bool = False
    """Whether the backend already holds a usable connection to the device."""
    manufacturer_data: dict[int, bytes] = Field(default_factory=dict)


class CharacteristicDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    service_id: str
    can_read: bool = False
    can_notify: bool = False
    """Notify or indicate."""
    can_write: bool = False
    write_without_response: bool = False
