"""Battery and charging snapshots.

Snapshots are immutable. The state store replaces them wholesale on every
change, which is what keeps readers from seeing a half-applied update.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pyenco.models.channel import Channel
from pyenco.models.radio import ConnectionState

Percent = int | None


class BatterySnapshot(BaseModel):
    """Last known battery percentage per channel."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    left: Percent = Field(default=None, ge=0, le=100)
    right: Percent = Field(default=None, ge=0, le=100)
    case: Percent = Field(default=None, ge=0, le=100)
    last_updated: datetime | None = None
    """When a battery value was last applied (not when the device was seen)."""

    def get(self, channel: Channel) -> int | None:
        if channel is Channel.UNKNOWN:
            return None
        value: int | None = getattr(self, channel.value)
        return value

    def swapped(self) -> BatterySnapshot:
        return self.model_copy(update={"left": self.right, "right": self.left})


class ChargingSnapshot(BaseModel):
    """Charging flag per channel."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    left: bool = False
    right: bool = False
    case: bool = False

    def get(self, channel: Channel) -> bool:
        if channel is Channel.UNKNOWN:
            return False
        value: bool = getattr(self, channel.value)
        return value

    def swapped(self) -> ChargingSnapshot:
        return self.model_copy(update={"left": self.right, "right": self.left})


class MonitorSnapshot(BaseModel):
    """Everything a consumer needs to render the current state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    battery: BatterySnapshot = Field(default_factory=BatterySnapshot)
    charging: ChargingSnapshot = Field(default_factory=ChargingSnapshot)
    swapped: bool = False
    connection: ConnectionState = ConnectionState.DISCONNECTED
    radio_powered: bool = False
    last_seen: datetime | None = None
    """Last advertisement from the target device."""

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected
