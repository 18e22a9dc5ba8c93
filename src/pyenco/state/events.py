"""State change notifications.

Every mutation of the store publishes exactly one :class:`StateChange`
carrying the complete new snapshot, so subscribers never need to read back
from the store.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyenco.models.snapshot import MonitorSnapshot


class ChangeKind(StrEnum):
    LOADED = "loaded"
    BATTERY = "battery"
    CHARGING = "charging"
    SWAP = "swap"
    CONNECTION = "connection"
    SEEN = "seen"
    CLEARED = "cleared"

    @property
    def is_telemetry(self) -> bool:
        return self in (ChangeKind.BATTERY, ChangeKind.CHARGING)


class StateChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    kinds: frozenset[ChangeKind]
    snapshot: MonitorSnapshot
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("kinds")
    @classmethod
    def _non_empty(cls, value: frozenset[ChangeKind]) -> frozenset[ChangeKind]:
        if not value:
            raise ValueError("a state change needs at least one kind")
        return value

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def is_telemetry(self) -> bool:
        return any(kind.is_telemetry for kind in self.kinds)
