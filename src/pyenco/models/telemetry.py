"""Decoded telemetry records.

Records are transient: the decoder produces them and the state store
consumes them immediately. They are never persisted as such.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyenco.models.channel import Channel


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    channel: Channel

    @field_validator("channel")
    @classmethod
    def _reject_unknown(cls, value: Channel) -> Channel:
        if value is Channel.UNKNOWN:
            raise ValueError("records are only built for resolved channels")
        return value


class BatteryReading(_Record):
    """Battery percentage for one channel (already clamped to 0-100)."""

    kind: Literal["battery"] = "battery"
    percent: int = Field(..., ge=0, le=100)


class ChargingReading(_Record):
    """Charging flag for one channel."""

    kind: Literal["charging"] = "charging"
    charging: bool


TelemetryRecord = BatteryReading | ChargingReading


def swap_record(record: TelemetryRecord) -> TelemetryRecord:
    """Return *record* moved to its left/right counterpart channel."""
    return record.model_copy(update={"channel": record.channel.counterpart})
