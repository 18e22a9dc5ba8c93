"""Proprietary status frame decoding.

Layout (all offsets in bytes)::

    0      0xAA marker
    1      length (not trusted)
    2..8   reserved
    9      record type: 0x01 battery, 0x02 charging
    10     entry count N
    11..   N entries of [slot id, value]

Frames are delivered whole or in part depending on the link, so anything
short, foreign or truncated decodes to fewer (or zero) records rather than
an error.
"""

from __future__ import annotations

from pyenco._constants import (
    FRAME_COUNT_OFFSET,
    FRAME_ENTRIES_OFFSET,
    FRAME_ENTRY_SIZE,
    FRAME_MARKER,
    FRAME_MIN_LENGTH,
    FRAME_TYPE_OFFSET,
    RECORD_TYPE_BATTERY,
    RECORD_TYPE_CHARGING,
)
from pyenco.models.channel import Channel, map_slot
from pyenco.models.telemetry import BatteryReading, ChargingReading, TelemetryRecord
from pyenco.state.policy import clamp_percent


def is_status_frame(frame: bytes) -> bool:
    """Whether *frame* belongs to the proprietary status protocol."""
    return len(frame) >= FRAME_MIN_LENGTH and frame[0] == FRAME_MARKER


def _iter_entries(frame: bytes) -> list[tuple[int, int]]:
    count = frame[FRAME_COUNT_OFFSET]
    entries: list[tuple[int, int]] = []
    offset = FRAME_ENTRIES_OFFSET
    for _ in range(count):
        if offset + 1 >= len(frame):
            break
        entries.append((frame[offset], frame[offset + 1]))
        offset += FRAME_ENTRY_SIZE
    return entries


def decode_frame(frame: bytes, *, swapped: bool) -> list[TelemetryRecord]:
    """Decode one status frame into telemetry records.

    At most one record per channel is returned; a later entry for the same
    channel replaces an earlier one. Never raises for malformed input.
    """
    if not is_status_frame(frame):
        return []

    record_type = frame[FRAME_TYPE_OFFSET]
    if record_type not in (RECORD_TYPE_BATTERY, RECORD_TYPE_CHARGING):
        return []

    by_channel: dict[Channel, TelemetryRecord] = {}
    for slot_id, value in _iter_entries(frame):
        channel = map_slot(slot_id, swapped)
        if channel is Channel.UNKNOWN:
            continue
        if record_type == RECORD_TYPE_BATTERY:
            # Status codes such as 228 (0xE4) mean "full".
            by_channel[channel] = BatteryReading(channel=channel, percent=clamp_percent(value))
        else:
            by_channel[channel] = ChargingReading(channel=channel, charging=value != 0)

    return list(by_channel.values())
