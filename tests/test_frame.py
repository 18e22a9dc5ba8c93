from __future__ import annotations

from pyenco.ingestion.frame import decode_frame, is_status_frame
from pyenco.models.channel import Channel
from pyenco.models.telemetry import BatteryReading, ChargingReading

_HEADER = [0xAA, 0x0F, 0, 0, 0, 0, 0, 0, 0]


def _frame(record_type: int, *entries: tuple[int, int], count: int | None = None) -> bytes:
    body = [record_type, len(entries) if count is None else count]
    for slot, value in entries:
        body.extend([slot, value])
    return bytes(_HEADER + body)


def _battery(records: list) -> dict[Channel, int]:
    return {r.channel: r.percent for r in records if isinstance(r, BatteryReading)}


def _charging(records: list) -> dict[Channel, bool]:
    return {r.channel: r.charging for r in records if isinstance(r, ChargingReading)}


def test_battery_frame_clamps_full_status_code() -> None:
    frame = bytes([0xAA, 0x0F, 0, 0, 0, 0, 0, 0, 0, 0x01, 2, 1, 55, 2, 228])

    assert _battery(decode_frame(frame, swapped=False)) == {Channel.LEFT: 55, Channel.RIGHT: 100}


def test_battery_frame_with_swap_moves_left_and_right() -> None:
    frame = bytes([0xAA, 0x0F, 0, 0, 0, 0, 0, 0, 0, 0x01, 2, 1, 55, 2, 228])

    assert _battery(decode_frame(frame, swapped=True)) == {Channel.LEFT: 100, Channel.RIGHT: 55}


def test_case_slot_is_never_swapped() -> None:
    frame = _frame(0x01, (3, 42))

    assert _battery(decode_frame(frame, swapped=True)) == {Channel.CASE: 42}


def test_charging_frame_any_nonzero_value_means_charging() -> None:
    frame = _frame(0x02, (1, 1), (2, 0), (3, 0x7F))

    assert _charging(decode_frame(frame, swapped=False)) == {
        Channel.LEFT: True,
        Channel.RIGHT: False,
        Channel.CASE: True,
    }


def test_zero_battery_value_is_decoded_as_zero() -> None:
    # Filtering zero is the store's job, not the decoder's.
    frame = _frame(0x01, (1, 0))

    assert _battery(decode_frame(frame, swapped=False)) == {Channel.LEFT: 0}


def test_short_frame_yields_nothing() -> None:
    frame = bytes([0xAA, 0x0F, 0, 0, 0, 0, 0, 0, 0, 0x01, 1, 1])

    assert not is_status_frame(frame)
    assert decode_frame(frame, swapped=False) == []


def test_foreign_marker_yields_nothing() -> None:
    frame = bytes([0xBB]) + _frame(0x01, (1, 50))[1:]

    assert decode_frame(frame, swapped=False) == []


def test_empty_frame_yields_nothing() -> None:
    assert decode_frame(b"", swapped=False) == []


def test_unknown_record_type_yields_nothing() -> None:
    frame = _frame(0x05, (1, 50), (2, 60))

    assert decode_frame(frame, swapped=False) == []


def test_truncated_entry_list_keeps_complete_entries() -> None:
    # Claims three entries but only carries two and a half.
    frame = _frame(0x01, (1, 50), (2, 60), count=3) + bytes([3])

    assert _battery(decode_frame(frame, swapped=False)) == {Channel.LEFT: 50, Channel.RIGHT: 60}


def test_count_smaller_than_payload_ignores_extra_entries() -> None:
    frame = _frame(0x01, (1, 50), (2, 60), count=1)

    assert _battery(decode_frame(frame, swapped=False)) == {Channel.LEFT: 50}


def test_unknown_slot_is_dropped() -> None:
    frame = _frame(0x01, (9, 50), (2, 60))

    assert _battery(decode_frame(frame, swapped=False)) == {Channel.RIGHT: 60}


def test_later_entry_for_same_channel_wins() -> None:
    frame = _frame(0x01, (1, 50), (1, 70))

    records = decode_frame(frame, swapped=False)

    assert len(records) == 1
    assert _battery(records) == {Channel.LEFT: 70}


def test_zero_count_yields_nothing() -> None:
    frame = _frame(0x01, (1, 50), count=0)

    assert decode_frame(frame, swapped=False) == []
