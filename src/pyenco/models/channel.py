"""Logical channels and slot mapping.

The status protocol addresses units by slot id (1, 2, 3). Which physical
earbud is slot 1 depends on how the user wears them, so left/right can be
swapped by preference. The case never swaps.
"""

from __future__ import annotations

from enum import StrEnum


class Channel(StrEnum):
    LEFT = "left"
    RIGHT = "right"
    CASE = "case"
    UNKNOWN = "unknown"

    @property
    def counterpart(self) -> Channel:
        """The channel this one trades places with on a left/right swap."""
        if self is Channel.LEFT:
            return Channel.RIGHT
        if self is Channel.RIGHT:
            return Channel.LEFT
        return self


_DEFAULT_SLOTS: dict[int, Channel] = {
    1: Channel.LEFT,
    2: Channel.RIGHT,
    3: Channel.CASE,
}


def map_slot(slot_id: int, swapped: bool) -> Channel:
    """Resolve a protocol slot id to a logical channel.

    Unmapped slot ids resolve to :attr:`Channel.UNKNOWN`; callers drop those
    entries.
    """
    channel = _DEFAULT_SLOTS.get(slot_id, Channel.UNKNOWN)
    return channel.counterpart if swapped else channel
