"""Deterministic reconcile policy.

This module intentionally contains *no* frame parsing. The decoder produces
already-mapped records; these predicates decide what the store keeps.
"""

from __future__ import annotations

from pyenco._constants import PERCENT_MAX, PERCENT_MIN


def clamp_percent(value: int) -> int:
    """Clamp a raw battery byte into 0-100.

    Values above 100 are status codes the earbuds use for "full" (e.g. 228).
    """
    return max(PERCENT_MIN, min(PERCENT_MAX, value))


def accepts_battery_reading(percent: int) -> bool:
    """Whether a battery reading may overwrite the stored value.

    Zero is treated as "no information": the earbuds occasionally report a
    spurious 0, which would otherwise wipe a good value. This also means a
    genuinely empty battery is never stored.
    """
    return percent > 0
