"""Standard Battery Service (0x180F / 0x2A19) handling.

The earbuds expose the standard battery level characteristic, but its value
is frequently a stub (0%) or reflects only one unit. The proprietary status
frame is authoritative, so this value is parsed for logging only and never
applied to the snapshot.
"""

from __future__ import annotations

from pyenco._constants import PERCENT_MAX


def parse_battery_level(data: bytes) -> int | None:
    """Return the battery level byte, or ``None`` if absent or out of range."""
    if not data:
        return None
    value = data[0]
    if value > PERCENT_MAX:
        return None
    return value
