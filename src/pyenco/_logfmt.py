"""Helpers for compact debug logging.

Frames arrive many times per second while connected. This keeps their DEBUG
representation short and bounded.
"""

from __future__ import annotations

from typing import Any


def describe_frame(data: Any, *, max_bytes: int = 32) -> str:
    """Return ``"<n>b aa 0f 00 ..."`` for *data*, truncated after *max_bytes*."""
    if data is None:
        return "<none>"
    if not isinstance(data, (bytes, bytearray, memoryview)):
        return repr(data)

    raw = bytes(data)
    shown = raw[:max_bytes].hex(" ")
    if len(raw) > max_bytes:
        return f"{len(raw)}b {shown} …<truncated>"
    return f"{len(raw)}b {shown}" if raw else "0b"


def describe_manufacturer_data(data: dict[int, bytes], *, max_bytes: int = 16) -> dict[str, str]:
    """Render advertisement manufacturer data keyed by company id."""
    return {f"0x{company:04x}": describe_frame(payload, max_bytes=max_bytes) for company, payload in data.items()}
