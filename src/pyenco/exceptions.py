"""Custom exception hierarchy for pyenco."""

from __future__ import annotations

from pathlib import Path


class EncoError(Exception):
    """Base exception for all pyenco errors."""


class EncoConfigError(EncoError):
    """Invalid or missing configuration."""


class EncoRadioError(EncoError):
    """Bluetooth-level failure (adapter unavailable, connect or GATT error)."""

    def __init__(
        self,
        message: str,
        *,
        device_id: str | None = None,
    ) -> None:
        self.device_id = device_id
        super().__init__(message)


class EncoStorageError(EncoError):
    """Last-known state could not be read or written.

    The monitor treats this as non-fatal and keeps tracking in memory.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
    ) -> None:
        self.path = path
        super().__init__(message)
