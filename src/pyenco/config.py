"""Monitor configuration for pyenco."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from pyenco._constants import (
    BATTERY_SERVICE_UUID,
    CONTROL_CHARACTERISTIC_FRAGMENTS,
    DEFAULT_DEVICE_NAME,
    PROBE_COMMANDS,
    PROPRIETARY_SERVICE_FRAGMENTS,
)
from pyenco.exceptions import EncoConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def default_state_path() -> Path:
    """Location of the last-known state file.

    Honours ``XDG_CONFIG_HOME`` and falls back to ``~/.config``.
    The directory is not created here; storage does that on first save.
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg_config:
        return Path(xdg_config) / "pyenco" / "state.json"
    return Path.home() / ".config" / "pyenco" / "state.json"


@dataclasses.dataclass(frozen=True)
class EncoConfig:
    """Monitor configuration.

    Parameters
    ----------
    device_name : str
        Case-insensitive substring an advertised name must contain.
    service_fragments : tuple[str, ...]
        UUID fragments identifying the vendor status services.
    battery_service_uuid : str
        Standard battery service, also used for the connected-device lookup.
    control_fragments : tuple[str, ...]
        UUID fragments identifying writable control characteristics.
    probe_commands : tuple[int, ...]
        Bytes written (one per write) to solicit a status push.
    probe_enabled : bool
        Disable to never write to the device.
    connect_timeout : float
        Seconds the backend may spend on one connect attempt.
    adapter_retry_interval : float
        Seconds between attempts to start scanning while the adapter is
        unavailable (powered off, missing).
    persist : bool
        Save and restore last-known values across runs.
    state_path : Path or None
        Where the last-known state lives. ``None`` selects
        :func:`default_state_path`.
    """

    device_name: str = DEFAULT_DEVICE_NAME
    service_fragments: tuple[str, ...] = PROPRIETARY_SERVICE_FRAGMENTS
    battery_service_uuid: str = BATTERY_SERVICE_UUID
    control_fragments: tuple[str, ...] = CONTROL_CHARACTERISTIC_FRAGMENTS
    probe_commands: tuple[int, ...] = PROBE_COMMANDS
    probe_enabled: bool = True
    connect_timeout: float = 10.0
    adapter_retry_interval: float = 5.0
    persist: bool = True
    state_path: Path | None = None

    def __post_init__(self) -> None:
        if not self.device_name.strip():
            raise EncoConfigError("device_name must be non-empty")
        for command in self.probe_commands:
            if not 0 <= command <= 0xFF:
                raise EncoConfigError(f"probe command out of byte range: {command}")
        if self.connect_timeout <= 0:
            raise EncoConfigError("connect_timeout must be positive")

    @property
    def resolved_state_path(self) -> Path:
        return self.state_path if self.state_path is not None else default_state_path()

    @classmethod
    def from_env(cls, **overrides: Any) -> EncoConfig:
        """Create configuration from environment variables.

        Reads ``ENCO_DEVICE_NAME``, ``ENCO_STATE_PATH``, ``ENCO_PERSIST``,
        ``ENCO_PROBE_ENABLED`` and ``ENCO_CONNECT_TIMEOUT``.
        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        name = env.get("ENCO_DEVICE_NAME")
        if name is not None and "device_name" not in overrides:
            config_kwargs["device_name"] = name

        path = env.get("ENCO_STATE_PATH")
        if path and "state_path" not in overrides:
            config_kwargs["state_path"] = Path(path).expanduser()

        if "persist" not in overrides:
            config_kwargs["persist"] = _env_bool(env.get("ENCO_PERSIST"), True)
        if "probe_enabled" not in overrides:
            config_kwargs["probe_enabled"] = _env_bool(env.get("ENCO_PROBE_ENABLED"), True)

        timeout_env = env.get("ENCO_CONNECT_TIMEOUT")
        if timeout_env is not None and "connect_timeout" not in overrides:
            try:
                config_kwargs["connect_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise EncoConfigError(f"ENCO_CONNECT_TIMEOUT must be a number, got {timeout_env!r}") from exc

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
