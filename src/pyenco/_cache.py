"""Last-known state persistence.

Values survive restarts so the consumer has something to show before the
earbuds are in range again. Storage is a flat key-value document; the store
layer never sees the format.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pyenco.exceptions import EncoStorageError
from pyenco.models.snapshot import BatterySnapshot, ChargingSnapshot, MonitorSnapshot

_logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    def load_last_known(self) -> MonitorSnapshot | None: ...

    def save(self, snapshot: MonitorSnapshot) -> None: ...

    def clear(self) -> None: ...


class _PersistedState(BaseModel):
    """On-disk document. Unknown keys are ignored so old files keep loading."""

    model_config = ConfigDict(extra="ignore")

    left_battery: int | None = Field(default=None, ge=0, le=100)
    right_battery: int | None = Field(default=None, ge=0, le=100)
    case_battery: int | None = Field(default=None, ge=0, le=100)
    left_charging: bool = False
    right_charging: bool = False
    case_charging: bool = False
    swapped: bool = False
    last_updated: datetime | None = None

    @field_validator("last_updated")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @classmethod
    def from_snapshot(cls, snapshot: MonitorSnapshot) -> _PersistedState:
        return cls(
            left_battery=snapshot.battery.left,
            right_battery=snapshot.battery.right,
            case_battery=snapshot.battery.case,
            left_charging=snapshot.charging.left,
            right_charging=snapshot.charging.right,
            case_charging=snapshot.charging.case,
            swapped=snapshot.swapped,
            last_updated=snapshot.battery.last_updated,
        )

    def to_snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            battery=BatterySnapshot(
                left=self.left_battery,
                right=self.right_battery,
                case=self.case_battery,
                last_updated=self.last_updated,
            ),
            charging=ChargingSnapshot(
                left=self.left_charging,
                right=self.right_charging,
                case=self.case_charging,
            ),
            swapped=self.swapped,
        )


class JsonSnapshotStorage:
    """Stores the last-known snapshot as a JSON document."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load_last_known(self) -> MonitorSnapshot | None:
        """Return the persisted snapshot, or ``None`` if nothing was saved yet."""
        if not self._path.exists():
            return None
        try:
            raw: Any = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise EncoStorageError(f"Could not read state from {self._path}: {exc}", path=self._path) from exc
        if not isinstance(raw, dict):
            raise EncoStorageError(f"State file {self._path} is not a JSON object", path=self._path)
        try:
            return _PersistedState.model_validate(raw).to_snapshot()
        except ValidationError as exc:
            raise EncoStorageError(f"State file {self._path} is invalid: {exc}", path=self._path) from exc

    def save(self, snapshot: MonitorSnapshot) -> None:
        document = _PersistedState.from_snapshot(snapshot).model_dump(mode="json")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(document, handle, indent=2, sort_keys=True)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise EncoStorageError(f"Could not save state to {self._path}: {exc}", path=self._path) from exc
        _logger.debug("Saved state to %s", self._path)

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise EncoStorageError(f"Could not remove {self._path}: {exc}", path=self._path) from exc


class MemorySnapshotStorage:
    """Keeps the last saved snapshot in memory."""

    def __init__(self, initial: MonitorSnapshot | None = None) -> None:
        self.saved: MonitorSnapshot | None = initial
        self.save_count = 0

    def load_last_known(self) -> MonitorSnapshot | None:
        return self.saved

    def save(self, snapshot: MonitorSnapshot) -> None:
        self.saved = snapshot
        self.save_count += 1

    def clear(self) -> None:
        self.saved = None
