"""pyenco - Battery telemetry monitor for OPPO Enco wireless earbuds."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyenco")
except PackageNotFoundError:
    __version__ = "0+local"
from pyenco._cache import JsonSnapshotStorage, MemorySnapshotStorage, SnapshotStorage
from pyenco.config import EncoConfig
from pyenco.connection import ConnectionStateMachine
from pyenco.exceptions import EncoConfigError, EncoError, EncoRadioError, EncoStorageError
from pyenco.ingestion.frame import decode_frame
from pyenco.models import (
    Advertisement,
    BatteryReading,
    BatterySnapshot,
    Channel,
    CharacteristicDescriptor,
    ChargingReading,
    ChargingSnapshot,
    ConnectionState,
    MonitorSnapshot,
    TelemetryRecord,
    map_slot,
)
from pyenco.monitor import EncoMonitor
from pyenco.state.events import ChangeKind, StateChange
from pyenco.state.store import StateStore

__all__ = [
    "__version__",
    "Advertisement",
    "BatteryReading",
    "BatterySnapshot",
    "ChangeKind",
    "Channel",
    "CharacteristicDescriptor",
    "ChargingReading",
    "ChargingSnapshot",
    "ConnectionState",
    "ConnectionStateMachine",
    "EncoConfig",
    "EncoConfigError",
    "EncoError",
    "EncoMonitor",
    "EncoRadioError",
    "EncoStorageError",
    "JsonSnapshotStorage",
    "MemorySnapshotStorage",
    "MonitorSnapshot",
    "SnapshotStorage",
    "StateChange",
    "StateStore",
    "TelemetryRecord",
    "decode_frame",
    "map_slot",
]
