from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from pyenco._cache import MemorySnapshotStorage
from pyenco.config import EncoConfig
from pyenco.connection import CentralEvents, PeripheralEvents
from pyenco.exceptions import EncoError, EncoStorageError
from pyenco.models.radio import Advertisement, ConnectionState
from pyenco.models.snapshot import BatterySnapshot, MonitorSnapshot
from pyenco.monitor import EncoMonitor

DEVICE = "AA:BB:CC:DD:EE:01"
STATUS_SERVICE = "0000079a-d102-11e1-9b23-00025b00a5a5"
STATUS_CHAR = "0000079b-d102-11e1-9b23-00025b00a5a6"
BATTERY_FRAME = bytes([0xAA, 0x0F, 0, 0, 0, 0, 0, 0, 0, 0x01, 2, 1, 55, 2, 228])


class _FakeBackend:
    def __init__(self) -> None:
        self.central: CentralEvents | None = None
        self.peripheral: PeripheralEvents | None = None
        self.started = False
        self.stopped = False
        self.calls: list[tuple[Any, ...]] = []

    def attach(self, *, central: CentralEvents, peripheral: PeripheralEvents) -> None:
        self.central = central
        self.peripheral = peripheral

    async def start(self) -> None:
        self.started = True
        assert self.central is not None
        self.central.on_power_state_changed(True)

    async def stop(self) -> None:
        self.stopped = True

    def request_scan(self) -> None:
        self.calls.append(("scan",))

    def request_connected_peripherals(self, service_uuid: str) -> None:
        self.calls.append(("connected_peripherals", service_uuid))

    def request_connect(self, device_id: str) -> None:
        self.calls.append(("connect", device_id))

    def request_discover_services(self, device_id: str) -> None:
        self.calls.append(("discover_services", device_id))

    def request_discover_characteristics(self, device_id: str, service_id: str) -> None:
        self.calls.append(("discover_characteristics", device_id, service_id))

    def request_read(self, device_id: str, characteristic_id: str) -> None:
        self.calls.append(("read", device_id, characteristic_id))

    def request_subscribe(self, device_id: str, characteristic_id: str) -> None:
        self.calls.append(("subscribe", device_id, characteristic_id))

    def request_write(self, device_id: str, characteristic_id: str, data: bytes, *, ack_required: bool) -> None:
        self.calls.append(("write", device_id, characteristic_id, data, ack_required))

    # Test helpers -------------------------------------------------------

    def bring_up(self) -> None:
        assert self.central is not None and self.peripheral is not None
        self.central.on_advertisement(Advertisement(device_id=DEVICE, name="OPPO Enco Air3"))
        self.central.on_connect_result(DEVICE, True)
        self.peripheral.on_services_discovered(DEVICE, [STATUS_SERVICE])

    def push(self, frame: bytes) -> None:
        assert self.peripheral is not None
        self.peripheral.on_value_updated(DEVICE, STATUS_CHAR, frame)


class _BrokenStorage:
    def __init__(self) -> None:
        self.save_attempts = 0

    def load_last_known(self) -> MonitorSnapshot | None:
        raise EncoStorageError("corrupt")

    def save(self, snapshot: MonitorSnapshot) -> None:
        self.save_attempts += 1
        raise EncoStorageError("disk full")

    def clear(self) -> None:
        pass


def _monitor(storage: Any = None, **config: Any) -> tuple[EncoMonitor, _FakeBackend]:
    backend = _FakeBackend()
    monitor = EncoMonitor(
        EncoConfig(persist=storage is not None, **config),
        storage=storage,
        radio_factory=lambda loop, cfg: backend,
    )
    return monitor, backend


@pytest.mark.asyncio
async def test_start_restores_last_known_state_and_scans() -> None:
    storage = MemorySnapshotStorage(MonitorSnapshot(battery=BatterySnapshot(left=70, right=65), swapped=True))
    monitor, backend = _monitor(storage)

    async with monitor:
        snapshot = monitor.snapshot
        assert backend.started
        assert snapshot.battery.left == 70
        assert snapshot.swapped is True
        assert snapshot.connection is ConnectionState.SCANNING
        assert snapshot.radio_powered is True
        assert backend.calls[:2] == [("scan",), ("connected_peripherals", "180F")]

    assert backend.stopped
    # Loading and connection changes are not written back.
    assert storage.save_count == 0


@pytest.mark.asyncio
async def test_status_frame_is_merged_and_persisted() -> None:
    storage = MemorySnapshotStorage()
    monitor, backend = _monitor(storage)

    async with monitor:
        backend.bring_up()
        assert monitor.snapshot.connection is ConnectionState.READY
        backend.push(BATTERY_FRAME)

        assert monitor.snapshot.battery.left == 55
        assert monitor.snapshot.battery.right == 100

    assert storage.saved is not None
    assert storage.saved.battery.left == 55
    assert storage.save_count == 1


@pytest.mark.asyncio
async def test_wait_for_update_wakes_on_telemetry() -> None:
    monitor, backend = _monitor()

    async with monitor:
        backend.bring_up()
        waiter = asyncio.create_task(monitor.wait_for_update(timeout=1.0))
        await asyncio.sleep(0)

        backend.push(BATTERY_FRAME)

        assert await waiter is True


@pytest.mark.asyncio
async def test_wait_for_update_times_out_without_telemetry() -> None:
    monitor, backend = _monitor()

    async with monitor:
        backend.bring_up()

        assert await monitor.wait_for_update(timeout=0.01) is False


@pytest.mark.asyncio
async def test_wait_for_update_when_not_running() -> None:
    monitor, _ = _monitor()

    assert await monitor.wait_for_update(timeout=0.01) is False
    with pytest.raises(EncoError):
        _ = monitor.machine


@pytest.mark.asyncio
async def test_toggle_swap_and_clear_cache_are_persisted() -> None:
    storage = MemorySnapshotStorage(MonitorSnapshot(battery=BatterySnapshot(left=30, right=80)))
    monitor, _ = _monitor(storage)

    async with monitor:
        assert monitor.toggle_swap() is True
        assert storage.saved is not None
        assert (storage.saved.battery.left, storage.saved.battery.right) == (80, 30)

        monitor.clear_cache()
        assert storage.saved.battery.left is None
        assert storage.saved.swapped is True

    assert storage.save_count == 2


@pytest.mark.asyncio
async def test_storage_failures_do_not_stop_monitoring(caplog: pytest.LogCaptureFixture) -> None:
    storage = _BrokenStorage()
    monitor, backend = _monitor(storage)

    with caplog.at_level(logging.WARNING, logger="pyenco.monitor"):
        async with monitor:
            backend.bring_up()
            backend.push(BATTERY_FRAME)

            assert monitor.snapshot.battery.left == 55

    assert storage.save_attempts == 1
    assert "unreadable last-known state" in caplog.text
    assert "Could not persist state" in caplog.text


@pytest.mark.asyncio
async def test_subscribers_see_changes() -> None:
    monitor, backend = _monitor()
    seen: list[ConnectionState] = []

    async with monitor:
        monitor.subscribe(lambda change: seen.append(change.snapshot.connection))
        backend.bring_up()

    assert seen[-1] is ConnectionState.READY


@pytest.mark.asyncio
async def test_power_loss_is_reflected_in_snapshot() -> None:
    monitor, backend = _monitor()

    async with monitor:
        backend.bring_up()
        assert backend.central is not None
        backend.central.on_power_state_changed(False)

        assert monitor.snapshot.connection is ConnectionState.DISCONNECTED
        assert monitor.snapshot.radio_powered is False
        assert monitor.machine.discovery_pending


@pytest.mark.asyncio
async def test_connection_events_after_exit_are_dropped() -> None:
    monitor, backend = _monitor()

    async with monitor:
        backend.bring_up()

    monitor._on_connection_state(ConnectionState.SCANNING)  # type: ignore[attr-defined]

    assert monitor.snapshot.connection is ConnectionState.READY


@pytest.mark.asyncio
async def test_swap_toggled_in_storage_by_another_process_is_adopted() -> None:
    storage = MemorySnapshotStorage(MonitorSnapshot(battery=BatterySnapshot(left=30, right=80)))
    monitor, backend = _monitor(storage)

    async with monitor:
        backend.bring_up()
        # What `pyenco swap` does to the file while the watcher runs.
        assert storage.saved is not None
        storage.saved = storage.saved.model_copy(
            update={"swapped": True, "battery": storage.saved.battery.swapped()}
        )

        backend.push(BATTERY_FRAME)
        await asyncio.sleep(0)

        snapshot = monitor.snapshot
        assert snapshot.swapped is True
        # Slot 1 now belongs to the right earbud.
        assert (snapshot.battery.left, snapshot.battery.right) == (100, 55)

    assert storage.saved is not None
    assert storage.saved.swapped is True
    assert storage.saved.battery.right == 55
    assert storage.save_count == 1


@pytest.mark.asyncio
async def test_own_swap_is_not_mistaken_for_an_external_one() -> None:
    storage = MemorySnapshotStorage()
    monitor, backend = _monitor(storage)

    async with monitor:
        backend.bring_up()
        monitor.toggle_swap()
        backend.push(BATTERY_FRAME)
        await asyncio.sleep(0)

        assert monitor.snapshot.swapped is True

    assert storage.saved is not None
    assert storage.saved.swapped is True
    assert storage.saved.battery.right == 55
    assert storage.save_count == 2
