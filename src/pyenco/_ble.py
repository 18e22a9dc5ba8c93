"""Internal Bluetooth LE runtime backed by bleak.

Implements the radio commands the connection state machine issues. Every
command is fire-and-forget: it schedules a task and the outcome is reported
back as a separate event. All events are posted onto the monitor's event
loop with ``call_soon_threadsafe`` so the state machine is only ever driven
from that loop, whatever thread a backend callback runs on.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from pyenco._constants import BLUETOOTH_BASE_UUID_SUFFIX
from pyenco._logfmt import describe_frame
from pyenco.config import EncoConfig
from pyenco.connection import CentralEvents, PeripheralEvents
from pyenco.exceptions import EncoRadioError
from pyenco.ingestion.normalize import normalize_uuid
from pyenco.models.radio import Advertisement, CharacteristicDescriptor

_NOTIFY_PROPERTIES = frozenset({"notify", "indicate"})
_WRITE_PROPERTIES = frozenset({"write", "write-without-response"})


def _full_uuid(uuid: str) -> str:
    """Expand a 16-bit UUID to the 128-bit form bleak reports."""
    short = normalize_uuid(uuid)
    if len(short) == 4:
        return f"0000{short}{BLUETOOTH_BASE_UUID_SUFFIX}".lower()
    return short.lower()


def _describe_characteristic(service_id: str, characteristic: BleakGATTCharacteristic) -> CharacteristicDescriptor:
    properties = {prop.lower() for prop in characteristic.properties}
    return CharacteristicDescriptor(
        id=characteristic.uuid,
        service_id=service_id,
        can_read="read" in properties,
        can_notify=bool(properties & _NOTIFY_PROPERTIES),
        can_write=bool(properties & _WRITE_PROPERTIES),
        write_without_response="write-without-response" in properties,
    )


class BleakRadio:
    """bleak-based radio backend for a single tracked device."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        config: EncoConfig,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        self._central: CentralEvents | None = None
        self._peripheral: PeripheralEvents | None = None
        self._scanner: BleakScanner | None = None
        self._client: BleakClient | None = None
        self._devices: dict[str, BLEDevice] = {}
        self._characteristics: dict[str, BleakGATTCharacteristic] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._scan_lock = asyncio.Lock()
        self._retry_handle: asyncio.TimerHandle | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def attach(self, *, central: CentralEvents, peripheral: PeripheralEvents) -> None:
        """Set the sinks events are delivered to."""
        self._central = central
        self._peripheral = peripheral

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Bring up scanning and report the adapter power state."""
        self._running = True
        await self._start_scanner()

    async def stop(self) -> None:
        """Stop scanning, drop the connection and cancel in-flight requests."""
        self._running = False
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        client = self._client
        self._client = None
        if client is not None:
            with contextlib.suppress(BleakError, OSError, TimeoutError):
                await client.disconnect()

        scanner = self._scanner
        self._scanner = None
        if scanner is not None:
            with contextlib.suppress(BleakError, OSError):
                await scanner.stop()
        self._logger.debug("BLE runtime stopped")

    # ------------------------------------------------------------------
    # RadioCommands
    # ------------------------------------------------------------------

    def request_scan(self) -> None:
        if self._scanner is not None:
            return
        self._spawn(self._start_scanner())

    def request_connected_peripherals(self, service_uuid: str) -> None:
        """Re-announce known devices exposing *service_uuid*.

        bleak has no portable "retrieve connected peripherals" call; devices the
        scanner already knows about (including ones the OS holds a link to) are
        replayed as advertisements instead.
        """
        scanner = self._scanner
        if scanner is None:
            return
        wanted = _full_uuid(service_uuid)
        for device, adv in list(scanner.discovered_devices_and_advertisement_data.values()):
            if wanted in {uuid.lower() for uuid in adv.service_uuids}:
                self._post_advertisement(device, adv)

    def request_connect(self, device_id: str) -> None:
        self._spawn(self._connect(device_id))

    def request_discover_services(self, device_id: str) -> None:
        client = self._client
        peripheral = self._peripheral
        if peripheral is None:
            return
        if client is None or not client.is_connected:
            error = EncoRadioError("Not connected", device_id=device_id)
            self._post(peripheral.on_services_discovered, device_id, [], error)
            return
        # bleak resolves services as part of connect.
        services = [service.uuid for service in client.services]
        self._post(peripheral.on_services_discovered, device_id, services, None)

    def request_discover_characteristics(self, device_id: str, service_id: str) -> None:
        client = self._client
        peripheral = self._peripheral
        if peripheral is None:
            return
        service = client.services.get_service(service_id) if client is not None and client.is_connected else None
        if service is None:
            error = EncoRadioError(f"Service {service_id} not available", device_id=device_id)
            self._post(peripheral.on_characteristics_discovered, device_id, service_id, [], error)
            return

        descriptors: list[CharacteristicDescriptor] = []
        for characteristic in service.characteristics:
            self._characteristics.setdefault(characteristic.uuid, characteristic)
            descriptors.append(_describe_characteristic(service.uuid, characteristic))
        self._post(peripheral.on_characteristics_discovered, device_id, service_id, descriptors, None)

    def request_read(self, device_id: str, characteristic_id: str) -> None:
        self._spawn(self._read(device_id, characteristic_id))

    def request_subscribe(self, device_id: str, characteristic_id: str) -> None:
        self._spawn(self._subscribe(device_id, characteristic_id))

    def request_write(self, device_id: str, characteristic_id: str, data: bytes, *, ack_required: bool) -> None:
        self._spawn(self._write(device_id, characteristic_id, data, ack_required))

    # ------------------------------------------------------------------
    # Internal coroutines
    # ------------------------------------------------------------------

    async def _start_scanner(self) -> None:
        central = self._central
        async with self._scan_lock:
            if self._scanner is not None or not self._running:
                return
            scanner = BleakScanner(detection_callback=self._on_detection)
            try:
                await scanner.start()
            except (BleakError, OSError) as exc:
                self._logger.debug("Scanner start failed", exc_info=True)
                if central is not None:
                    self._post(central.on_power_state_changed, False)
                self._schedule_adapter_retry(exc)
                return
            self._scanner = scanner
        self._logger.debug("BLE scanner started")
        if central is not None:
            self._post(central.on_power_state_changed, True)

    def _schedule_adapter_retry(self, exc: BaseException) -> None:
        if not self._running or self._retry_handle is not None:
            return
        delay = self._config.adapter_retry_interval
        self._logger.info("Bluetooth adapter unavailable (%s); retrying in %.0fs", exc, delay)

        def _retry() -> None:
            self._retry_handle = None
            self.request_scan()

        self._retry_handle = self._loop.call_later(delay, _retry)

    async def _connect(self, device_id: str) -> None:
        central = self._central
        if central is None:
            return

        existing = self._client
        if existing is not None and existing.address == device_id and existing.is_connected:
            self._post(central.on_connect_result, device_id, True, None)
            return

        target: BLEDevice | str = self._devices.get(device_id, device_id)
        client = BleakClient(
            target,
            disconnected_callback=self._on_client_disconnected,
            timeout=self._config.connect_timeout,
        )
        try:
            await client.connect()
        except (BleakError, OSError, TimeoutError) as exc:
            self._post(central.on_connect_result, device_id, False, exc)
            return

        if existing is not None and existing is not client:
            with contextlib.suppress(BleakError, OSError, TimeoutError):
                await existing.disconnect()
        self._client = client
        self._characteristics.clear()
        self._post(central.on_connect_result, device_id, True, None)

    async def _read(self, device_id: str, characteristic_id: str) -> None:
        client, characteristic = self._resolve(characteristic_id)
        peripheral = self._peripheral
        if client is None or characteristic is None or peripheral is None:
            return
        try:
            data = await client.read_gatt_char(characteristic)
        except (BleakError, OSError, TimeoutError):
            self._logger.debug("Read of %s failed", characteristic_id, exc_info=True)
            return
        self._post(peripheral.on_value_updated, device_id, characteristic_id, bytes(data))

    async def _subscribe(self, device_id: str, characteristic_id: str) -> None:
        client, characteristic = self._resolve(characteristic_id)
        peripheral = self._peripheral
        if client is None or characteristic is None or peripheral is None:
            return

        def _on_notify(sender: BleakGATTCharacteristic, data: bytearray) -> None:
            self._post(peripheral.on_value_updated, device_id, sender.uuid, bytes(data))

        try:
            await client.start_notify(characteristic, _on_notify)
        except (BleakError, OSError, TimeoutError):
            self._logger.debug("Subscribe to %s failed", characteristic_id, exc_info=True)

    async def _write(self, device_id: str, characteristic_id: str, data: bytes, ack_required: bool) -> None:
        client, characteristic = self._resolve(characteristic_id)
        if client is None or characteristic is None:
            return
        try:
            await client.write_gatt_char(characteristic, data, response=ack_required)
        except (BleakError, OSError, TimeoutError):
            self._logger.debug("Write %s to %s failed", describe_frame(data), characteristic_id, exc_info=True)

    # ------------------------------------------------------------------
    # Callbacks and helpers
    # ------------------------------------------------------------------

    def _on_detection(self, device: BLEDevice, adv: AdvertisementData) -> None:
        self._devices[device.address] = device
        self._post_advertisement(device, adv)

    def _post_advertisement(self, device: BLEDevice, adv: AdvertisementData) -> None:
        central = self._central
        if central is None:
            return
        client = self._client
        advertisement = Advertisement(
            device_id=device.address,
            name=adv.local_name or device.name,
            connected=client is not None and client.address == device.address and client.is_connected,
            manufacturer_data=dict(adv.manufacturer_data),
        )
        self._post(central.on_advertisement, advertisement)

    def _on_client_disconnected(self, client: BleakClient) -> None:
        if self._client is client:
            self._client = None
            self._characteristics.clear()
        central = self._central
        if central is None or not self._running:
            return
        self._post(central.on_disconnected, client.address, "link lost")

    def _resolve(self, characteristic_id: str) -> tuple[BleakClient | None, BleakGATTCharacteristic | None]:
        client = self._client
        if client is None or not client.is_connected:
            return None, None
        return client, self._characteristics.get(characteristic_id)

    def _post(self, callback: Callable[..., None], *args: Any) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, *args)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        if not self._running:
            coro.close()
            return
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
