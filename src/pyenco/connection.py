"""Connection lifecycle state machine.

Owns:
- discovery of the target device and the connect/disconnect cycle
- service and characteristic discovery sequencing
- handing characteristic payloads to the decoder and the result to the store

The machine is a pure event sink: the radio backend calls the ``on_*``
methods (always from the monitor's event loop) and the machine answers with
fire-and-forget ``request_*`` commands. Outcomes arrive later as new events.
Reconnection is unconditional and immediate; the only throttle is the
pending-discovery flag plus the state checks that make repeated
advertisements idempotent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from pyenco._logfmt import describe_frame, describe_manufacturer_data
from pyenco.config import EncoConfig
from pyenco.ingestion.advertisement import (
    is_battery_level_characteristic,
    is_control_characteristic,
    is_monitored_service,
    matches_device_name,
)
from pyenco.ingestion.frame import decode_frame, is_status_frame
from pyenco.ingestion.normalize import as_bytes
from pyenco.ingestion.standard import parse_battery_level
from pyenco.models.radio import Advertisement, CharacteristicDescriptor, ConnectionState
from pyenco.state.store import StateStore

_logger = logging.getLogger(__name__)


class RadioCommands(Protocol):
    """Requests the state machine issues to the radio backend."""

    def request_scan(self) -> None: ...

    def request_connected_peripherals(self, service_uuid: str) -> None: ...

    def request_connect(self, device_id: str) -> None: ...

    def request_discover_services(self, device_id: str) -> None: ...

    def request_discover_characteristics(self, device_id: str, service_id: str) -> None: ...

    def request_read(self, device_id: str, characteristic_id: str) -> None: ...

    def request_subscribe(self, device_id: str, characteristic_id: str) -> None: ...

    def request_write(self, device_id: str, characteristic_id: str, data: bytes, *, ack_required: bool) -> None: ...


class CentralEvents(Protocol):
    """Adapter-level events: power, advertisements, connection outcome."""

    def on_power_state_changed(self, powered: bool) -> None: ...

    def on_advertisement(self, advertisement: Advertisement) -> None: ...

    def on_connect_result(self, device_id: str, success: bool, error: BaseException | None = None) -> None: ...

    def on_disconnected(self, device_id: str, reason: BaseException | str | None = None) -> None: ...


class PeripheralEvents(Protocol):
    """GATT-level events for the connected device."""

    def on_services_discovered(
        self,
        device_id: str,
        services: Sequence[str],
        error: BaseException | None = None,
    ) -> None: ...

    def on_characteristics_discovered(
        self,
        device_id: str,
        service_id: str,
        characteristics: Sequence[CharacteristicDescriptor],
        error: BaseException | None = None,
    ) -> None: ...

    def on_value_updated(self, device_id: str, characteristic_id: str, data: bytes) -> None: ...


class ConnectionStateMachine:
    """Tracks exactly one earbud device and keeps telemetry flowing.

    Satisfies both :class:`CentralEvents` and :class:`PeripheralEvents`.
    """

    def __init__(
        self,
        *,
        config: EncoConfig,
        radio: RadioCommands,
        store: StateStore,
        on_state_change: Callable[[ConnectionState], None] | None = None,
    ) -> None:
        self._config = config
        self._radio = radio
        self._store = store
        self._on_state_change = on_state_change
        self._state = ConnectionState.DISCONNECTED
        self._powered = False
        self._device_id: str | None = None
        # True until discovery has been requested for the current connection.
        self._discovery_pending = True

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def is_connected(self) -> bool:
        return self._state.is_connected

    @property
    def radio_powered(self) -> bool:
        return self._powered

    @property
    def discovery_pending(self) -> bool:
        return self._discovery_pending

    # ------------------------------------------------------------------
    # CentralEvents
    # ------------------------------------------------------------------

    def on_power_state_changed(self, powered: bool) -> None:
        self._powered = powered
        if not powered:
            _logger.warning("Bluetooth is not available")
            self._discovery_pending = True
            self._transition(ConnectionState.DISCONNECTED)
            return
        self._start_scan()

    def on_advertisement(self, advertisement: Advertisement) -> None:
        if not self._powered:
            return
        if not matches_device_name(advertisement.name, self._config):
            return
        if self._device_id is not None and advertisement.device_id != self._device_id and self.is_busy:
            # One logical device at a time; ignore a second matching unit.
            return

        self._store.mark_seen()
        if advertisement.manufacturer_data:
            # Manufacturer data is not decoded: it disagrees with the status
            # frames and produced bogus percentages.
            _logger.debug(
                "Ignoring manufacturer data from %s: %s",
                advertisement.device_id,
                describe_manufacturer_data(advertisement.manufacturer_data),
            )

        if advertisement.connected:
            self._device_id = advertisement.device_id
            if self._discovery_pending:
                self._request_service_discovery(advertisement.device_id)
            return

        if self._state in (ConnectionState.SCANNING, ConnectionState.DISCONNECTED):
            self._device_id = advertisement.device_id
            _logger.info("Connecting to %s (%s)", advertisement.name, advertisement.device_id)
            self._transition(ConnectionState.CONNECTING)
            self._radio.request_connect(advertisement.device_id)

    def on_connect_result(self, device_id: str, success: bool, error: BaseException | None = None) -> None:
        if not self._is_target(device_id):
            return
        if not self._powered:
            _logger.debug("Ignoring connect result for %s while the radio is off", device_id)
            return
        if not success:
            _logger.warning("Failed to connect to %s: %s", device_id, error)
            self._transition(ConnectionState.SCANNING)
            return
        _logger.info("Connected to %s", device_id)
        self._request_service_discovery(device_id)

    def on_disconnected(self, device_id: str, reason: BaseException | str | None = None) -> None:
        if not self._is_target(device_id):
            return
        _logger.info("Disconnected from %s (%s)", device_id, reason or "no reason given")
        self._discovery_pending = True
        if not self._powered:
            self._transition(ConnectionState.DISCONNECTED)
            return
        self._start_scan()

    # ------------------------------------------------------------------
    # PeripheralEvents
    # ------------------------------------------------------------------

    def on_services_discovered(
        self,
        device_id: str,
        services: Sequence[str],
        error: BaseException | None = None,
    ) -> None:
        if not self._is_target(device_id) or not self._powered:
            return
        if error is not None:
            _logger.warning("Error discovering services on %s: %s", device_id, error)
            return

        monitored = [service for service in services if is_monitored_service(service, self._config)]
        if not monitored:
            _logger.warning("No battery or status services found on %s", device_id)
            return

        for service_id in monitored:
            _logger.debug("Discovering characteristics for service %s", service_id)
            self._radio.request_discover_characteristics(device_id, service_id)
        self._transition(ConnectionState.READY)

    def on_characteristics_discovered(
        self,
        device_id: str,
        service_id: str,
        characteristics: Sequence[CharacteristicDescriptor],
        error: BaseException | None = None,
    ) -> None:
        if not self._is_target(device_id) or not self._powered:
            return
        if error is not None:
            _logger.warning("Error discovering characteristics for %s: %s", service_id, error)
            return

        for characteristic in characteristics:
            if characteristic.can_read:
                self._radio.request_read(device_id, characteristic.id)
            if characteristic.can_notify:
                self._radio.request_subscribe(device_id, characteristic.id)
            if characteristic.can_write and is_control_characteristic(characteristic.id, self._config):
                self._probe(device_id, characteristic)

    def on_value_updated(self, device_id: str, characteristic_id: str, data: bytes) -> None:
        frame = as_bytes(data)
        if frame is None:
            return

        if is_status_frame(frame):
            swapped = self._store.swapped
            records = decode_frame(frame, swapped=swapped)
            _logger.debug("Status frame %s -> %s", describe_frame(frame), records)
            if records:
                self._store.merge(records, swapped=swapped)
            return

        if is_battery_level_characteristic(characteristic_id):
            level = parse_battery_level(frame)
            _logger.debug("Standard battery level %s from %s ignored", level, characteristic_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        """Whether a connection to the current device is in progress or up."""
        return self._state in (
            ConnectionState.CONNECTING,
            ConnectionState.DISCOVERING_SERVICES,
            ConnectionState.READY,
        )

    def _is_target(self, device_id: str) -> bool:
        if self._device_id is None or device_id != self._device_id:
            _logger.debug("Ignoring event for untracked device %s", device_id)
            return False
        return True

    def _start_scan(self) -> None:
        self._transition(ConnectionState.SCANNING)
        _logger.info("Started scanning for '%s'", self._config.device_name)
        self._radio.request_scan()
        # Devices already linked to this host (single earbud mode, audio
        # already connected) do not necessarily advertise.
        self._radio.request_connected_peripherals(self._config.battery_service_uuid)

    def _request_service_discovery(self, device_id: str) -> None:
        self._discovery_pending = False
        self._transition(ConnectionState.DISCOVERING_SERVICES)
        self._radio.request_discover_services(device_id)

    def _probe(self, device_id: str, characteristic: CharacteristicDescriptor) -> None:
        if not self._config.probe_enabled:
            return
        ack_required = not characteristic.write_without_response
        _logger.debug("Probing %s for a status push", characteristic.id)
        for command in self._config.probe_commands:
            self._radio.request_write(device_id, characteristic.id, bytes([command]), ack_required=ack_required)

    def _transition(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        _logger.debug("Connection state %s -> %s", self._state, state)
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)
