"""Battery/charging state store.

This is the only component allowed to change the published snapshot. Every
mutation builds a new immutable :class:`MonitorSnapshot` under a lock and
swaps it in, then notifies subscribers.

Mutations may come from more than one thread (radio events on the event
loop, a swap toggle from a UI thread). Building a snapshot and delivering it
happen under one publish lock, so subscribers see changes in the order they
were made and the last delivered snapshot is always the current one.
Readers only take the short snapshot lock and are never held up by a slow
subscriber.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from pyenco.models.channel import Channel
from pyenco.models.radio import ConnectionState
from pyenco.models.snapshot import BatterySnapshot, ChargingSnapshot, MonitorSnapshot
from pyenco.models.telemetry import BatteryReading, ChargingReading, TelemetryRecord, swap_record
from pyenco.state.events import ChangeKind, StateChange
from pyenco.state.policy import accepts_battery_reading

_logger = logging.getLogger(__name__)

Subscriber = Callable[[StateChange], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StateStore:
    """In-memory owner of the battery, charging, swap and connection state.

    Given the same sequence of calls (and clock), it produces the same
    snapshots.
    """

    def __init__(
        self,
        initial: MonitorSnapshot | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        # Held from building a snapshot until every subscriber has seen it.
        # Reentrant so a subscriber may mutate the store from its callback.
        self._publish_lock = threading.RLock()
        self._snapshot = initial or MonitorSnapshot()
        self._subscribers: list[Subscriber] = []

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> MonitorSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def swapped(self) -> bool:
        with self._lock:
            return self._snapshot.swapped

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback* for every change. Returns an unsubscribe function."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def merge(
        self,
        records: Iterable[TelemetryRecord],
        *,
        swapped: bool,
    ) -> tuple[BatterySnapshot, ChargingSnapshot]:
        """Apply one decoded batch.

        *swapped* is the preference the records were decoded under. If the
        preference was toggled since, the records are moved to their
        counterpart channels first so they land where the user now expects.
        """
        with self._publish_lock:
            with self._lock:
                current = self._snapshot
                if swapped != current.swapped:
                    records = [swap_record(record) for record in records]

                battery_updates: dict[str, Any] = {}
                charging_updates: dict[str, Any] = {}
                for record in records:
                    if record.channel is Channel.UNKNOWN:
                        continue
                    if isinstance(record, BatteryReading):
                        if not accepts_battery_reading(record.percent):
                            _logger.debug("Ignoring zero battery reading for %s", record.channel)
                            continue
                        battery_updates[record.channel.value] = record.percent
                    elif isinstance(record, ChargingReading):
                        charging_updates[record.channel.value] = record.charging

                kinds: set[ChangeKind] = set()
                battery = current.battery
                charging = current.charging
                if battery_updates:
                    battery = battery.model_copy(update={**battery_updates, "last_updated": self._clock()})
                    kinds.add(ChangeKind.BATTERY)
                if charging_updates:
                    charging = charging.model_copy(update=charging_updates)
                    kinds.add(ChangeKind.CHARGING)

                if kinds:
                    self._snapshot = current.model_copy(update={"battery": battery, "charging": charging})
                change = self._change(kinds)

            self._publish(change)
        return battery, charging

    def toggle_swap(self) -> bool:
        """Flip the swap preference and exchange stored left/right values.

        Returns the new preference.
        """
        with self._publish_lock:
            with self._lock:
                current = self._snapshot
                self._snapshot = current.model_copy(
                    update={
                        "swapped": not current.swapped,
                        "battery": current.battery.swapped(),
                        "charging": current.charging.swapped(),
                    }
                )
                change = self._change({ChangeKind.SWAP})
                swapped = self._snapshot.swapped

            _logger.info("Left/right swap %s", "enabled" if swapped else "disabled")
            self._publish(change)
        return swapped

    def set_connection(self, state: ConnectionState, *, radio_powered: bool | None = None) -> None:
        with self._publish_lock:
            with self._lock:
                current = self._snapshot
                update: dict[str, Any] = {"connection": state}
                if radio_powered is not None:
                    update["radio_powered"] = radio_powered
                if current.connection == state and (radio_powered is None or current.radio_powered == radio_powered):
                    return
                self._snapshot = current.model_copy(update=update)
                change = self._change({ChangeKind.CONNECTION})

            self._publish(change)

    def mark_seen(self) -> None:
        """Record that the target device was just observed on air."""
        with self._publish_lock:
            with self._lock:
                self._snapshot = self._snapshot.model_copy(update={"last_seen": self._clock()})
                change = self._change({ChangeKind.SEEN})

            self._publish(change)

    def clear_cache(self) -> None:
        """Forget all battery and charging values.

        The swap preference and connection state survive; they are not
        telemetry.
        """
        with self._publish_lock:
            with self._lock:
                current = self._snapshot
                self._snapshot = current.model_copy(
                    update={
                        "battery": BatterySnapshot(),
                        "charging": ChargingSnapshot(),
                        "last_seen": None,
                    }
                )
                change = self._change({ChangeKind.CLEARED})

            self._publish(change)

    def restore(self, loaded: MonitorSnapshot) -> None:
        """Adopt persisted values at startup, keeping the live connection state."""
        with self._publish_lock:
            with self._lock:
                current = self._snapshot
                self._snapshot = loaded.model_copy(
                    update={"connection": current.connection, "radio_powered": current.radio_powered}
                )
                change = self._change({ChangeKind.LOADED})

            self._publish(change)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _change(self, kinds: set[ChangeKind]) -> StateChange | None:
        if not kinds:
            return None
        return StateChange(kinds=frozenset(kinds), snapshot=self._snapshot, observed_at=self._clock())

    def _publish(self, change: StateChange | None) -> None:
        # Caller holds the publish lock, not the snapshot lock.
        if change is None:
            return
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(change)
            except Exception:
                _logger.exception("State subscriber %r failed", callback)
