"""High-level async monitor for Enco earbuds."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol

from pyenco._cache import JsonSnapshotStorage, SnapshotStorage
from pyenco.config import EncoConfig
from pyenco.connection import CentralEvents, ConnectionStateMachine, PeripheralEvents, RadioCommands
from pyenco.exceptions import EncoError, EncoStorageError
from pyenco.models.radio import ConnectionState
from pyenco.models.snapshot import MonitorSnapshot
from pyenco.state.events import ChangeKind, StateChange
from pyenco.state.store import StateStore

_logger = logging.getLogger(__name__)

#: Changes worth writing to disk. Connection and "seen" updates are live-only.
_PERSISTED_KINDS = frozenset({ChangeKind.BATTERY, ChangeKind.CHARGING, ChangeKind.SWAP, ChangeKind.CLEARED})


class RadioBackend(RadioCommands, Protocol):
    """A radio the monitor can own: commands plus lifecycle."""

    def attach(self, *, central: CentralEvents, peripheral: PeripheralEvents) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


RadioFactory = Callable[[asyncio.AbstractEventLoop, EncoConfig], RadioBackend]


def _bleak_radio(loop: asyncio.AbstractEventLoop, config: EncoConfig) -> RadioBackend:
    # Imported lazily so embedding with a custom backend does not pull in bleak.
    from pyenco._ble import BleakRadio

    return BleakRadio(loop=loop, config=config)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class EncoMonitor:
    """Async battery monitor for one pair of Enco earbuds.

    Usage::

        async with EncoMonitor(EncoConfig.from_env()) as monitor:
            monitor.subscribe(lambda change: print(change.snapshot))
            await monitor.wait_for_update(timeout=30)
    """

    def __init__(
        self,
        config: EncoConfig | None = None,
        *,
        storage: SnapshotStorage | None = None,
        radio_factory: RadioFactory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config or EncoConfig()
        if storage is None and self._config.persist:
            storage = JsonSnapshotStorage(self._config.resolved_state_path)
        self._storage = storage
        self._radio_factory = radio_factory or _bleak_radio
        self._store = StateStore(clock=clock)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._radio: RadioBackend | None = None
        self._machine: ConnectionStateMachine | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._update_waiters: list[asyncio.Event] = []
        self._update_version = 0
        # Swap preference last written to (or read from) storage.
        self._saved_swapped = False
        self._swap_adoption_pending = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> EncoMonitor:
        self._loop = asyncio.get_running_loop()
        self._load_last_known()
        self._unsubscribe = self._store.subscribe(self._on_state_change)

        radio = self._radio_factory(self._loop, self._config)
        machine = ConnectionStateMachine(
            config=self._config,
            radio=radio,
            store=self._store,
            on_state_change=self._on_connection_state,
        )
        radio.attach(central=machine, peripheral=machine)
        self._radio = radio
        self._machine = machine
        await radio.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        radio = self._radio
        self._radio = None
        if radio is not None:
            await radio.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for waiter in self._update_waiters:
            waiter.set()
        self._update_waiters.clear()
        self._machine = None
        self._loop = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> EncoConfig:
        return self._config

    @property
    def snapshot(self) -> MonitorSnapshot:
        """Current immutable state; safe to read from any thread."""
        return self._store.snapshot

    @property
    def machine(self) -> ConnectionStateMachine:
        if self._machine is None:
            raise EncoError("Monitor not started. Use 'async with EncoMonitor(...) as monitor:'")
        return self._machine

    def subscribe(self, callback: Callable[[StateChange], None]) -> Callable[[], None]:
        """Call *callback* on every state change. Returns an unsubscribe function."""
        return self._store.subscribe(callback)

    def toggle_swap(self) -> bool:
        """Swap left/right assignment. Safe to call from a UI thread."""
        return self._store.toggle_swap()

    def clear_cache(self) -> None:
        """Forget stored battery and charging values (memory and disk)."""
        self._store.clear_cache()

    async def wait_for_update(self, timeout: float) -> bool:
        """Wait until the next battery or charging change.

        Returns ``False`` on timeout or when the monitor is not running.
        """
        if self._loop is None or timeout <= 0:
            return False

        baseline = self._update_version
        waiter = asyncio.Event()
        self._update_waiters.append(waiter)
        if self._update_version != baseline:
            waiter.set()

        try:
            await asyncio.wait_for(waiter.wait(), timeout)
            return self._update_version != baseline
        except TimeoutError:
            return False
        finally:
            if waiter in self._update_waiters:
                self._update_waiters.remove(waiter)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_last_known(self) -> None:
        if self._storage is None:
            return
        try:
            loaded = self._storage.load_last_known()
        except EncoStorageError as exc:
            _logger.warning("Ignoring unreadable last-known state: %s", exc)
            return
        if loaded is not None:
            self._store.restore(loaded)
            self._saved_swapped = loaded.swapped
            _logger.debug("Restored last-known state: %s", loaded)

    def _on_connection_state(self, state: ConnectionState) -> None:
        machine = self._machine
        if machine is None:
            # Radio events queued before shutdown.
            return
        self._store.set_connection(state, radio_powered=machine.radio_powered)

    def _on_state_change(self, change: StateChange) -> None:
        if self._storage is not None and change.kinds & _PERSISTED_KINDS:
            if ChangeKind.SWAP in change.kinds or not self._adopt_external_swap(change.snapshot):
                self._persist(change.snapshot)

        if change.is_telemetry and self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._notify_update)

    def _persist(self, snapshot: MonitorSnapshot) -> None:
        storage = self._storage
        if storage is None:
            return
        try:
            storage.save(snapshot)
        except EncoStorageError as exc:
            _logger.warning("Could not persist state: %s", exc)
            return
        self._saved_swapped = snapshot.swapped

    def _adopt_external_swap(self, snapshot: MonitorSnapshot) -> bool:
        """Pick up a swap toggled in the state file by another process.

        ``pyenco swap`` edits the file while a watcher may be running. Saving
        over it would silently undo the toggle, so the save is skipped and the
        toggle is replayed on the store instead; that change is saved.
        """
        if self._swap_adoption_pending:
            return True
        storage = self._storage
        loop = self._loop
        if storage is None or loop is None or loop.is_closed():
            return False
        try:
            stored = storage.load_last_known()
        except EncoStorageError:
            return False
        if stored is None or stored.swapped == self._saved_swapped or stored.swapped == snapshot.swapped:
            return False

        _logger.info("Swap preference was changed in the state file; adopting it")
        self._swap_adoption_pending = True
        loop.call_soon_threadsafe(self._replay_external_swap, stored.swapped)
        return True

    def _replay_external_swap(self, swapped: bool) -> None:
        self._swap_adoption_pending = False
        if self._store.swapped != swapped:
            self._store.toggle_swap()

    def _notify_update(self) -> None:
        self._update_version += 1
        waiters = self._update_waiters
        self._update_waiters = []
        for waiter in waiters:
            if not waiter.is_set():
                waiter.set()
