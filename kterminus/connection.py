"""Pool of tunnel connections and heartbeat scheduling."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from kterminus.types import MachineId


@dataclass(frozen=True)
class TunnelConnection:
    """A connection to a remote machine."""

    machine_id: MachineId
    alias: str | None = None


class ConnectionPool:
    """Active connections indexed by machine id; safe to use from several threads."""

    def __init__(self) -> None:
        self._connections: dict[MachineId, TunnelConnection] = {}
        self._lock = threading.Lock()

    def get(self, machine_id: MachineId) -> TunnelConnection | None:
        """The connection for ``machine_id``, if there is one."""
        with self._lock:
            return self._connections.get(machine_id)

    def list(self) -> list[TunnelConnection]:
        """A snapshot of every connection."""
        with self._lock:
            return [*self._connections.values()]

    def register(self, connection: TunnelConnection) -> TunnelConnection | None:
        """Add a connection, returning the one it replaces, if any."""
        with self._lock:
            previous = self._connections.get(connection.machine_id)
            self._connections[connection.machine_id] = connection
            return previous

    def remove(self, machine_id: MachineId) -> TunnelConnection | None:
        """Remove and return the connection for ``machine_id``."""
        with self._lock:
            return self._connections.pop(machine_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


def _as_timedelta(value: timedelta | float) -> timedelta:
    return value if isinstance(value, timedelta) else timedelta(seconds=value)


@dataclass
class HealthMonitor:
    """Runs a heartbeat callback at a fixed interval."""

    interval: timedelta
    timeout: timedelta

    def __post_init__(self) -> None:
        self.interval = _as_timedelta(self.interval)
        self.timeout = _as_timedelta(self.timeout)

    def spawn_monitor(
        self,
        cancel: threading.Event,
        on_tick: Callable[[], None] | None = None,
    ) -> threading.Thread:
        """Start a daemon thread that ticks immediately and then every interval.

        The thread stops once ``cancel`` is set.
        """
        period = self.interval.total_seconds()

        def run() -> None:
            while not cancel.is_set():
                if on_tick is not None:
                    on_tick()
                if cancel.wait(period):
                    break

        thread = threading.Thread(target=run, name="health-monitor", daemon=True)
        thread.start()
        return thread