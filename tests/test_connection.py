import threading
from datetime import timedelta

from kterminus.connection import ConnectionPool, HealthMonitor, TunnelConnection
from kterminus.types import MachineId


def test_empty_pool():
    pool = ConnectionPool()
    assert len(pool) == 0
    assert pool.list() == []
    assert pool.get(MachineId("abc")) is None


def test_register_and_get():
    pool = ConnectionPool()
    conn = TunnelConnection(MachineId("abc"), alias="box")
    assert pool.register(conn) is None
    assert pool.get(MachineId("abc")) == conn
    assert len(pool) == 1
    assert pool.list() == [conn]


def test_register_replaces_existing():
    pool = ConnectionPool()
    first = TunnelConnection(MachineId("abc"), alias="one")
    second = TunnelConnection(MachineId("abc"), alias="two")
    pool.register(first)
    assert pool.register(second) == first
    assert len(pool) == 1
    assert pool.get(MachineId("abc")).alias == "two"


def test_remove():
    pool = ConnectionPool()
    conn = TunnelConnection(MachineId("abc"))
    pool.register(conn)
    assert pool.remove(MachineId("abc")) == conn
    assert pool.remove(MachineId("abc")) is None
    assert len(pool) == 0


def test_health_monitor_converts_seconds():
    monitor = HealthMonitor(30, 90)
    assert monitor.interval == timedelta(seconds=30)
    assert monitor.timeout == timedelta(seconds=90)


def test_health_monitor_ticks_until_cancelled():
    monitor = HealthMonitor(timedelta(milliseconds=10), timedelta(seconds=1))
    cancel = threading.Event()
    ticked = threading.Event()
    ticks = []

    def on_tick():
        ticks.append(1)
        if len(ticks) >= 3:
            ticked.set()

    thread = monitor.spawn_monitor(cancel, on_tick)
    assert ticked.wait(5)
    cancel.set()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert len(ticks) >= 3


def test_health_monitor_cancelled_before_start():
    monitor = HealthMonitor(0.01, 1)
    cancel = threading.Event()
    cancel.set()
    ticks = []
    thread = monitor.spawn_monitor(cancel, lambda: ticks.append(1))
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert ticks == []