import asyncio

import pytest

from kterminus.message import TerminalSize
from kterminus.traits import (
    Connection,
    ConnectionPool,
    Session,
    SessionConfig,
    SessionManager,
)
from kterminus.types import Capability, ConnectionStatus, MachineId


class _FakeConnection(Connection):
    def __init__(self, machine_id, alias=None, tags=()):
        self._machine_id = machine_id
        self._alias = alias
        self.tags = list(tags)
        self.sent = []

    @property
    def machine_id(self):
        return self._machine_id

    @property
    def alias(self):
        return self._alias

    @property
    def status(self):
        return ConnectionStatus.CONNECTED

    @property
    def capabilities(self):
        return Capability.default_capabilities()

    async def send(self, session_id, message):
        self.sent.append((session_id, message))

    def is_alive(self):
        return True

    def last_activity(self):
        return 0.0

    async def close(self):
        pass


class _DictPool(ConnectionPool):
    def __init__(self):
        self._items = {}

    def get(self, machine_id):
        return self._items.get(machine_id)

    def get_by_alias(self, alias):
        return next((c for c in self._items.values() if c.alias == alias), None)

    def list(self):
        return list(self._items.values())

    def list_by_tag(self, tag):
        return [c for c in self._items.values() if tag in c.tags]

    async def register(self, connection):
        self._items[connection.machine_id] = connection

    async def remove(self, machine_id):
        return self._items.pop(machine_id, None)

    def __len__(self):
        return len(self._items)


class _FixedLengthPool(_DictPool):
    def __len__(self):
        return 3


def test_pool_is_empty_follows_length():
    pool = _DictPool()
    assert pool.is_empty()
    connection = _FakeConnection(MachineId("m1"), alias="one")
    asyncio.run(pool.register(connection))
    assert not pool.is_empty()
    assert pool.get_by_alias("one") is connection
    assert asyncio.run(pool.remove(MachineId("m1"))) is connection
    assert pool.is_empty()


def test_pool_is_empty_uses_len_override():
    pool = _FixedLengthPool()
    assert ConnectionPool.is_empty(pool) is False
    assert ConnectionPool.is_empty(_DictPool()) is True


@pytest.mark.parametrize("interface", [Connection, ConnectionPool, Session, SessionManager])
def test_interfaces_are_abstract(interface):
    with pytest.raises(TypeError):
        interface()


def test_session_config_defaults():
    config = SessionConfig()
    assert config.shell is None
    assert config.env == []
    assert config.size == TerminalSize(24, 80)
    assert config.name is None


def test_session_config_env_not_shared():
    first = SessionConfig()
    first.env.append(("TERM", "xterm-256color"))
    assert SessionConfig().env == []