"""Abstract interfaces for connections, sessions and their managers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from kterminus.message import Message, TerminalSize
from kterminus.session import SessionId
from kterminus.types import Capability, ConnectionStatus, MachineId


class SessionState(Enum):
    """Lifecycle of a session."""

    CREATING = "creating"
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class SessionConfig:
    """Parameters for creating a session."""

    shell: str | None = None
    env: list[tuple[str, str]] = field(default_factory=list)
    size: TerminalSize = field(default_factory=TerminalSize.default_size)
    name: str | None = None


class Connection(ABC):
    """A connection to a remote machine."""

    @property
    @abstractmethod
    def machine_id(self) -> MachineId:
        """Identifier of the connected machine."""

    @property
    @abstractmethod
    def alias(self) -> str | None:
        """Human-readable alias of the machine."""

    @property
    @abstractmethod
    def status(self) -> ConnectionStatus:
        """Current connection status."""

    @property
    @abstractmethod
    def capabilities(self) -> Capability:
        """What the machine supports."""

    @abstractmethod
    async def send(self, session_id: SessionId, message: Message) -> None:
        """Send a message for a session over this connection."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Whether the connection is still usable."""

    @abstractmethod
    def last_activity(self) -> float:
        """Monotonic time of the last successful communication."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection gracefully."""


class ConnectionPool(ABC):
    """A set of active connections."""

    @abstractmethod
    def get(self, machine_id: MachineId) -> Connection | None:
        """Connection for a machine id, if present."""

    @abstractmethod
    def get_by_alias(self, alias: str) -> Connection | None:
        """Connection for a machine alias, if present."""

    @abstractmethod
    def list(self) -> list[Connection]:
        """All active connections."""

    @abstractmethod
    def list_by_tag(self, tag: str) -> list[Connection]:
        """Connections whose machine carries ``tag``."""

    @abstractmethod
    async def register(self, connection: Connection) -> None:
        """Add a connection to the pool."""

    @abstractmethod
    async def remove(self, machine_id: MachineId) -> Connection | None:
        """Remove and return the connection for a machine."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of connections."""

    def is_empty(self) -> bool:
        """Whether the pool holds no connections."""
        return len(self) == 0


class Session(ABC):
    """A terminal session on a remote machine."""

    @property
    @abstractmethod
    def id(self) -> SessionId:
        """Session identifier."""

    @property
    @abstractmethod
    def machine_id(self) -> MachineId:
        """Machine the session runs on."""

    @property
    @abstractmethod
    def state(self) -> SessionState:
        """Current lifecycle state."""

    @property
    @abstractmethod
    def name(self) -> str | None:
        """Optional session label."""

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write to the session's input."""

    @abstractmethod
    async def read(self) -> bytes | None:
        """Read output, or None once the session is closed."""

    @abstractmethod
    async def resize(self, size: TerminalSize) -> None:
        """Resize the terminal."""

    @abstractmethod
    async def close(self) -> None:
        """Close the session."""


class SessionManager(ABC):
    """Creates and tracks sessions."""

    @abstractmethod
    async def create(self, machine_id: MachineId, config: SessionConfig) -> Session:
        """Create a session on a machine."""

    @abstractmethod
    def get(self, session_id: SessionId) -> Session | None:
        """Session with the given id, if present."""

    @abstractmethod
    def list(self) -> list[Session]:
        """All sessions."""

    @abstractmethod
    def list_by_machine(self, machine_id: MachineId) -> list[Session]:
        """Sessions on one machine."""

    @abstractmethod
    async def close(self, session_id: SessionId) -> None:
        """Close one session."""

    @abstractmethod
    async def close_all_for_machine(self, machine_id: MachineId) -> None:
        """Close every session on a machine."""