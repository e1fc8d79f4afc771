"""Core domain types: machine identifiers, capabilities and connection status."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True, order=True)
class MachineId:
    """Unique identifier of a remote machine."""

    value: str

    @classmethod
    def from_fingerprint(cls, fingerprint: str) -> MachineId:
        """Derive an id from the first 16 alphanumeric characters of a key fingerprint."""
        chars = [c for c in fingerprint if c.isalnum()][:16]
        return cls("".join(chars).lower())

    def __str__(self) -> str:
        return self.value


@dataclass
class Capability:
    """What a machine supports."""

    pty: bool = False
    file_transfer: bool = False
    port_forward: bool = False
    max_sessions: int | None = None

    @classmethod
    def default_capabilities(cls) -> Capability:
        """Capabilities of a plain agent: PTY sessions only."""
        return cls(pty=True)


class ConnectionStatus(Enum):
    """Connection state of a machine."""

    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"

    def __str__(self) -> str:
        return self.value