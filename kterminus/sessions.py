"""Tracking of active sessions and allocation of session ids."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from kterminus.session import SessionId

_U32_MASK = 0xFFFF_FFFF


@dataclass(frozen=True)
class SessionHandle:
    """Handle to an active session."""

    id: SessionId


class SessionManager:
    """Active sessions across every connection, indexed by id."""

    def __init__(self) -> None:
        self._sessions: dict[SessionId, SessionHandle] = {}
        self._lock = threading.Lock()

    def get(self, session_id: SessionId) -> SessionHandle | None:
        """The session with ``session_id``, if present."""
        with self._lock:
            return self._sessions.get(session_id)

    def list(self) -> list[SessionHandle]:
        """A snapshot of every session."""
        with self._lock:
            return [*self._sessions.values()]

    def add(self, handle: SessionHandle) -> None:
        """Track a session, replacing any with the same id."""
        with self._lock:
            self._sessions[handle.id] = handle

    def remove(self, session_id: SessionId) -> SessionHandle | None:
        """Stop tracking a session and return it."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class SessionMultiplexer:
    """Hands out session ids for one connection; id 0 is kept for control."""

    def __init__(self) -> None:
        self._next = 1
        self._lock = threading.Lock()

    def allocate_session_id(self) -> SessionId:
        """Return the next id; the 32-bit counter wraps around."""
        with self._lock:
            value = self._next
            self._next = (value + 1) & _U32_MASK
        return SessionId(value)