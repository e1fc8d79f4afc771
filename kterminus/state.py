"""Shared state of the orchestrator daemon."""

from __future__ import annotations

from dataclasses import dataclass, field

from kterminus.auth import AuthorizedKeys
from kterminus.config import OrchestratorConfig
from kterminus.connection import ConnectionPool
from kterminus.sessions import SessionManager


@dataclass
class OrchestratorState:
    """Configuration, connections, sessions and authorised keys."""

    config: OrchestratorConfig
    connections: ConnectionPool = field(default_factory=ConnectionPool)
    sessions: SessionManager = field(default_factory=SessionManager)
    auth: AuthorizedKeys = field(default_factory=AuthorizedKeys)

    @classmethod
    def with_auth(cls, config: OrchestratorConfig, auth: AuthorizedKeys) -> OrchestratorState:
        """State with the given authorised keys and empty pools."""
        return cls(config=config, auth=auth)