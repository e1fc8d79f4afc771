"""Session identifiers used to route frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

_U32_MAX = 0xFFFF_FFFF


@dataclass(frozen=True, order=True)
class SessionId:
    """Identifier of a terminal session; 0 is reserved for control traffic."""

    value: int

    CONTROL: ClassVar[SessionId]

    def __post_init__(self) -> None:
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise TypeError("session id must be an integer")
        if not 0 <= self.value <= _U32_MAX:
            raise ValueError(f"session id out of range: {self.value}")

    def __str__(self) -> str:
        return f"session-{self.value}"

    def __int__(self) -> int:
        return self.value


SessionId.CONTROL = SessionId(0)