"""Error hierarchy shared by the protocol, the core and the orchestrator."""

from __future__ import annotations

from os import PathLike
from pathlib import Path


class KtError(Exception):
    """Base class for every error raised by kterminus."""

    prefix: str | None = None
    default_message = "k-Terminus error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        if detail is None:
            message = self.default_message
        elif self.prefix:
            message = f"{self.prefix}: {detail}"
        else:
            message = detail
        super().__init__(message)


# --- protocol errors -------------------------------------------------------


class ProtocolError(KtError):
    """An error while framing or (de)serialising protocol messages."""

    prefix = "Protocol error"
    default_message = "Protocol error"


class InvalidHeader(ProtocolError):
    """A frame header could not be interpreted."""

    default_message = "Invalid frame header"


class UnknownMessageType(ProtocolError):
    """A frame header carried a message type byte that is not defined."""

    def __init__(self, message_type: int) -> None:
        self.message_type = message_type
        super().__init__()
        self.args = (f"Unknown message type: {message_type}",)


class PayloadTooLarge(ProtocolError):
    """A payload is larger than a frame can carry."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__()
        self.args = (
            f"Payload too large: {size} bytes exceeds maximum of {max_size} bytes",
        )


class IncompleteFrame(ProtocolError):
    """Fewer bytes arrived than the frame announced."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__()
        self.args = (f"Incomplete frame: expected {expected} bytes, got {actual}",)


class SerializationError(ProtocolError):
    """A message payload could not be encoded or decoded."""

    prefix = "Serialization error"
    default_message = "Serialization error"


# --- connection errors -----------------------------------------------------


class ConnectError(KtError):
    """An error concerning a connection to a remote machine."""

    prefix = "Connection error"
    default_message = "Connection error"


class AuthenticationFailed(ConnectError):
    default_message = "Authentication failed"


class ConnectionRefused(ConnectError):
    prefix = "Connection refused"
    default_message = "Connection refused"


class ConnectionLost(ConnectError):
    prefix = "Connection lost"
    default_message = "Connection lost"


class MachineNotFound(ConnectError):
    prefix = "Machine not found"
    default_message = "Machine not found"


class TunnelError(ConnectError):
    prefix = "Tunnel error"
    default_message = "Tunnel error"


class HostKeyVerificationFailed(ConnectError):
    default_message = "Host key verification failed"


# --- session errors --------------------------------------------------------


class SessionError(KtError):
    """An error concerning a terminal session."""

    prefix = "Session error"
    default_message = "Session error"


class SessionNotFound(SessionError):
    prefix = "Session not found"
    default_message = "Session not found"


class SessionAlreadyExists(SessionError):
    prefix = "Session already exists"
    default_message = "Session already exists"


class PtyAllocationError(SessionError):
    prefix = "PTY allocation failed"
    default_message = "PTY allocation failed"


class UnexpectedClose(SessionError):
    default_message = "Session closed unexpectedly"


class SessionLimitExceeded(SessionError):
    default_message = "Session limit exceeded"


# --- configuration errors --------------------------------------------------


class ConfigError(KtError):
    """An error while reading, validating or writing configuration."""

    prefix = "Configuration error"
    default_message = "Configuration error"


class ConfigNotFound(ConfigError):
    """The configuration file does not exist."""

    def __init__(self, path: str | PathLike[str]) -> None:
        self.path = Path(path)
        super().__init__()
        self.args = (f"Config file not found: {self.path}",)


class InvalidConfig(ConfigError):
    prefix = "Invalid config"
    default_message = "Invalid config"


class ConfigParseError(ConfigError):
    prefix = "TOML parse error"
    default_message = "TOML parse error"


class MissingField(ConfigError):
    prefix = "Missing required field"
    default_message = "Missing required field"