"""Configuration for the orchestrator, agents and known machines."""

from __future__ import annotations

import getpass
import os
import socket
import sys
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Protocol, TypeVar

import platformdirs
import tomli_w

from kterminus.errors import (
    ConfigError,
    ConfigNotFound,
    ConfigParseError,
    InvalidConfig,
    MissingField,
)

_U32_MAX = 0xFFFF_FFFF
_U64_MAX = 0xFFFF_FFFF_FFFF_FFFF


def default_config_dir() -> Path:
    """Directory holding k-Terminus configuration and keys."""
    return Path(platformdirs.user_config_dir()) / "k-terminus"


def default_config_path() -> Path:
    """Path of the default configuration file."""
    return default_config_dir() / "config.toml"


# --- field conversion -------------------------------------------------------


def _table(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ConfigParseError(f"invalid type for `{name}`: expected a table")
    return value


def _str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ConfigParseError(f"invalid type for `{name}`: expected a string")
    return value


def _bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigParseError(f"invalid type for `{name}`: expected a boolean")
    return value


def _unsigned(value: Any, name: str, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
        raise ConfigParseError(
            f"invalid value for `{name}`: expected an integer in 0..={upper}"
        )
    return value


def _u32(value: Any, name: str) -> int:
    return _unsigned(value, name, _U32_MAX)


def _float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigParseError(f"invalid type for `{name}`: expected a float")
    return float(value)


def _duration(value: Any, name: str) -> timedelta:
    return timedelta(seconds=_unsigned(value, name, _U64_MAX))


def _path(value: Any, name: str) -> Path:
    return Path(_str(value, name))


def _list(value: Any, name: str) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigParseError(f"invalid type for `{name}`: expected an array")
    return value


def _str_list(value: Any, name: str) -> list[str]:
    return [_str(item, name) for item in _list(value, name)]


def _path_list(value: Any, name: str) -> list[Path]:
    return [_path(item, name) for item in _list(value, name)]


def _str_map(value: Any, name: str) -> dict[str, str]:
    return {str(k): _str(v, name) for k, v in _table(value, name).items()}


def _pairs(value: Any, name: str) -> list[tuple[str, str]]:
    pairs = []
    for item in _list(value, name):
        if not isinstance(item, list) or len(item) != 2:
            raise ConfigParseError(f"invalid value for `{name}`: expected [key, value]")
        pairs.append((_str(item[0], name), _str(item[1], name)))
    return pairs


def _secs(value: timedelta) -> int:
    return value // timedelta(seconds=1)


def _convert(
    data: Any,
    what: str,
    converters: Mapping[str, Callable[[Any, str], Any]],
    required: tuple[str, ...] = (),
) -> dict[str, Any]:
    table = _table(data, what)
    for name in required:
        if name not in table:
            raise MissingField(name)
    return {
        name: convert(table[name], name)
        for name, convert in converters.items()
        if name in table
    }


def _prune(values: dict[str, Any]) -> dict[str, Any]:
    """Drop unset optional values, which TOML cannot represent."""
    return {key: value for key, value in values.items() if value is not None}


# --- configuration types ----------------------------------------------------


@dataclass
class BackoffConfig:
    """Exponential backoff for reconnections."""

    initial: timedelta = timedelta(seconds=1)
    max: timedelta = timedelta(seconds=60)
    multiplier: float = 2.0
    jitter: float = 0.25

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BackoffConfig:
        return cls(**_convert(data, "backoff", _BACKOFF_FIELDS, tuple(_BACKOFF_FIELDS)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "initial": _secs(self.initial),
            "max": _secs(self.max),
            "multiplier": self.multiplier,
            "jitter": self.jitter,
        }


def _ascii_lower(text: str) -> str:
    return "".join(chr(ord(c) + 32) if "A" <= c <= "Z" else c for c in text)


@dataclass
class MachineProfile:
    """Profile of a known machine."""

    alias: str = ""
    host_key: str | None = None
    tags: list[str] = field(default_factory=list)
    default_shell: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    auto_connect: bool = False
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MachineProfile:
        return cls(**_convert(data, "machine profile", _MACHINE_FIELDS, ("alias",)))

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "alias": self.alias,
                "host_key": self.host_key,
                "tags": list(self.tags),
                "default_shell": self.default_shell,
                "env": dict(self.env),
                "auto_connect": self.auto_connect,
                "notes": self.notes,
            }
        )

    def has_tag(self, tag: str) -> bool:
        """Whether the machine carries ``tag``, ignoring ASCII case."""
        wanted = _ascii_lower(tag)
        return any(_ascii_lower(t) == wanted for t in self.tags)


def _default_host_key_path() -> Path:
    return default_config_dir() / "host_key"


@dataclass
class OrchestratorConfig:
    """Configuration of the orchestrator daemon."""

    bind_address: str = "0.0.0.0:2222"
    auth_keys: list[Path] = field(default_factory=list)
    heartbeat_interval: timedelta = timedelta(seconds=30)
    heartbeat_timeout: timedelta = timedelta(seconds=90)
    host_key_path: Path = field(default_factory=_default_host_key_path)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    machines: dict[str, MachineProfile] = field(default_factory=dict)
    ipc_path: Path | None = None
    max_connections: int | None = None
    max_sessions_per_machine: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrchestratorConfig:
        return cls(**_convert(data, "orchestrator config", _ORCHESTRATOR_FIELDS))

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "bind_address": self.bind_address,
                "auth_keys": [str(p) for p in self.auth_keys],
                "heartbeat_interval": _secs(self.heartbeat_interval),
                "heartbeat_timeout": _secs(self.heartbeat_timeout),
                "host_key_path": str(self.host_key_path),
                "backoff": self.backoff.to_dict(),
                "machines": {k: v.to_dict() for k, v in self.machines.items()},
                "ipc_path": None if self.ipc_path is None else str(self.ipc_path),
                "max_connections": self.max_connections,
                "max_sessions_per_machine": self.max_sessions_per_machine,
            }
        )

    def ipc_socket_path(self) -> Path:
        """The IPC socket path, or the platform default when unset."""
        if self.ipc_path is not None:
            return self.ipc_path
        if sys.platform.startswith("win"):
            return Path(r"\\.\pipe\k-terminus")
        runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
        return Path(runtime_dir if runtime_dir is not None else "/tmp") / "k-terminus.sock"


def _default_private_key_path() -> Path:
    try:
        home = Path.home()
    except RuntimeError:
        home = Path()
    return home / ".ssh" / "id_ed25519"


def _current_username() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return "unknown"


def _default_env() -> list[tuple[str, str]]:
    return [("TERM", "xterm-256color")]


@dataclass
class AgentConfig:
    """Configuration of a remote agent."""

    orchestrator_address: str = "localhost:2222"
    private_key_path: Path = field(default_factory=_default_private_key_path)
    orchestrator_host_key: str | None = None
    username: str = field(default_factory=_current_username)
    alias: str | None = None
    tags: list[str] = field(default_factory=list)
    default_shell: str | None = None
    default_env: list[tuple[str, str]] = field(default_factory=_default_env)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    connect_timeout: timedelta = timedelta(seconds=30)
    max_sessions: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AgentConfig:
        return cls(**_convert(data, "agent config", _AGENT_FIELDS))

    def to_dict(self) -> dict[str, Any]:
        return _prune(
            {
                "orchestrator_address": self.orchestrator_address,
                "private_key_path": str(self.private_key_path),
                "orchestrator_host_key": self.orchestrator_host_key,
                "username": self.username,
                "alias": self.alias,
                "tags": list(self.tags),
                "default_shell": self.default_shell,
                "default_env": [[k, v] for k, v in self.default_env],
                "backoff": self.backoff.to_dict(),
                "connect_timeout": _secs(self.connect_timeout),
                "max_sessions": self.max_sessions,
            }
        )

    def machine_alias(self) -> str:
        """The alias, falling back to the host name."""
        return self.alias if self.alias is not None else socket.gethostname()


_BACKOFF_FIELDS: dict[str, Callable[[Any, str], Any]] = {
    "initial": _duration,
    "max": _duration,
    "multiplier": _float,
    "jitter": _float,
}

_MACHINE_FIELDS: dict[str, Callable[[Any, str], Any]] = {
    "alias": _str,
    "host_key": _str,
    "tags": _str_list,
    "default_shell": _str,
    "env": _str_map,
    "auto_connect": _bool,
    "notes": _str,
}


def _backoff(value: Any, name: str) -> BackoffConfig:
    return BackoffConfig.from_dict(_table(value, name))


def _machines(value: Any, name: str) -> dict[str, MachineProfile]:
    return {
        str(key): MachineProfile.from_dict(_table(profile, f"{name}.{key}"))
        for key, profile in _table(value, name).items()
    }


_ORCHESTRATOR_FIELDS: dict[str, Callable[[Any, str], Any]] = {
    "bind_address": _str,
    "auth_keys": _path_list,
    "heartbeat_interval": _duration,
    "heartbeat_timeout": _duration,
    "host_key_path": _path,
    "backoff": _backoff,
    "machines": _machines,
    "ipc_path": _path,
    "max_connections": _u32,
    "max_sessions_per_machine": _u32,
}

_AGENT_FIELDS: dict[str, Callable[[Any, str], Any]] = {
    "orchestrator_address": _str,
    "private_key_path": _path,
    "orchestrator_host_key": _str,
    "username": _str,
    "alias": _str,
    "tags": _str_list,
    "default_shell": _str,
    "default_env": _pairs,
    "backoff": _backoff,
    "connect_timeout": _duration,
    "max_sessions": _u32,
}


# --- loading and saving -----------------------------------------------------


class _Loadable(Protocol):
    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Any: ...


class _Saveable(Protocol):
    def to_dict(self) -> dict[str, Any]: ...


C = TypeVar("C")


def load_config(
    path: str | os.PathLike[str], config_type: type[C] = OrchestratorConfig  # type: ignore[assignment]
) -> C:
    """Read and parse a TOML configuration file into ``config_type``."""
    path = Path(path)
    if not path.exists():
        raise ConfigNotFound(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidConfig(f"Failed to read config: {exc}") from exc
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigParseError(str(exc)) from exc
    return config_type.from_dict(data)  # type: ignore[attr-defined]


def save_config(path: str | os.PathLike[str], config: _Saveable) -> None:
    """Write ``config`` to ``path`` as TOML, creating parent directories."""
    path = Path(path)
    try:
        content = tomli_w.dumps(config.to_dict())
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"TOML serialize error: {exc}") from exc
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise InvalidConfig(f"Failed to create config dir: {exc}") from exc
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise InvalidConfig(f"Failed to write config: {exc}") from exc