"""Protocol messages and their binary payload encoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, TypeVar

from kterminus.errors import SerializationError

T = TypeVar("T")


@dataclass(frozen=True)
class TerminalSize:
    """Terminal dimensions in character cells."""

    rows: int = 24
    cols: int = 80

    @classmethod
    def default_size(cls) -> TerminalSize:
        return cls(24, 80)


class MessageType(IntEnum):
    """Type byte carried in every frame header."""

    SESSION_CREATE = 0x01
    SESSION_READY = 0x02
    DATA = 0x03
    RESIZE = 0x04
    SESSION_CLOSE = 0x05
    HEARTBEAT = 0x06
    HEARTBEAT_ACK = 0x07
    REGISTER = 0x08
    REGISTER_ACK = 0x09
    ERROR = 0xFF

    @classmethod
    def from_u8(cls, value: int) -> MessageType | None:
        """Return the type for a byte, or None when it is not defined."""
        try:
            return cls(value)
        except ValueError:
            return None


class ErrorCode(IntEnum):
    """Codes carried by error messages."""

    UNKNOWN = 0
    SESSION_NOT_FOUND = 1
    PTY_ALLOCATION_FAILED = 2
    AUTHENTICATION_FAILED = 3
    SESSION_LIMIT_EXCEEDED = 4
    INVALID_MESSAGE = 5


_ERROR_CODE_ORDER = tuple(ErrorCode)


@dataclass(frozen=True)
class SessionCreate:
    """Request to create a new PTY session."""

    shell: str | None = None
    env: tuple[tuple[str, str], ...] = ()
    initial_size: TerminalSize = TerminalSize()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "env", tuple((str(k), str(v)) for k, v in self.env)
        )


@dataclass(frozen=True)
class SessionReady:
    """The session's shell has been spawned."""

    pid: int


@dataclass(frozen=True)
class Data:
    """Raw terminal data."""

    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class Resize:
    """Terminal resize event."""

    size: TerminalSize


@dataclass(frozen=True)
class SessionClose:
    """Close a session, with the exit code if the process exited normally."""

    exit_code: int | None = None


@dataclass(frozen=True)
class Heartbeat:
    timestamp: int


@dataclass(frozen=True)
class HeartbeatAck:
    timestamp: int


@dataclass(frozen=True)
class Register:
    """Agent registration."""

    machine_id: str
    hostname: str
    os: str
    arch: str


@dataclass(frozen=True)
class RegisterAck:
    accepted: bool
    reason: str | None = None


@dataclass(frozen=True)
class ErrorMessage:
    code: ErrorCode
    message: str


Message = (
    SessionCreate
    | SessionReady
    | Data
    | Resize
    | SessionClose
    | Heartbeat
    | HeartbeatAck
    | Register
    | RegisterAck
    | ErrorMessage
)

_TYPES: dict[type, MessageType] = {
    SessionCreate: MessageType.SESSION_CREATE,
    SessionReady: MessageType.SESSION_READY,
    Data: MessageType.DATA,
    Resize: MessageType.RESIZE,
    SessionClose: MessageType.SESSION_CLOSE,
    Heartbeat: MessageType.HEARTBEAT,
    HeartbeatAck: MessageType.HEARTBEAT_ACK,
    Register: MessageType.REGISTER,
    RegisterAck: MessageType.REGISTER_ACK,
    ErrorMessage: MessageType.ERROR,
}

# Variant indices follow declaration order.
_VARIANTS: tuple[type, ...] = tuple(_TYPES)


def message_type_of(message: Message) -> MessageType:
    """Return the frame type byte for a message."""
    try:
        return _TYPES[type(message)]
    except KeyError:
        raise TypeError(f"not a protocol message: {message!r}") from None


class _Writer:
    def __init__(self) -> None:
        self.out = bytearray()

    def _pack(self, fmt: str, value: object) -> None:
        try:
            self.out += struct.pack(fmt, value)
        except struct.error as exc:
            raise SerializationError(f"{value!r}: {exc}") from None

    def u8(self, value: int) -> None:
        self._pack("<B", value)

    def u16(self, value: int) -> None:
        self._pack("<H", value)

    def u32(self, value: int) -> None:
        self._pack("<I", value)

    def i32(self, value: int) -> None:
        self._pack("<i", value)

    def u64(self, value: int) -> None:
        self._pack("<Q", value)

    def boolean(self, value: bool) -> None:
        self.u8(1 if value else 0)

    def raw(self, value: bytes) -> None:
        self.u64(len(value))
        self.out += value

    def string(self, value: str) -> None:
        self.raw(value.encode("utf-8"))

    def option(self, value: T | None, write: Callable[[T], None]) -> None:
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            write(value)

    def size(self, value: TerminalSize) -> None:
        self.u16(value.rows)
        self.u16(value.cols)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._pos = 0

    def _take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise SerializationError("unexpected end of input")
        chunk = bytes(self._data[self._pos:end])
        self._pos = end
        return chunk

    def _unpack(self, fmt: str) -> int:
        (value,) = struct.unpack(fmt, self._take(struct.calcsize(fmt)))
        return value

    def u8(self) -> int:
        return self._unpack("<B")

    def u16(self) -> int:
        return self._unpack("<H")

    def u32(self) -> int:
        return self._unpack("<I")

    def i32(self) -> int:
        return self._unpack("<i")

    def u64(self) -> int:
        return self._unpack("<Q")

    def boolean(self) -> bool:
        value = self.u8()
        if value > 1:
            raise SerializationError(f"invalid bool value: {value}")
        return value == 1

    def raw(self) -> bytes:
        return self._take(self.u64())

    def string(self) -> str:
        try:
            return self.raw().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SerializationError(f"invalid UTF-8: {exc}") from None

    def option(self, read: Callable[[], T]) -> T | None:
        tag = self.u8()
        if tag == 0:
            return None
        if tag == 1:
            return read()
        raise SerializationError(f"invalid option tag: {tag}")

    def size(self) -> TerminalSize:
        return TerminalSize(self.u16(), self.u16())


def encode_message(message: Message) -> bytes:
    """Serialise a message into its binary payload."""
    w = _Writer()
    w.u32(_VARIANTS.index(type(message)) if type(message) in _TYPES else 0)
    match message:
        case SessionCreate(shell=shell, env=env, initial_size=size):
            w.option(shell, w.string)
            w.u64(len(env))
            for key, value in env:
                w.string(key)
                w.string(value)
            w.size(size)
        case SessionReady(pid=pid):
            w.u32(pid)
        case Data(data=data):
            w.raw(data)
        case Resize(size=size):
            w.size(size)
        case SessionClose(exit_code=exit_code):
            w.option(exit_code, w.i32)
        case Heartbeat(timestamp=ts) | HeartbeatAck(timestamp=ts):
            w.u64(ts)
        case Register(machine_id=machine_id, hostname=hostname, os=os_name, arch=arch):
            for text in (machine_id, hostname, os_name, arch):
                w.string(text)
        case RegisterAck(accepted=accepted, reason=reason):
            w.boolean(accepted)
            w.option(reason, w.string)
        case ErrorMessage(code=code, message=text):
            w.u32(_ERROR_CODE_ORDER.index(ErrorCode(code)))
            w.string(text)
        case _:
            raise TypeError(f"not a protocol message: {message!r}")
    return bytes(w.out)


def _read_error_code(r: _Reader) -> ErrorCode:
    index = r.u32()
    if index >= len(_ERROR_CODE_ORDER):
        raise SerializationError(f"unknown error code variant: {index}")
    return _ERROR_CODE_ORDER[index]


def decode_message(payload: bytes) -> Message:
    """Deserialise a message from its binary payload."""
    r = _Reader(payload)
    variant = r.u32()
    if variant >= len(_VARIANTS):
        raise SerializationError(f"unknown message variant: {variant}")
    kind = _VARIANTS[variant]
    if kind is SessionCreate:
        shell = r.option(r.string)
        env = tuple((r.string(), r.string()) for _ in range(r.u64()))
        return SessionCreate(shell=shell, env=env, initial_size=r.size())
    if kind is SessionReady:
        return SessionReady(pid=r.u32())
    if kind is Data:
        return Data(r.raw())
    if kind is Resize:
        return Resize(r.size())
    if kind is SessionClose:
        return SessionClose(exit_code=r.option(r.i32))
    if kind is Heartbeat:
        return Heartbeat(timestamp=r.u64())
    if kind is HeartbeatAck:
        return HeartbeatAck(timestamp=r.u64())
    if kind is Register:
        return Register(r.string(), r.string(), r.string(), r.string())
    if kind is RegisterAck:
        return RegisterAck(accepted=r.boolean(), reason=r.option(r.string))
    return ErrorMessage(code=_read_error_code(r), message=r.string())