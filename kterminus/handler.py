"""Per-connection SSH server handler that decodes frames from agents."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol, Union

import paramiko

from kterminus.auth import key_fingerprint
from kterminus.codec import Frame, FrameCodec
from kterminus.errors import AuthenticationFailed, ProtocolError
from kterminus.message import (
    Data,
    HeartbeatAck,
    Message,
    Register,
    RegisterAck,
    SessionClose,
    SessionReady,
)
from kterminus.session import SessionId
from kterminus.state import OrchestratorState
from kterminus.types import MachineId

log = logging.getLogger(__name__)

_AUTH_METHODS = ("publickey",)


@dataclass(frozen=True)
class MachineConnected:
    """A machine has connected and registered."""

    machine_id: MachineId
    alias: str
    hostname: str


@dataclass(frozen=True)
class MachineDisconnected:
    machine_id: MachineId


@dataclass(frozen=True)
class SessionCreated:
    machine_id: MachineId
    session_id: SessionId


@dataclass(frozen=True)
class SessionClosed:
    machine_id: MachineId
    session_id: SessionId


@dataclass(frozen=True)
class SessionData:
    machine_id: MachineId
    session_id: SessionId
    data: bytes


ConnectionEvent = Union[
    MachineConnected, MachineDisconnected, SessionCreated, SessionClosed, SessionData
]


class _EventSink(Protocol):
    def put(self, item: ConnectionEvent) -> Any: ...


class ClientHandler(paramiko.ServerInterface):
    """Authenticates one agent and turns its frames into connection events."""

    def __init__(self, state: OrchestratorState, events: _EventSink) -> None:
        self._state = state
        self._events = events
        self._machine_id: MachineId | None = None
        self._alias: str | None = None
        self._codec = FrameCodec()
        self._buffer = bytearray()
        self._channels: dict[int, Any] = {}
        self._lock = threading.Lock()

    @property
    def machine_id(self) -> MachineId | None:
        """The machine id derived from the authenticated key."""
        return self._machine_id

    @property
    def alias(self) -> str | None:
        """The host name the machine registered with."""
        return self._alias

    # --- paramiko server interface ------------------------------------------

    def get_allowed_auths(self, username: str) -> str:
        """Only public key authentication is offered."""
        methods = ",".join(_AUTH_METHODS)
        log.debug("Offering authentication methods %s to user '%s'", methods, username)
        return methods

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        fingerprint = key_fingerprint(key.asbytes())
        log.info("Auth attempt from user '%s', key: %s", username, fingerprint)
        if self._state.auth.is_authorized(fingerprint):
            self._machine_id = MachineId.from_fingerprint(fingerprint)
            log.info("Authentication successful for %s", fingerprint)
            return paramiko.AUTH_SUCCESSFUL
        log.warning("Authentication rejected for %s", fingerprint)
        return paramiko.AUTH_FAILED

    def check_channel_request(self, kind: str, chanid: int) -> int:
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    # --- channel lifecycle --------------------------------------------------

    def channel_opened(self, channel: Any) -> None:
        """Record an accepted channel; the first one carries outgoing frames."""
        channel_id = channel.get_id()
        log.debug("Channel opened: %s", channel_id)
        with self._lock:
            self._channels[channel_id] = channel

    def data_received(self, channel: Any, data: bytes) -> None:
        """Buffer incoming bytes and handle every complete frame."""
        self._buffer += data
        while True:
            try:
                frame = self._codec.decode(self._buffer)
            except ProtocolError as exc:
                log.error("Protocol error: %s", exc)
                self._buffer.clear()
                break
            if frame is None:
                break
            self.handle_frame(frame)

    def channel_closed(self, channel: Any) -> None:
        """Forget a channel; once none remain the machine counts as gone."""
        channel_id = channel.get_id()
        log.debug("Channel closed: %s", channel_id)
        with self._lock:
            self._channels.pop(channel_id, None)
            empty = not self._channels
        if empty and self._machine_id is not None:
            self._events.put(MachineDisconnected(self._machine_id))

    # --- frames -------------------------------------------------------------

    def handle_frame(self, frame: Frame) -> None:
        """React to one frame from the agent."""
        if self._machine_id is None:
            raise AuthenticationFailed("not authenticated")
        machine_id = self._machine_id
        session_id = frame.session_id

        match frame.message:
            case Register(machine_id=reported_id, hostname=hostname, os=os_name, arch=arch):
                log.info(
                    "Machine registered: %s (%s) - %s %s",
                    reported_id, hostname, os_name, arch,
                )
                self._alias = hostname
                self.send_message(SessionId.CONTROL, RegisterAck(accepted=True))
                self._events.put(MachineConnected(machine_id, reported_id, hostname))
            case SessionReady(pid=pid):
                log.debug("Session %s ready on %s, pid=%d", session_id, machine_id, pid)
                self._events.put(SessionCreated(machine_id, session_id))
            case Data(data=data):
                self._events.put(SessionData(machine_id, session_id, data))
            case SessionClose(exit_code=exit_code):
                log.debug(
                    "Session %s closed on %s, exit_code=%s", session_id, machine_id, exit_code
                )
                self._events.put(SessionClosed(machine_id, session_id))
            case HeartbeatAck(timestamp=timestamp):
                now = time.time_ns() // 1_000_000
                latency = max(0, now - timestamp)
                log.debug("Heartbeat ack from %s, latency=%dms", machine_id, latency)
            case other:
                log.warning("Unexpected message type from %s: %r", machine_id, other)

    def send_message(self, session_id: SessionId, message: Message) -> None:
        """Encode a frame and send it on the first open channel."""
        try:
            payload = FrameCodec().encode(Frame(session_id, message))
        except (ProtocolError, TypeError) as exc:
            log.error("Failed to encode message: %s", exc)
            return
        with self._lock:
            channel = next(iter(self._channels.values()), None)
        if channel is not None:
            channel.sendall(payload)


@dataclass
class ServerConfig:
    """Host key and authentication timing for the SSH server."""

    host_key: paramiko.PKey
    auth_rejection_time: float = 1.0
    auth_rejection_time_initial: float = 0.0