"""SSH listener that accepts agent connections and serves each in its own thread."""

from __future__ import annotations

import io
import logging
import os
import socket
import threading
from pathlib import Path
from typing import Any

import paramiko
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)

from kterminus.errors import KtError
from kterminus.handler import ClientHandler, ServerConfig, _EventSink
from kterminus.state import OrchestratorState

log = logging.getLogger(__name__)

_POLL_SECONDS = 0.5
_RECV_SIZE = 32 * 1024


def parse_bind_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6-host]:port``) into its host and port."""
    host, sep, port_text = address.rpartition(":")
    if not sep:
        raise ValueError(f"missing port in address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(f"IPv6 hosts must be bracketed: {address!r}")
    if not port_text.isdigit():
        raise ValueError(f"invalid port in address: {address!r}")
    port = int(port_text)
    if port > 0xFFFF:
        raise ValueError(f"port out of range in address: {address!r}")
    return host, port


def _load_private_key(path: Path) -> paramiko.PKey:
    last_error: Exception | None = None
    for key_class in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey):
        try:
            return key_class.from_private_key_file(str(path))
        except (paramiko.SSHException, ValueError, TypeError, OSError) as exc:
            last_error = exc
    raise KtError(f"Failed to load host key from {path}: {last_error}")


def _generate_ed25519() -> paramiko.Ed25519Key:
    private = Ed25519PrivateKey.generate()
    text = private.private_bytes(
        Encoding.PEM, PrivateFormat.OpenSSH, NoEncryption()
    ).decode("ascii")
    return paramiko.Ed25519Key(file_obj=io.StringIO(text))


def load_or_generate_host_key(path: str | os.PathLike[str]) -> paramiko.PKey:
    """Load the host key at ``path``, or generate a fresh Ed25519 key.

    A generated key is kept in memory only, so it changes on every restart.
    """
    path = Path(path)
    if path.exists():
        log.info("Loading host key from %s", path)
        return _load_private_key(path)

    log.info("Generating new host key at %s", path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise KtError(f"Failed to create directory {path.parent}: {exc}") from exc
    key = _generate_ed25519()
    log.warning("Host key persistence not yet implemented - key will change on restart")
    return key


class SshServer:
    """Listens for agents and runs a :class:`ClientHandler` per connection."""

    def __init__(
        self,
        host_key: paramiko.PKey,
        state: OrchestratorState,
        cancel: threading.Event,
        events: _EventSink,
    ) -> None:
        self.config = ServerConfig(host_key)
        self.state = state
        self.cancel = cancel
        self.events = events
        self.ready = threading.Event()
        self._local_address: tuple[str, int] | None = None
        self._transports: set[paramiko.Transport] = set()
        self._lock = threading.Lock()

    @property
    def local_address(self) -> tuple[str, int] | None:
        """Host and port actually bound, once listening."""
        return self._local_address

    def run(self, bind_addr: str) -> None:
        """Accept connections on ``bind_addr`` until ``cancel`` is set."""
        try:
            host, port = parse_bind_address(bind_addr)
            family = socket.AF_INET6 if ":" in host else socket.AF_INET
            listener = socket.create_server((host, port), family=family)
        except (ValueError, OSError) as exc:
            raise KtError(f"Failed to bind to {bind_addr}: {exc}") from exc

        with listener:
            listener.settimeout(_POLL_SECONDS)
            name = listener.getsockname()
            self._local_address = (name[0], name[1])
            log.info("SSH server listening on %s:%d", *self._local_address)
            self.ready.set()
            while not self.cancel.is_set():
                try:
                    sock, peer = listener.accept()
                except TimeoutError:
                    continue
                except OSError as exc:
                    log.error("Failed to accept connection: %s", exc)
                    continue
                self._handle_connection(sock, peer)

        log.info("SSH server shutting down")
        with self._lock:
            transports = list(self._transports)
        for transport in transports:
            transport.close()

    def _handle_connection(self, sock: socket.socket, peer: Any) -> None:
        log.info("New connection from %s", peer)
        sock.settimeout(None)
        threading.Thread(
            target=self._serve, args=(sock, peer), name=f"ssh-{peer}", daemon=True
        ).start()

    def _serve(self, sock: socket.socket, peer: Any) -> None:
        handler = ClientHandler(self.state, self.events)
        transport = paramiko.Transport(sock)
        transport.add_server_key(self.config.host_key)
        with self._lock:
            self._transports.add(transport)
        try:
            transport.start_server(server=handler)
            while transport.is_active() and not self.cancel.is_set():
                channel = transport.accept(_POLL_SECONDS)
                if channel is None:
                    continue
                handler.channel_opened(channel)
                threading.Thread(
                    target=self._pump, args=(handler, channel), daemon=True
                ).start()
        except (paramiko.SSHException, EOFError, OSError) as exc:
            log.warning("Connection from %s closed with error: %s", peer, exc)
        else:
            if self.cancel.is_set():
                log.debug("Connection handler cancelled for %s", peer)
            else:
                log.info("Connection from %s closed normally", peer)
        finally:
            with self._lock:
                self._transports.discard(transport)
            transport.close()

    def _pump(self, handler: ClientHandler, channel: paramiko.Channel) -> None:
        channel.settimeout(_POLL_SECONDS)
        try:
            while not self.cancel.is_set():
                try:
                    data = channel.recv(_RECV_SIZE)
                except TimeoutError:
                    continue
                if not data:
                    log.debug("Channel EOF: %s", channel.get_id())
                    break
                handler.data_received(channel, data)
        except (OSError, EOFError, paramiko.SSHException) as exc:
            log.debug("Channel %s failed: %s", channel.get_id(), exc)
        finally:
            handler.channel_closed(channel)
            channel.close()