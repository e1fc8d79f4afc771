"""Command line entry point of the orchestrator daemon."""

from __future__ import annotations

import argparse
import logging
import os
import queue
import signal
import sys
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from kterminus import config as config_module
from kterminus.auth import AuthorizedKeys, key_fingerprint
from kterminus.config import OrchestratorConfig
from kterminus.connection import TunnelConnection
from kterminus.errors import KtError
from kterminus.handler import (
    ConnectionEvent,
    MachineConnected,
    MachineDisconnected,
    SessionClosed,
    SessionCreated,
    SessionData,
)
from kterminus.listener import SshServer, load_or_generate_host_key
from kterminus.sessions import SessionHandle
from kterminus.state import OrchestratorState

log = logging.getLogger("kterminus.orchestrator")

_VERSION = "0.1.0"
_EVENT_QUEUE_SIZE = 256
_LOG_ENV = "KT_LOG"
_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}
_STOP = object()


def handle_connection_event(state: OrchestratorState, event: ConnectionEvent) -> None:
    """Apply one connection event to the orchestrator state."""
    match event:
        case MachineConnected(machine_id=machine_id, alias=alias, hostname=hostname):
            log.info(
                "Machine connected: %s (alias: %s, hostname: %s)", machine_id, alias, hostname
            )
            state.connections.register(TunnelConnection(machine_id, alias))
        case MachineDisconnected(machine_id=machine_id):
            log.info("Machine disconnected: %s", machine_id)
            state.connections.remove(machine_id)
        case SessionCreated(machine_id=machine_id, session_id=session_id):
            log.info("Session created: %s on %s", session_id, machine_id)
            state.sessions.add(SessionHandle(session_id))
        case SessionClosed(machine_id=machine_id, session_id=session_id):
            log.info("Session closed: %s on %s", session_id, machine_id)
            state.sessions.remove(session_id)
        case SessionData(machine_id=machine_id, session_id=session_id, data=data):
            log.debug(
                "Session data: %d bytes from %s on %s", len(data), session_id, machine_id
            )
        case _:
            raise TypeError(f"not a connection event: {event!r}")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kt-orchestrator", description="k-Terminus orchestrator daemon"
    )
    parser.add_argument("-c", "--config", type=Path, help="Path to configuration file")
    parser.add_argument("-b", "--bind", help="Bind address (overrides config)")
    parser.add_argument(
        "-f", "--foreground", action="store_true",
        help="Run in foreground with verbose output",
    )
    parser.add_argument(
        "--log-level", default="info",
        help="Log level (error, warn, info, debug, trace)",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {_VERSION}")
    return parser


def _configure_logging(level_name: str) -> None:
    name = os.environ.get(_LOG_ENV, level_name).strip().lower()
    logging.basicConfig(
        level=_LEVELS.get(name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_configuration(path: Path | None) -> OrchestratorConfig:
    if path is not None:
        try:
            return config_module.load_config(path, OrchestratorConfig)
        except KtError as exc:
            raise KtError(f"Failed to load config from {path}: {exc}") from exc
    default_path = config_module.default_config_path()
    if default_path.exists():
        try:
            return config_module.load_config(default_path, OrchestratorConfig)
        except KtError as exc:
            log.warning("Failed to load config from %s: %s", default_path, exc)
            return OrchestratorConfig()
    log.info("Using default configuration")
    return OrchestratorConfig()


def _load_auth(config: OrchestratorConfig) -> AuthorizedKeys:
    if config.auth_keys:
        auth = AuthorizedKeys.load_from_files(config.auth_keys)
    else:
        log.warning("No authorized keys configured - all connections will be rejected")
        auth = AuthorizedKeys()
    if len(auth) == 0:
        log.warning("No valid authorized keys found - all connections will be rejected")
    else:
        log.info("Loaded %d authorized keys", len(auth))
    return auth


def _install_signal_handlers(cancel: threading.Event) -> dict[int, Any]:
    if threading.current_thread() is not threading.main_thread():
        return {}

    def on_signal(signum: int, _frame: Any) -> None:
        name = "Ctrl+C" if signum == signal.SIGINT else signal.Signals(signum).name
        log.info("Received %s, initiating shutdown...", name)
        cancel.set()

    previous = {}
    for signum in (signal.SIGINT, getattr(signal, "SIGTERM", None)):
        if signum is not None:
            previous[signum] = signal.signal(signum, on_signal)
    return previous


def _run(args: argparse.Namespace) -> int:
    log.info("k-Terminus Orchestrator starting...")
    config = _load_configuration(args.config)
    bind_addr = args.bind if args.bind is not None else config.bind_address

    host_key = load_or_generate_host_key(config.host_key_path)
    log.info("Host key fingerprint: %s", key_fingerprint(host_key.asbytes()))

    state = OrchestratorState.with_auth(config, _load_auth(config))
    cancel = threading.Event()
    events: queue.Queue[Any] = queue.Queue(maxsize=_EVENT_QUEUE_SIZE)

    def consume() -> None:
        while (event := events.get()) is not _STOP:
            handle_connection_event(state, event)

    consumer = threading.Thread(target=consume, name="connection-events", daemon=True)
    consumer.start()
    previous = _install_signal_handlers(cancel)
    try:
        server = SshServer(host_key, state, cancel, events)
        log.info("Starting SSH server on %s", bind_addr)
        server.run(bind_addr)
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        events.put(_STOP)
        consumer.join()

    log.info("Orchestrator shutdown complete")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the orchestrator daemon; returns the process exit status."""
    args = _parser().parse_args(argv)
    _configure_logging("debug" if args.foreground else args.log_level)
    try:
        return _run(args)
    except KtError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())