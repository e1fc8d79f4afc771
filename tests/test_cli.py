import pytest

from kterminus.cli import handle_connection_event, main
from kterminus.config import OrchestratorConfig, save_config
from kterminus.connection import TunnelConnection
from kterminus.handler import (
    MachineConnected,
    MachineDisconnected,
    SessionClosed,
    SessionCreated,
    SessionData,
)
from kterminus.session import SessionId
from kterminus.sessions import SessionHandle
from kterminus.state import OrchestratorState
from kterminus.types import MachineId


@pytest.fixture
def state(tmp_path):
    return OrchestratorState(OrchestratorConfig(host_key_path=tmp_path / "host_key"))


def test_machine_connected_registers_connection(state):
    machine = MachineId("abc")
    handle_connection_event(state, MachineConnected(machine, "alias-a", "host-a"))
    assert state.connections.get(machine) == TunnelConnection(machine, "alias-a")
    assert len(state.connections) == 1


def test_machine_disconnected_removes_connection(state):
    machine = MachineId("abc")
    handle_connection_event(state, MachineConnected(machine, "alias-a", "host-a"))
    handle_connection_event(state, MachineDisconnected(machine))
    assert state.connections.get(machine) is None
    assert len(state.connections) == 0


def test_session_events_track_sessions(state):
    machine = MachineId("abc")
    session = SessionId(3)
    handle_connection_event(state, SessionCreated(machine, session))
    assert state.sessions.get(session) == SessionHandle(session)
    handle_connection_event(state, SessionClosed(machine, session))
    assert state.sessions.get(session) is None
    assert len(state.sessions) == 0


def test_session_data_leaves_state_unchanged(state):
    handle_connection_event(state, SessionData(MachineId("abc"), SessionId(1), b"hi"))
    assert len(state.sessions) == 0
    assert len(state.connections) == 0


def test_unknown_event_is_rejected(state):
    with pytest.raises(TypeError):
        handle_connection_event(state, "not an event")


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert "kt-orchestrator" in capsys.readouterr().out


def test_missing_config_file_fails(tmp_path, capsys):
    status = main(["--config", str(tmp_path / "missing.toml")])
    assert status == 1
    assert "Failed to load config" in capsys.readouterr().err


def test_invalid_bind_address_fails(tmp_path, capsys):
    config_path = tmp_path / "config.toml"
    save_config(config_path, OrchestratorConfig(host_key_path=tmp_path / "keys" / "host_key"))
    status = main(["--config", str(config_path), "--bind", "no-port-here"])
    assert status == 1
    assert "Failed to bind to no-port-here" in capsys.readouterr().err
    assert (tmp_path / "keys").is_dir()