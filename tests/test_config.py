import socket
import sys
from datetime import timedelta
from pathlib import Path

import pytest

from kterminus.config import (
    AgentConfig,
    BackoffConfig,
    MachineProfile,
    OrchestratorConfig,
    default_config_dir,
    default_config_path,
    load_config,
    save_config,
)
from kterminus.errors import ConfigNotFound, ConfigParseError, MissingField


def test_default_paths():
    assert default_config_dir().name == "k-terminus"
    assert default_config_path() == default_config_dir() / "config.toml"


def test_orchestrator_defaults():
    config = OrchestratorConfig()
    assert config.bind_address == "0.0.0.0:2222"
    assert config.heartbeat_interval == timedelta(seconds=30)
    assert config.heartbeat_timeout == timedelta(seconds=90)
    assert config.host_key_path == default_config_dir() / "host_key"
    assert config.auth_keys == []
    assert config.ipc_path is None


def test_backoff_defaults():
    backoff = BackoffConfig()
    assert backoff.initial == timedelta(seconds=1)
    assert backoff.max == timedelta(seconds=60)
    assert backoff.multiplier == 2.0
    assert backoff.jitter == 0.25


def test_durations_serialise_as_whole_seconds():
    data = OrchestratorConfig().to_dict()
    assert data["heartbeat_interval"] == 30
    assert data["backoff"]["max"] == 60
    assert "ipc_path" not in data


def test_orchestrator_roundtrip(tmp_path):
    config = OrchestratorConfig(
        auth_keys=[tmp_path / "authorized_keys"],
        host_key_path=tmp_path / "host_key",
        machines={"web": MachineProfile("web", tags=["prod"], env={"A": "b"})},
        max_connections=8,
    )
    path = tmp_path / "nested" / "config.toml"
    save_config(path, config)
    assert load_config(path, OrchestratorConfig) == config


def test_agent_roundtrip(tmp_path):
    config = AgentConfig(alias="box", tags=["dev"], max_sessions=4)
    path = tmp_path / "agent.toml"
    save_config(path, config)
    loaded = load_config(path, AgentConfig)
    assert loaded == config
    assert loaded.default_env == [("TERM", "xterm-256color")]


def test_partial_file_uses_defaults(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('bind_address = "127.0.0.1:2222"\n')
    config = load_config(path)
    assert config.bind_address == "127.0.0.1:2222"
    assert config.heartbeat_interval == timedelta(seconds=30)
    assert config.backoff == BackoffConfig()


def test_missing_file(tmp_path):
    with pytest.raises(ConfigNotFound):
        load_config(tmp_path / "absent.toml")


def test_bad_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("bind_address = \n")
    with pytest.raises(ConfigParseError):
        load_config(path)


def test_wrong_type(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('heartbeat_interval = "soon"\n')
    with pytest.raises(ConfigParseError):
        load_config(path)


def test_backoff_requires_all_fields():
    with pytest.raises(MissingField):
        BackoffConfig.from_dict({"initial": 1, "max": 60, "multiplier": 2.0})


def test_machine_profile_requires_alias():
    with pytest.raises(MissingField):
        MachineProfile.from_dict({"tags": ["x"]})


def test_machine_profile_has_tag_ignores_case():
    profile = MachineProfile("box", tags=["Prod", "gpu"])
    assert profile.has_tag("prod")
    assert profile.has_tag("GPU")
    assert not profile.has_tag("staging")


def test_ipc_socket_path_explicit(tmp_path):
    config = OrchestratorConfig(ipc_path=tmp_path / "sock")
    assert config.ipc_socket_path() == tmp_path / "sock"


def test_ipc_socket_path_uses_runtime_dir(monkeypatch, tmp_path):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(tmp_path))
    assert OrchestratorConfig().ipc_socket_path() == tmp_path / "k-terminus.sock"


def test_ipc_socket_path_falls_back_to_tmp(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.delenv("XDG_RUNTIME_DIR", raising=False)
    assert OrchestratorConfig().ipc_socket_path() == Path("/tmp") / "k-terminus.sock"


def test_agent_defaults_and_alias():
    config = AgentConfig()
    assert config.orchestrator_address == "localhost:2222"
    assert config.connect_timeout == timedelta(seconds=30)
    assert config.private_key_path.name == "id_ed25519"
    assert config.machine_alias() == socket.gethostname()
    assert AgentConfig(alias="box").machine_alias() == "box"