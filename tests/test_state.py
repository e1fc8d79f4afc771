from kterminus.auth import AuthorizedKeys
from kterminus.config import OrchestratorConfig
from kterminus.connection import TunnelConnection
from kterminus.state import OrchestratorState
from kterminus.types import MachineId


def test_new_state_is_empty():
    config = OrchestratorConfig()
    state = OrchestratorState(config)
    assert state.config is config
    assert len(state.connections) == 0
    assert len(state.sessions) == 0
    assert len(state.auth) == 0
    assert not state.auth.is_authorized("anything")


def test_with_auth_uses_given_keys():
    auth = AuthorizedKeys()
    auth.add_fingerprint("SHA256:test123")
    state = OrchestratorState.with_auth(OrchestratorConfig(), auth)
    assert state.auth is auth
    assert state.auth.is_authorized("SHA256:test123")
    assert len(state.connections) == 0


def test_states_do_not_share_pools():
    first = OrchestratorState(OrchestratorConfig())
    second = OrchestratorState(OrchestratorConfig())
    first.connections.register(TunnelConnection(MachineId("abc")))
    assert len(first.connections) == 1
    assert len(second.connections) == 0