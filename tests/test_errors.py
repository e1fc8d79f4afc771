from pathlib import Path

import pytest

from kterminus.errors import (
    AuthenticationFailed,
    ConfigError,
    ConfigNotFound,
    ConfigParseError,
    ConnectError,
    ConnectionLost,
    ConnectionRefused,
    HostKeyVerificationFailed,
    IncompleteFrame,
    InvalidConfig,
    InvalidHeader,
    KtError,
    MachineNotFound,
    MissingField,
    PayloadTooLarge,
    ProtocolError,
    PtyAllocationError,
    SerializationError,
    SessionAlreadyExists,
    SessionError,
    SessionLimitExceeded,
    SessionNotFound,
    TunnelError,
    UnexpectedClose,
    UnknownMessageType,
)


def test_unknown_message_type_keeps_value():
    err = UnknownMessageType(0xFE)
    assert err.message_type == 0xFE
    assert str(err) == "Unknown message type: 254"


def test_payload_too_large_fields():
    err = PayloadTooLarge(20, 10)
    assert (err.size, err.max_size) == (20, 10)
    assert str(err).startswith("Payload too large: 20 bytes")
    assert str(err).endswith("10 bytes")


def test_incomplete_frame_fields():
    err = IncompleteFrame(8, 3)
    assert (err.expected, err.actual) == (8, 3)
    assert "expected 8" in str(err)
    assert "got 3" in str(err)


def test_invalid_header_is_protocol_error():
    err = InvalidHeader()
    assert str(err) == "Invalid frame header"
    assert isinstance(err, ProtocolError)


@pytest.mark.parametrize(
    "cls, prefix, base",
    [
        (ConnectionRefused, "Connection refused", ConnectError),
        (ConnectionLost, "Connection lost", ConnectError),
        (MachineNotFound, "Machine not found", ConnectError),
        (TunnelError, "Tunnel error", ConnectError),
        (SessionNotFound, "Session not found", SessionError),
        (SessionAlreadyExists, "Session already exists", SessionError),
        (PtyAllocationError, "PTY allocation failed", SessionError),
        (InvalidConfig, "Invalid config", ConfigError),
        (ConfigParseError, "TOML parse error", ConfigError),
        (MissingField, "Missing required field", ConfigError),
        (SerializationError, "Serialization error", ProtocolError),
    ],
)
def test_detail_errors(cls, prefix, base):
    err = cls("detail")
    assert str(err) == f"{prefix}: detail"
    assert err.detail == "detail"
    assert isinstance(err, base)


@pytest.mark.parametrize(
    "cls, text",
    [
        (AuthenticationFailed, "Authentication failed"),
        (HostKeyVerificationFailed, "Host key verification failed"),
        (UnexpectedClose, "Session closed unexpectedly"),
        (SessionLimitExceeded, "Session limit exceeded"),
    ],
)
def test_fixed_message_errors(cls, text):
    err = cls()
    assert str(err) == text
    assert isinstance(err, KtError)


def test_config_not_found_keeps_path(tmp_path):
    missing = tmp_path / "config.toml"
    err = ConfigNotFound(str(missing))
    assert err.path == Path(missing)
    assert str(missing) in str(err)


def test_errors_share_root():
    session_err = SessionNotFound("s1")
    config_err = InvalidConfig("bad")
    assert str(session_err) == "Session not found: s1"
    assert isinstance(session_err, KtError)
    assert not isinstance(session_err, ConnectError)
    assert isinstance(config_err, KtError)
    assert not isinstance(config_err, SessionError)