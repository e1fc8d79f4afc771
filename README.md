# kterminus

An orchestrator daemon that accepts SSH connections from remote agents,
authenticates them by public key, and decodes the framed messages they send
over their channels; together with the binary framing protocol both ends speak.

## Installing

    pip install kterminus

For running the tests:

    pip install "kterminus[test]"

## Running the orchestrator

    kt-orchestrator

Options:

- `-c, --config PATH` – configuration file. Without it, `config.toml` in the
  per-user configuration directory `k-terminus` is read if it exists
  (`kterminus.config.default_config_path()`); if that file cannot be loaded,
  a warning is logged and the defaults are used.
- `-b, --bind ADDRESS` – bind address as `host:port` or `[v6-host]:port`,
  overriding the configuration (default `0.0.0.0:2222`).
- `-f, --foreground` – log at debug level.
- `--log-level LEVEL` – `error`, `warn`, `info`, `debug` or `trace`
  (default `info`). The `KT_LOG` environment variable, when set, takes
  precedence.
- `-V, --version` – print the version and exit.

The daemon stops on Ctrl+C or SIGTERM. It exits with status 1 and prints the
error when the configuration, host key or bind address cannot be used.

Agents authenticate with public keys listed in the files named by
`auth_keys` (a leading `~` is expanded; missing files are skipped with a
warning). A key is identified by its SHA-256 fingerprint, and the machine id
is derived from that fingerprint (`kterminus.types.MachineId.from_fingerprint`).
Any other key is rejected, and with no keys configured every connection is
rejected.

The host key is read from `host_key_path` (Ed25519, ECDSA or RSA in a format
paramiko can load). If the file does not exist, a fresh Ed25519 key is
generated for the lifetime of the process only.

## Configuration

The configuration file is TOML with the orchestrator settings at the top
level. Durations are whole seconds.

    bind_address = "0.0.0.0:2222"
    auth_keys = ["~/.config/k-terminus/authorized_keys"]
    host_key_path = "/home/agent-user/.config/k-terminus/host_key"
    heartbeat_interval = 30
    heartbeat_timeout = 90
    max_connections = 32

    [backoff]
    initial = 1
    max = 60
    multiplier = 2.0
    jitter = 0.25

    [machines.build-box]
    alias = "build-box"
    tags = ["ci", "linux"]
    auto_connect = true

Every field is optional and falls back to its default, except that a
`[backoff]` table must give all four values and each machine profile must
give `alias`. Values of the wrong type raise `kterminus.errors.ConfigParseError`.

`kterminus.config` provides `OrchestratorConfig`, `AgentConfig`,
`BackoffConfig` and `MachineProfile`, each with `from_dict()` and
`to_dict()`, plus `load_config(path, config_type)` and
`save_config(path, config)` to read and write them as TOML.
`OrchestratorConfig.ipc_socket_path()` gives `ipc_path` or, when unset,
`$XDG_RUNTIME_DIR/k-terminus.sock` (or `/tmp/k-terminus.sock`).

## The wire protocol

Every frame carries an 8-byte header — a 4-byte big-endian session id,
a 1-byte message type and a 3-byte big-endian payload length (at most
16 MiB - 1) — followed by the encoded message.

    from kterminus.codec import Frame, FrameCodec
    from kterminus.message import Heartbeat
    from kterminus.session import SessionId

    codec = FrameCodec()
    wire = codec.encode(Frame(SessionId(1), Heartbeat(timestamp=12345)))

    buffer = bytearray(wire)
    frame = codec.decode(buffer)
    assert frame.message == Heartbeat(timestamp=12345)

`FrameCodec.decode` returns `None` until a whole frame has arrived and
consumes the bytes it used; `decode_all` yields every complete frame in a
buffer. An unknown type byte raises `UnknownMessageType` and an oversized
payload `PayloadTooLarge`. Session id 0 (`SessionId.CONTROL`) is reserved
for control messages.

The messages are in `kterminus.message`: `SessionCreate`, `SessionReady`,
`Data`, `Resize`, `SessionClose`, `Heartbeat`, `HeartbeatAck`, `Register`,
`RegisterAck` and `ErrorMessage`. `encode_message` and `decode_message`
convert a single message to and from its payload bytes.

## Using the server from Python

    import queue, threading
    from kterminus.config import OrchestratorConfig
    from kterminus.auth import AuthorizedKeys
    from kterminus.listener import SshServer, load_or_generate_host_key
    from kterminus.state import OrchestratorState

    config = OrchestratorConfig()
    state = OrchestratorState.with_auth(config, AuthorizedKeys.load_from_files(config.auth_keys))
    events = queue.Queue()
    cancel = threading.Event()
    server = SshServer(load_or_generate_host_key(config.host_key_path), state, cancel, events)
    server.run("127.0.0.1:2222")   # blocks until cancel is set

The server puts connection events from `kterminus.handler`
(`MachineConnected`, `MachineDisconnected`, `SessionCreated`,
`SessionClosed`, `SessionData`) on the queue;
`kterminus.cli.handle_connection_event(state, event)` applies one of them to
the state's connection pool and session manager. A `Register` frame is
answered with an accepting `RegisterAck` on the first open channel.

## What it does not do

- It does not create a configuration directory, generate or store keys, or
  write a first-run `config.toml`; prepare the host key and `authorized_keys`
  yourself (for example with `ssh-keygen`).
- A generated host key is not saved, so agents will see a different host key
  after each restart unless `host_key_path` points to an existing key.
- There is no IPC endpoint for clients: `ipc_socket_path()` only computes a
  path. Session data received from agents is logged, not forwarded anywhere.
- `HealthMonitor` only calls a callback on a timer; the daemon does not send
  heartbeats or drop silent connections.
- `kterminus.traits` defines abstract interfaces only; there is no agent here.