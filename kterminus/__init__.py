"""Wire protocol, configuration and SSH orchestrator daemon for terminal sessions over reverse tunnels."""

__version__ = "0.1.0"