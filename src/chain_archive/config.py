"""
Archiver configuration.

Settings come from three layers, later ones winning:

1. Built-in defaults (RPC defaults may be seeded from the environment)
2. An optional YAML file
3. Command-line flags

The YAML file uses the field names below, in any letter case::

    REPO_PATH: /storage/bch-mainnet
    NODE: rpc
    RPC_URL: http://127.0.0.1:8332
    RPC_COOKIE_FILE: /home/node/.bitcoin/.cookie
    TRIGGER: subscribe
    ZMQ_ENDPOINT: tcp://127.0.0.1:28332
    PUSH: false
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Final, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chain_archive.rpc import DEFAULT_CLI_COMMAND, DEFAULT_RPC_URL
from chain_archive.storage import DEFAULT_EXTENSION
from chain_archive.sync import REORG_WINDOW
from chain_archive.triggers import DEFAULT_POLL_INTERVAL, DEFAULT_TOPIC, DEFAULT_ZMQ_ENDPOINT

ENV_PREFIX: Final = "CHAIN_ARCHIVE_"
"""Prefix of environment variables read by the archiver."""

ENV_RPC_URL = os.environ.get(f"{ENV_PREFIX}RPC_URL", DEFAULT_RPC_URL)
"""Default RPC URL, overridable through ``CHAIN_ARCHIVE_RPC_URL``."""

ENV_RPC_USER = os.environ.get(f"{ENV_PREFIX}RPC_USER")
"""Default RPC user, from ``CHAIN_ARCHIVE_RPC_USER``."""

ENV_RPC_PASSWORD = os.environ.get(f"{ENV_PREFIX}RPC_PASSWORD")
"""Default RPC password, from ``CHAIN_ARCHIVE_RPC_PASSWORD``."""


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or is not a mapping."""


class ArchiveConfig(BaseModel):
    """Complete, validated archiver settings. Immutable once built."""

    model_config = ConfigDict(extra="forbid", frozen=True, validate_default=True)

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    repo_path: Path
    """Repository holding the archive. Created and initialised if missing."""

    blocks_dir: str = Field(default="blocks", min_length=1)
    """Archive root, relative to the repository."""

    extension: str = Field(default=DEFAULT_EXTENSION, pattern=r"^[A-Za-z0-9]+$")
    """File extension of block entries (tracked by Git LFS)."""

    reorg_window: int = Field(default=REORG_WINDOW, ge=0)
    """Heights below the archive tip re-walked on every cycle."""

    # -------------------------------------------------------------------------
    # Node
    # -------------------------------------------------------------------------

    node: Literal["rpc", "cli"] = "rpc"
    """How to reach the node: HTTP JSON-RPC or its command-line tool."""

    rpc_url: str = ENV_RPC_URL
    """JSON-RPC endpoint."""

    rpc_user: str | None = ENV_RPC_USER
    """JSON-RPC user."""

    rpc_password: str | None = ENV_RPC_PASSWORD
    """JSON-RPC password."""

    rpc_cookie_file: Path | None = None
    """Node ``.cookie`` file, preferred over user and password."""

    rpc_timeout: float = Field(default=30.0, gt=0)
    """JSON-RPC request timeout in seconds."""

    cli_command: str = DEFAULT_CLI_COMMAND
    """Command prefix for the CLI node client, e.g. ``bitcoin-cli -datadir=/x``."""

    # -------------------------------------------------------------------------
    # Change detection
    # -------------------------------------------------------------------------

    trigger: Literal["poll", "subscribe"] = "poll"
    """Poll the best block hash, or subscribe to ZeroMQ notifications."""

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    """Seconds between best block hash queries."""

    zmq_endpoint: str = DEFAULT_ZMQ_ENDPOINT
    """ZeroMQ publisher endpoint of the node."""

    zmq_topic: str = DEFAULT_TOPIC
    """ZeroMQ topic carrying new block hashes."""

    # -------------------------------------------------------------------------
    # Version control
    # -------------------------------------------------------------------------

    commit: bool = True
    """Commit the archive after every cycle that reached a tip."""

    push: bool = True
    """Push after committing."""

    # -------------------------------------------------------------------------
    # API
    # -------------------------------------------------------------------------

    api_enabled: bool = False
    """Serve /health, /status and /metrics over HTTP."""

    api_host: str = "127.0.0.1"
    """API bind address."""

    api_port: int = Field(default=9380, ge=1, le=65535)
    """API port."""

    @property
    def archive_root(self) -> Path:
        """Directory holding the bucketed block files."""
        return self.repo_path / self.blocks_dir

    @property
    def rpc_auth(self) -> tuple[str, str] | None:
        """Static RPC credentials, when both user and password are set."""
        if self.rpc_user is None or self.rpc_password is None:
            return None
        return self.rpc_user, self.rpc_password

    @classmethod
    def from_sources(
        cls,
        config_file: Path | None = None,
        **overrides: Any,
    ) -> ArchiveConfig:
        """
        Build a configuration from an optional YAML file plus overrides.

        Overrides whose value is None are ignored, so unset CLI flags do not
        mask file values.

        Raises:
            ConfigError: If the file cannot be read or is not a mapping.
            ValidationError: If the merged settings are invalid.
        """
        values: dict[str, Any] = {}
        if config_file is not None:
            values.update(load_yaml_settings(config_file))
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)


def load_yaml_settings(path: Path) -> dict[str, Any]:
    """
    Read settings from a YAML file, normalising keys to lowercase.

    Raises:
        ConfigError: If the file cannot be read, parsed, or is not a mapping.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return {str(key).lower(): value for key, value in data.items()}


__all__ = [
    "ArchiveConfig",
    "ConfigError",
    "ValidationError",
    "load_yaml_settings",
]
