"""
Node client driving the node's command-line tool.

Useful when the archiver runs next to the node and RPC credentials are
already configured for ``bitcoin-cli`` (``-datadir``, ``-conf``, ``-rpcwallet``,
...). The command prefix is supplied as one string, for example
``"bitcoin-cli -datadir=/my/data"``.

The CLI prints RPC errors on stderr as::

    error code: -8
    error message:
    Block height out of range

The numeric code is parsed; the message text is only carried into the error.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from typing import Final

from chain_archive.commands import CommandResult, CommandRunner, SubprocessRunner

from .client import decode_block_hex, parse_block_hash
from .errors import RPC_INVALID_PARAMETER, NodeRpcError

DEFAULT_CLI_COMMAND: Final = "bitcoin-cli"
"""Default node command-line tool."""

_ERROR_CODE_RE: Final = re.compile(r"error code:\s*(-?\d+)")


def parse_cli_command(command: str) -> tuple[str, ...]:
    """
    Split a command prefix into program and default arguments.

    An empty string falls back to the default tool.
    """
    parts = tuple(shlex.split(command))
    return parts or (DEFAULT_CLI_COMMAND,)


def error_code(result: CommandResult) -> int | None:
    """Extract the RPC error code the CLI printed, if any."""
    match = _ERROR_CODE_RE.search(result.stderr) or _ERROR_CODE_RE.search(result.stdout)
    if match is None:
        return None
    return int(match.group(1))


@dataclass(slots=True)
class CliNodeClient:
    """NodeClient that shells out to the node's command-line tool."""

    command: tuple[str, ...] = (DEFAULT_CLI_COMMAND,)
    """Program and default arguments prepended to every call."""

    runner: CommandRunner = field(default_factory=SubprocessRunner)
    """Executes the command."""

    @classmethod
    def from_command_string(
        cls, command: str, runner: CommandRunner | None = None
    ) -> CliNodeClient:
        """Build a client from a command prefix such as ``"bitcoin-cli -testnet"``."""
        return cls(command=parse_cli_command(command), runner=runner or SubprocessRunner())

    async def block_hash_at(self, height: int) -> str | None:
        """Hash of the block at ``height``, or None if not produced yet."""
        result = await self.runner.run([*self.command, "getblockhash", str(height)])
        if not result.ok:
            if error_code(result) == RPC_INVALID_PARAMETER:
                return None
            raise self._error("getblockhash", result)
        return parse_block_hash("getblockhash", result.stdout)

    async def block_payload(self, block_hash: str) -> bytes:
        """Raw bytes of the block with ``block_hash``."""
        result = await self.runner.run([*self.command, "getblock", block_hash, "0"])
        if not result.ok:
            raise self._error("getblock", result)
        return decode_block_hex(block_hash, result.stdout)

    async def current_tip_hash(self) -> str:
        """Hash of the node's best block."""
        result = await self.runner.run([*self.command, "getbestblockhash"])
        if not result.ok:
            raise self._error("getbestblockhash", result)
        return parse_block_hash("getbestblockhash", result.stdout)

    async def close(self) -> None:
        """Nothing to release: every call is its own process."""

    @staticmethod
    def _error(method: str, result: CommandResult) -> NodeRpcError:
        return NodeRpcError(method, result.describe(), code=error_code(result))
