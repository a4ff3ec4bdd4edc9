"""
Node clients.

The sync engine sees the node only through the :class:`NodeClient` protocol.
Two implementations are provided: HTTP JSON-RPC and the node's CLI tool.
"""

from .cli import DEFAULT_CLI_COMMAND, CliNodeClient, parse_cli_command
from .client import NodeClient, decode_block_hex, parse_block_hash
from .errors import RPC_INVALID_PARAMETER, NodeClientError, NodeRpcError, NodeTransportError
from .jsonrpc import DEFAULT_RPC_URL, JsonRpcNodeClient, read_cookie_file

__all__ = [
    "CliNodeClient",
    "DEFAULT_CLI_COMMAND",
    "DEFAULT_RPC_URL",
    "JsonRpcNodeClient",
    "NodeClient",
    "NodeClientError",
    "NodeRpcError",
    "NodeTransportError",
    "RPC_INVALID_PARAMETER",
    "decode_block_hex",
    "parse_block_hash",
    "parse_cli_command",
    "read_cookie_file",
]
