"""
JSON-RPC node client over HTTP.

Talks to a Bitcoin-style node (``bitcoind``, ``bitcoin-cash-node``, ...)
through its JSON-RPC interface.

Error Mapping
-------------
The node reports RPC errors in the response body, usually with HTTP status
500. The body is therefore inspected before the status code:

- ``error.code == -8`` on ``getblockhash``: height not produced yet (None)
- any other ``error``: NodeRpcError
- no JSON body and a failing status: NodeTransportError
- connection failures and timeouts: NodeTransportError
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import httpx

from .client import decode_block_hex, parse_block_hash
from .errors import RPC_INVALID_PARAMETER, NodeRpcError, NodeTransportError

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL: Final = "http://127.0.0.1:8332"
"""Default mainnet RPC endpoint of a local node."""

DEFAULT_TIMEOUT: Final = 30.0
"""HTTP request timeout in seconds. Large blocks may take time to transfer."""

RAW_BLOCK_VERBOSITY: Final = 0
"""``getblock`` verbosity that returns the serialized block as hex."""


def read_cookie_file(path: Path) -> tuple[str, str]:
    """
    Read ``user:password`` credentials from a node's ``.cookie`` file.

    Raises:
        ValueError: If the file does not contain a ``user:password`` pair.
    """
    content = path.read_text(encoding="utf-8").strip()
    user, sep, password = content.partition(":")
    if not sep:
        raise ValueError(f"Malformed RPC cookie file {path}")
    return user, password


@dataclass(slots=True)
class JsonRpcNodeClient:
    """
    NodeClient backed by the node's HTTP JSON-RPC interface.

    Credentials come from ``auth`` or, when set, from ``cookie_file``. The
    cookie is re-read on every connection because the node rewrites it on
    restart.
    """

    url: str = DEFAULT_RPC_URL
    """RPC endpoint URL."""

    auth: tuple[str, str] | None = None
    """Static ``(user, password)`` credentials."""

    cookie_file: Path | None = None
    """Path to the node's ``.cookie`` file, preferred over ``auth``."""

    timeout: float = DEFAULT_TIMEOUT
    """Request timeout in seconds."""

    transport: httpx.AsyncBaseTransport | None = None
    """Optional transport override (used by tests)."""

    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)
    """Lazily created HTTP client."""

    _ids: itertools.count[int] = field(default_factory=itertools.count, init=False, repr=False)
    """Request id sequence."""

    async def block_hash_at(self, height: int) -> str | None:
        """Hash of the block at ``height``, or None if not produced yet."""
        try:
            result = await self.call("getblockhash", [height])
        except NodeRpcError as exc:
            if exc.code == RPC_INVALID_PARAMETER:
                return None
            raise
        return parse_block_hash("getblockhash", result)

    async def block_payload(self, block_hash: str) -> bytes:
        """Raw bytes of the block with ``block_hash``."""
        result = await self.call("getblock", [block_hash, RAW_BLOCK_VERBOSITY])
        return decode_block_hex(block_hash, result)

    async def current_tip_hash(self) -> str:
        """Hash of the node's best block."""
        result = await self.call("getbestblockhash")
        return parse_block_hash("getbestblockhash", result)

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Perform one JSON-RPC request and return its ``result``.

        Raises:
            NodeRpcError: If the node reports an error or answers malformed JSON.
            NodeTransportError: If the node cannot be reached.
        """
        payload = {
            "jsonrpc": "1.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC %s %s", method, payload["params"])

        client = self._get_client()
        try:
            response = await client.post(self.url, json=payload, auth=self._auth())
        except httpx.RequestError as exc:
            raise NodeTransportError(f"Network error calling {method} at {self.url}: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            if isinstance(error, dict):
                raise NodeRpcError(method, str(error.get("message", "")), code=error.get("code"))
            raise NodeRpcError(method, str(error))

        if response.is_error:
            raise NodeTransportError(
                f"HTTP error {response.status_code} calling {method}: {response.text[:200]}"
            )

        if not isinstance(body, dict) or "result" not in body:
            raise NodeRpcError(method, f"malformed response: {response.text[:200]}")

        return body["result"]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        return self._client

    def _auth(self) -> httpx.BasicAuth | None:
        if self.cookie_file is not None:
            try:
                return httpx.BasicAuth(*read_cookie_file(self.cookie_file))
            except (OSError, ValueError) as exc:
                raise NodeTransportError(f"Cannot read RPC cookie: {exc}") from exc
        if self.auth is not None:
            return httpx.BasicAuth(*self.auth)
        return None
