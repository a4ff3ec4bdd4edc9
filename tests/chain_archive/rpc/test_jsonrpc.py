"""Tests for the JSON-RPC node client."""

from __future__ import annotations

import asyncio
import base64
import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from chain_archive.rpc import (
    JsonRpcNodeClient,
    NodeRpcError,
    NodeTransportError,
    read_cookie_file,
)
from tests.chain_archive.helpers import make_hash


class FakeRpcNode:
    """Answers JSON-RPC requests from a height-to-hash map."""

    def __init__(self, chain: dict[int, str], blocks: dict[str, str]) -> None:
        """Serve ``chain`` heights and ``blocks`` hex payloads."""
        self.chain = chain
        self.blocks = blocks
        self.requests: list[dict[str, Any]] = []
        self.auth_headers: list[str | None] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Dispatch one JSON-RPC request."""
        payload = json.loads(request.content)
        self.requests.append(payload)
        self.auth_headers.append(request.headers.get("authorization"))
        method, params = payload["method"], payload["params"]

        if method == "getblockhash":
            height = params[0]
            if height not in self.chain:
                return self._error(payload, -8, "Block height out of range")
            return self._result(payload, self.chain[height])
        if method == "getblock":
            if params[0] not in self.blocks:
                return self._error(payload, -5, "Block not found")
            return self._result(payload, self.blocks[params[0]])
        if method == "getbestblockhash":
            return self._result(payload, self.chain[max(self.chain)])
        return self._error(payload, -32601, "Method not found")

    @staticmethod
    def _result(payload: dict[str, Any], result: Any) -> httpx.Response:
        return httpx.Response(200, json={"result": result, "error": None, "id": payload["id"]})

    @staticmethod
    def _error(payload: dict[str, Any], code: int, message: str) -> httpx.Response:
        return httpx.Response(
            500,
            json={"result": None, "error": {"code": code, "message": message}, "id": payload["id"]},
        )


@pytest.fixture
def rpc_node() -> FakeRpcNode:
    """Node with blocks at heights 0 and 1."""
    return FakeRpcNode(
        chain={0: make_hash(0), 1: make_hash(1)},
        blocks={make_hash(0): "00ff10", make_hash(1): "01"},
    )


def basic_auth(user: str, password: str) -> str:
    """Expected Authorization header for basic auth."""
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return f"Basic {token}"


def make_client(handler: Any, **kwargs: Any) -> JsonRpcNodeClient:
    """Client whose HTTP traffic is answered by ``handler``."""
    return JsonRpcNodeClient(
        url="http://node.test:8332", transport=httpx.MockTransport(handler), **kwargs
    )


class TestNodeQueries:
    """Tests for the three node questions."""

    def test_block_hash_at(self, rpc_node: FakeRpcNode) -> None:
        """getblockhash returns the hash at a produced height."""
        client = make_client(rpc_node.handle)

        assert asyncio.run(client.block_hash_at(1)) == make_hash(1)
        assert rpc_node.requests[0]["method"] == "getblockhash"
        assert rpc_node.requests[0]["params"] == [1]

    def test_out_of_range_height_is_none(self, rpc_node: FakeRpcNode) -> None:
        """Error code -8 means the height has not been produced yet."""
        client = make_client(rpc_node.handle)

        assert asyncio.run(client.block_hash_at(2)) is None

    def test_block_payload_decodes_hex(self, rpc_node: FakeRpcNode) -> None:
        """getblock with verbosity 0 returns the raw block as hex."""
        client = make_client(rpc_node.handle)

        payload = asyncio.run(client.block_payload(make_hash(0)))

        assert payload == b"\x00\xff\x10"
        assert rpc_node.requests[0]["params"] == [make_hash(0), 0]

    def test_current_tip_hash(self, rpc_node: FakeRpcNode) -> None:
        """getbestblockhash returns the best block hash."""
        client = make_client(rpc_node.handle)

        assert asyncio.run(client.current_tip_hash()) == make_hash(1)

    def test_request_ids_increase(self, rpc_node: FakeRpcNode) -> None:
        """Every request carries a fresh id."""
        client = make_client(rpc_node.handle)

        async def run_test() -> None:
            await client.block_hash_at(0)
            await client.block_hash_at(1)
            await client.close()

        asyncio.run(run_test())

        assert [r["id"] for r in rpc_node.requests] == [0, 1]


class TestErrors:
    """Tests for error mapping."""

    def test_other_rpc_error_raises(self, rpc_node: FakeRpcNode) -> None:
        """Errors other than -8 carry the node's code."""
        client = make_client(rpc_node.handle)

        with pytest.raises(NodeRpcError) as exc_info:
            asyncio.run(client.block_payload(make_hash(9)))

        assert exc_info.value.code == -5
        assert exc_info.value.method == "getblock"

    def test_out_of_range_only_applies_to_getblockhash(self) -> None:
        """Error code -8 from other methods is a failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"result": None, "error": {"code": -8, "message": "x"}})

        client = make_client(handler)

        with pytest.raises(NodeRpcError):
            asyncio.run(client.current_tip_hash())

    def test_empty_block_data_is_an_error(self) -> None:
        """An empty payload is never treated as a block."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": "", "error": None, "id": 0})

        client = make_client(handler)

        with pytest.raises(NodeRpcError):
            asyncio.run(client.block_payload(make_hash(0)))

    def test_malformed_hash_is_an_error(self) -> None:
        """A result that is not a block hash is rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": "not-a-hash", "error": None, "id": 0})

        client = make_client(handler)

        with pytest.raises(NodeRpcError):
            asyncio.run(client.block_hash_at(0))

    def test_http_error_without_body(self) -> None:
        """A failing status without a JSON body is a transport failure."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="Unauthorized")

        client = make_client(handler)

        with pytest.raises(NodeTransportError, match="401"):
            asyncio.run(client.block_hash_at(0))

    def test_connection_failure(self) -> None:
        """Network errors become transport failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(NodeTransportError):
            asyncio.run(client.current_tip_hash())

    def test_missing_result(self) -> None:
        """A body without result or error is malformed."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": 0})

        client = make_client(handler)

        with pytest.raises(NodeRpcError, match="malformed"):
            asyncio.run(client.current_tip_hash())


class TestAuthentication:
    """Tests for RPC credentials."""

    def test_static_credentials(self, rpc_node: FakeRpcNode) -> None:
        """User and password are sent as basic auth."""
        client = make_client(rpc_node.handle, auth=("alice", "secret"))

        asyncio.run(client.block_hash_at(0))

        assert rpc_node.auth_headers[0] == basic_auth("alice", "secret")

    def test_cookie_file_preferred(self, rpc_node: FakeRpcNode, tmp_path: Path) -> None:
        """The cookie file wins over static credentials."""
        cookie = tmp_path / ".cookie"
        cookie.write_text("__cookie__:abc123\n")
        client = make_client(rpc_node.handle, auth=("alice", "secret"), cookie_file=cookie)

        asyncio.run(client.block_hash_at(0))

        assert rpc_node.auth_headers[0] == basic_auth("__cookie__", "abc123")

    def test_unreadable_cookie_is_transport_error(
        self, rpc_node: FakeRpcNode, tmp_path: Path
    ) -> None:
        """A missing cookie file fails the call like an unreachable node."""
        client = make_client(rpc_node.handle, cookie_file=tmp_path / "missing")

        with pytest.raises(NodeTransportError, match="cookie"):
            asyncio.run(client.block_hash_at(0))

    def test_read_cookie_file(self, tmp_path: Path) -> None:
        """Cookies hold user:password on a single line."""
        cookie = tmp_path / ".cookie"
        cookie.write_text("__cookie__:pa:ss")

        assert read_cookie_file(cookie) == ("__cookie__", "pa:ss")

    def test_malformed_cookie_file(self, tmp_path: Path) -> None:
        """A cookie without a separator is rejected."""
        cookie = tmp_path / ".cookie"
        cookie.write_text("nocolon")

        with pytest.raises(ValueError):
            read_cookie_file(cookie)
