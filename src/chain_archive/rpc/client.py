"""
Node client protocol.

The archiver needs exactly three questions answered by a node:

- What is the hash of the block at height N? (or: N is not produced yet)
- What are the raw bytes of the block with hash H?
- What is the hash of the current best block?

Range Exhaustion
----------------
The sync loop walks heights upward until the node reports that a height does
not exist yet. That report is an explicit, typed signal: ``block_hash_at``
returns None, and implementations derive it from the node's error code. An
empty or otherwise malformed answer is an error, never "end of chain".
"""

from __future__ import annotations

from typing import Protocol

from chain_archive.types import is_block_hash

from .errors import NodeRpcError


class NodeClient(Protocol):
    """
    Protocol for the node's command surface.

    Implementers should:
    - Return None from ``block_hash_at`` only for "height not yet produced"
    - Raise NodeClientError subclasses for every other failure
    - Not retry internally; the next sync cycle is the retry
    """

    async def block_hash_at(self, height: int) -> str | None:
        """
        Hash of the block at ``height`` on the node's best chain.

        Args:
            height: Block height, starting at 0.

        Returns:
            The block hash, or None if the node has no block at that height yet.
        """
        ...

    async def block_payload(self, block_hash: str) -> bytes:
        """
        Serialized bytes of the block with ``block_hash``.

        Args:
            block_hash: Hash returned by ``block_hash_at``.

        Returns:
            The raw block.
        """
        ...

    async def current_tip_hash(self) -> str:
        """Hash of the node's current best block."""
        ...

    async def close(self) -> None:
        """Release connections held by the client."""
        ...


def parse_block_hash(method: str, value: object) -> str:
    """
    Validate a block hash returned by the node.

    Raises:
        NodeRpcError: If the value is not a 64-character lowercase hex string.
    """
    if not isinstance(value, str) or not is_block_hash(value.strip()):
        raise NodeRpcError(method, f"malformed block hash {value!r}")
    return value.strip()


def decode_block_hex(block_hash: str, value: object) -> bytes:
    """
    Decode the hex serialization returned by ``getblock <hash> 0``.

    Raises:
        NodeRpcError: If the value is empty or not valid hex.
    """
    if not isinstance(value, str) or not value.strip():
        raise NodeRpcError("getblock", f"empty block data for {block_hash}")
    try:
        return bytes.fromhex(value.strip())
    except ValueError as exc:
        raise NodeRpcError("getblock", f"invalid hex for {block_hash}: {exc}") from exc
