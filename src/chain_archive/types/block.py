"""
Block and chain tip models.

A block is identified by the pair (height, hash), never by height alone.
Before a reorganization a height may have carried a different hash, so any
code that keys on height must also compare the hash.
"""

from __future__ import annotations

from typing import Annotated, Final

from pydantic import Field

from .base import StrictBaseModel

BLOCK_HASH_LENGTH: Final = 64
"""Length of a block hash in hex characters (32 bytes)."""

Height = Annotated[int, Field(ge=0)]
"""Ordinal position of a block in the chain, starting at 0."""

BlockHash = Annotated[
    str,
    Field(
        min_length=BLOCK_HASH_LENGTH,
        max_length=BLOCK_HASH_LENGTH,
        pattern=r"^[0-9a-f]+$",
        description="A 32-byte block hash as lowercase hex.",
    ),
]
"""Block hash in the byte order the node reports it (lowercase hex)."""


def is_block_hash(value: str) -> bool:
    """Check whether a string has the shape of a block hash."""
    if len(value) != BLOCK_HASH_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)


class ChainTip(StrictBaseModel):
    """
    A position in the chain: the highest block reached by a sync.

    The committer records it in the commit message, and the service reports it.
    """

    height: Height
    """Height of the block."""

    hash: BlockHash
    """Hash of the block at that height."""

    def __str__(self) -> str:
        return f"{self.height} ({self.hash})"


class Block(StrictBaseModel):
    """
    A raw block fetched from the node.

    Immutable once fetched. The payload is the serialized block exactly as
    the node returns it; the archiver never interprets it.
    """

    height: Height
    """Height of the block."""

    hash: BlockHash
    """Hash of the block."""

    payload: bytes
    """Serialized block bytes."""

    @property
    def tip(self) -> ChainTip:
        """The (height, hash) identity of this block."""
        return ChainTip(height=self.height, hash=self.hash)
