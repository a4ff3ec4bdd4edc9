"""Reusable type definitions for the chain archiver."""

from .base import StrictBaseModel
from .block import BLOCK_HASH_LENGTH, Block, BlockHash, ChainTip, Height, is_block_hash

__all__ = [
    "BLOCK_HASH_LENGTH",
    "Block",
    "BlockHash",
    "ChainTip",
    "Height",
    "StrictBaseModel",
    "is_block_hash",
]
