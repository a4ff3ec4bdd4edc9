"""
Storage module for the block archive.

Blocks are stored as one file per (height, hash) in a two-level bucketed
directory tree, ready to be committed to version control.
"""

from .block_store import BlockStore, ReconcileOutcome, ReconcileResult
from .layout import (
    DEFAULT_EXTENSION,
    SUB_BUCKET_SIZE,
    TOP_BUCKET_SIZE,
    entry_filename,
    entry_relpath,
    parse_entry_filename,
    parse_sub_bucket_name,
    parse_top_bucket_name,
    sub_bucket,
    sub_bucket_name,
    top_bucket,
    top_bucket_name,
)

__all__ = [
    "BlockStore",
    "ReconcileOutcome",
    "ReconcileResult",
    "DEFAULT_EXTENSION",
    "SUB_BUCKET_SIZE",
    "TOP_BUCKET_SIZE",
    "entry_filename",
    "entry_relpath",
    "parse_entry_filename",
    "parse_sub_bucket_name",
    "parse_top_bucket_name",
    "sub_bucket",
    "sub_bucket_name",
    "top_bucket",
    "top_bucket_name",
]
