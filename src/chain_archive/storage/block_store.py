"""
Filesystem block store.

Persists raw blocks into the bucketed layout described in
:mod:`chain_archive.storage.layout`.

Invariants
----------
- At most one entry exists per height. When a new hash is observed for a
  stored height, the superseded entries are deleted before the new one is
  written.
- Reconciling the exact (height, hash) that is already stored is a no-op.
- The tip marker is never stored. It is recomputed by scanning directories.

The store is not safe against interleaved writers. Callers must serialize
reconciliation (the sync engine runs one cycle at a time).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path

from chain_archive.types import Block, ChainTip

from .layout import (
    DEFAULT_EXTENSION,
    entry_relpath,
    parse_entry_filename,
    parse_sub_bucket_name,
    parse_top_bucket_name,
    sub_bucket_name,
    top_bucket_name,
)

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".tmp"


class ReconcileOutcome(Enum):
    """What reconciling a block did to the archive."""

    STORED = auto()
    """The payload was written (new height, or replaced a superseded hash)."""

    UNCHANGED = auto()
    """The exact (height, hash) was already stored. Nothing was written."""


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of a single reconcile call."""

    outcome: ReconcileOutcome
    """Whether the payload was written."""

    path: Path
    """Location of the (now current) entry."""

    superseded: tuple[Path, ...] = ()
    """Entries removed because they carried a different hash for the same height."""

    @property
    def is_reorg(self) -> bool:
        """True when a different hash had been stored for this height."""
        return bool(self.superseded)


@dataclass(slots=True)
class BlockStore:
    """
    Maps (height, hash) to files under an archive root.

    The archive root is usually ``<repo>/blocks``. Directories are created on
    demand; a missing root is simply an empty archive.
    """

    root: Path
    """Archive root directory."""

    extension: str = field(default=DEFAULT_EXTENSION)
    """File extension of entries, without the dot."""

    def locate(self, height: int, block_hash: str) -> Path:
        """
        Path of the entry for (height, hash).

        Pure function of the bucketing scheme. Never touches the filesystem.
        """
        return self.root / entry_relpath(height, block_hash, self.extension)

    def bucket_dir(self, height: int) -> Path:
        """Directory holding every entry for ``height``."""
        return self.root / top_bucket_name(height) / sub_bucket_name(height)

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def highest_stored_height(self) -> int | None:
        """
        Scan the bucket hierarchy top-down for the greatest stored height.

        Walks the highest top bucket, then its highest sub bucket, then the
        highest file name. A bucket that is missing, empty, or holds only
        foreign files does not end the scan: it falls through to the next
        lower bucket.

        Returns:
            The greatest stored height, or None when the archive is empty.
        """
        for top_dir in self._child_buckets(self.root, parse_top_bucket_name):
            for sub_dir in self._child_buckets(top_dir, parse_sub_bucket_name):
                heights = [tip.height for tip, _ in self._entries_in(sub_dir)]
                if heights:
                    return max(heights)
        return None

    def entries_at(self, height: int) -> list[Path]:
        """Every entry currently stored for ``height``, in name order."""
        directory = self.bucket_dir(height)
        return sorted(path for tip, path in self._entries_in(directory) if tip.height == height)

    def has_entry(self, height: int, block_hash: str) -> bool:
        """Check whether the exact (height, hash) is stored."""
        return self.locate(height, block_hash).is_file()

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def remove_superseded(self, height: int, block_hash: str) -> list[Path]:
        """
        Delete every entry for ``height`` whose hash is not ``block_hash``.

        Each deletion is logged: it means the chain reorganized at this height.

        Returns:
            The deleted paths.
        """
        keep = self.locate(height, block_hash)
        removed: list[Path] = []
        for path in self.entries_at(height):
            if path == keep:
                continue
            path.unlink()
            removed.append(path)
            logger.warning("Removed stale block %s", path.name)
        return removed

    def reconcile(self, block: Block) -> ReconcileResult:
        """
        Make the archive hold exactly ``block`` at its height.

        - Exact entry present: no-op (idempotent).
        - Different hash present: superseded entries deleted, then written.
        - Nothing present: written directly.

        The write goes to a temporary file that is renamed into place, so a
        crash never leaves a truncated entry under its final name.
        """
        dest = self.locate(block.height, block.hash)
        superseded = tuple(self.remove_superseded(block.height, block.hash))

        if dest.is_file():
            return ReconcileResult(ReconcileOutcome.UNCHANGED, dest, superseded)

        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + _TMP_SUFFIX)
        tmp.write_bytes(block.payload)
        os.replace(tmp, dest)

        logger.info("Saved block %d => %s", block.height, dest)
        return ReconcileResult(ReconcileOutcome.STORED, dest, superseded)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _child_buckets(parent: Path, parse: Callable[[str], int | None]) -> list[Path]:
        """Bucket subdirectories of ``parent``, highest bucket first."""
        if not parent.is_dir():
            return []
        buckets: list[tuple[int, Path]] = []
        for child in parent.iterdir():
            start = parse(child.name)
            if start is not None and child.is_dir():
                buckets.append((start, child))
        buckets.sort(reverse=True)
        return [path for _, path in buckets]

    def _entries_in(self, directory: Path) -> Iterator[tuple[ChainTip, Path]]:
        """Parsed (height, hash) and on-disk path of every entry file in ``directory``."""
        if not directory.is_dir():
            return
        for child in directory.iterdir():
            tip = parse_entry_filename(child.name, self.extension)
            if tip is not None and child.is_file():
                yield tip, child
