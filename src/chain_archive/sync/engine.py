"""
Sync reconciliation engine.

This is the core of the archiver: it brings the on-disk archive in line with
the node's best chain.

The Core Problem
----------------
The archive must hold exactly one file per height, carrying the hash the node
currently considers canonical. Two things make that harder than "append new
blocks":

1. **Reorganizations**: the node may replace the last few blocks with
   different ones. Files for the old hashes must go.
2. **Interruptions**: a cycle can die halfway (node restart, disk full). The
   next cycle must pick up without a separate recovery step.

How It Works
------------
Every cycle:

1. Find the highest stored height (the tip marker) by scanning the layout
2. Step back ``REORG_WINDOW`` heights: that is the resume height
3. Walk heights upward, one RPC round-trip per height, reconciling each block
4. Stop at the first height the node has not produced yet
5. Hand the last reconciled (height, hash) to the committer

Re-walking the trailing window makes shallow reorgs self-healing: a changed
hash at any height in the window is reconciled like any other block. There is
no separate reorg detection.

Error Policy
------------
"Height not produced yet" ends the walk normally. Any other node or disk
failure propagates out of the cycle. There is no retry inside a cycle; the
next trigger re-runs the whole reconciliation, which is safe because every
step is idempotent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from chain_archive import metrics
from chain_archive.storage import BlockStore, ReconcileOutcome
from chain_archive.types import Block, ChainTip

from .config import REORG_WINDOW

if TYPE_CHECKING:
    from chain_archive.rpc import NodeClient
    from chain_archive.vcs import Committer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleReport:
    """
    What one sync cycle did.

    Provides a snapshot for monitoring and logging.
    """

    start_height: int
    """Height the walk started from."""

    tip: ChainTip | None = None
    """Last reconciled block, or None if the node had nothing at the start height."""

    blocks_written: int = 0
    """Block files written (new heights and reorg replacements)."""

    blocks_unchanged: int = 0
    """Heights whose exact entry was already stored."""

    superseded_removed: int = 0
    """Stale files deleted because the node now reports a different hash."""

    committed: bool | None = None
    """Commit outcome. None when no commit was attempted."""

    duration: float = 0.0
    """Wall-clock duration in seconds."""

    def as_dict(self) -> dict[str, object]:
        """JSON-friendly representation for the status endpoint."""
        return {
            "start_height": self.start_height,
            "tip": None if self.tip is None else {"height": self.tip.height, "hash": self.tip.hash},
            "blocks_written": self.blocks_written,
            "blocks_unchanged": self.blocks_unchanged,
            "superseded_removed": self.superseded_removed,
            "committed": self.committed,
            "duration": round(self.duration, 3),
        }


@dataclass(slots=True)
class SyncEngine:
    """
    Orchestrates fetch-until-tip cycles.

    The engine owns no state beyond the archive directory itself. Every cycle
    derives its starting point from the files on disk, so a crashed or
    aborted cycle leaves nothing to clean up.
    """

    store: BlockStore
    """Block archive on disk."""

    node: NodeClient
    """Source of block hashes and payloads."""

    committer: Committer
    """Snapshots the archive after a cycle that reached a tip."""

    reorg_window: int = field(default=REORG_WINDOW)
    """Heights below the archive tip re-walked on every cycle."""

    _cycle_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    """Lock to prevent concurrent cycles."""

    _last_report: CycleReport | None = field(default=None, repr=False)
    """Report of the last completed cycle."""

    @property
    def last_report(self) -> CycleReport | None:
        """Report of the last cycle that ran to completion."""
        return self._last_report

    @property
    def is_running(self) -> bool:
        """Check if a cycle is in flight."""
        return self._cycle_lock.locked()

    def resume_height(self) -> int:
        """
        Height the next cycle starts from.

        ``max(0, highest stored height - reorg window)``. An empty archive
        starts from height 0.
        """
        highest = self.store.highest_stored_height()
        if highest is None:
            return 0
        return max(0, highest - self.reorg_window)

    async def sync_from(self, start: int) -> ChainTip | None:
        """
        Reconcile heights ``start, start + 1, ...`` until the node runs out.

        Args:
            start: First height to reconcile.

        Returns:
            The last reconciled (height, hash), or None if the node had no
            block at ``start`` (nothing new this cycle).

        Raises:
            NodeClientError: On any node failure other than range exhaustion.
            OSError: On any archive write or delete failure.
        """
        return await self._sync(CycleReport(start_height=max(0, start)))

    async def perform_cycle(self) -> ChainTip | None:
        """
        Run one full reconciliation cycle.

        Computes the resume height, syncs to the node's tip, and commits if a
        tip was reached. This is the unit invoked on every trigger.

        Cycles never overlap: a call made while another cycle is in flight
        waits for it to finish.

        Returns:
            The reached tip, or None if nothing was reconciled.
        """
        async with self._cycle_lock:
            started = time.perf_counter()
            report = CycleReport(start_height=self.resume_height())
            logger.debug("Syncing from height: %d", report.start_height)

            with metrics.cycle_time.time():
                tip = await self._sync(report)

                if tip is None:
                    logger.debug("No new blocks synced.")
                else:
                    logger.info("Sync completed at block %s. Committing...", tip)
                    metrics.tip_height.set(tip.height)
                    report.committed = await self.committer.commit(tip)

            report.duration = time.perf_counter() - started
            self._last_report = report
            metrics.cycles.inc()
            return tip

    async def _sync(self, report: CycleReport) -> ChainTip | None:
        """Walk heights from ``report.start_height``, recording progress in ``report``."""
        height = report.start_height

        while True:
            block_hash = await self.node.block_hash_at(height)

            # The node has not produced this height yet: we are at its tip.
            if block_hash is None:
                logger.debug("Reached tip, last height: %s", report.tip)
                return report.tip

            # Exact entry already on disk.
            #
            # The payload download is skipped. Stray entries for other hashes
            # at this height are still removed, keeping one file per height.
            if self.store.has_entry(height, block_hash):
                superseded = self.store.remove_superseded(height, block_hash)
                report.blocks_unchanged += 1
            else:
                payload = await self.node.block_payload(block_hash)
                result = self.store.reconcile(Block(height=height, hash=block_hash, payload=payload))
                superseded = list(result.superseded)
                if result.outcome is ReconcileOutcome.STORED:
                    report.blocks_written += 1
                    metrics.blocks_written.inc()
                else:
                    report.blocks_unchanged += 1

            if superseded:
                report.superseded_removed += len(superseded)
                metrics.blocks_superseded.inc(len(superseded))

            report.tip = ChainTip(height=height, hash=block_hash)
            height += 1
