"""
Sync engine for the chain archiver.

What Is Sync?
-------------
The archive trails a live node. Sync brings it back in line: every height
the node knows about gets exactly one file carrying the node's current hash
for that height.

How It Works
------------
- Resume a few heights below the archive tip (the reorg window)
- Walk upward, one height per round-trip, until the node runs out
- Replace any file whose hash the node no longer reports
- Commit the result
"""

from __future__ import annotations

__all__ = [
    "CycleReport",
    "SyncEngine",
    "REORG_WINDOW",
]

from .config import REORG_WINDOW
from .engine import CycleReport, SyncEngine
