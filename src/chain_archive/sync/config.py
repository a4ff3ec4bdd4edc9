"""
Sync engine configuration constants.

Operational parameters for reconciliation cycles.
"""

from __future__ import annotations

from typing import Final

REORG_WINDOW: Final[int] = 11
"""
Heights below the archive tip re-walked on every cycle.

A conservative bound on shallow reorganizations. Any reorg within the window
self-heals because the re-walk reconciles each height against the node's
current hash.
"""
