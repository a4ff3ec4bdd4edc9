"""
Polling trigger source.

Asks the node for its best-block hash on a fixed interval and triggers a
cycle only when the hash differs from the last one observed. Works with any
node client and needs no extra node configuration.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from chain_archive.rpc import NodeClientError

from .source import Trigger, TriggerReason

if TYPE_CHECKING:
    from chain_archive.rpc import NodeClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL: Final = 60.0
"""Seconds between best-block hash queries."""


@dataclass(slots=True)
class PollingTrigger:
    """
    Triggers when the node's best-block hash changes.

    The hash compared against is the one observed before the previous
    trigger was emitted. A cycle that fails is therefore retried at the next
    tip change, not on every tick.
    """

    node: NodeClient
    """Node queried for the current tip."""

    interval: float = DEFAULT_POLL_INTERVAL
    """Seconds between queries."""

    _stopped: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    """Set when the stream should end."""

    _last_tip: str | None = field(default=None, repr=False)
    """Last tip hash observed."""

    @property
    def last_tip(self) -> str | None:
        """Last tip hash observed, if any."""
        return self._last_tip

    async def events(self) -> AsyncIterator[Trigger]:
        """Emit a startup trigger, then one trigger per observed tip change."""
        if self._stopped.is_set():
            return
        yield Trigger(TriggerReason.STARTUP)

        # Read after the startup cycle finished.
        #
        # Blocks produced during the catch-up cycle were already fetched by it
        # or will show up as a tip change on the next tick.
        self._last_tip = await self._read_tip()
        logger.info("Polling for best block hash every %ss. Press Ctrl-C to stop.", self.interval)

        while not await self._sleep():
            current = await self._read_tip()
            if current is None:
                continue
            if current == self._last_tip:
                logger.debug("No tip change.")
                continue

            logger.debug("Chain tip changed: %s => %s => resyncing...", self._last_tip, current)
            self._last_tip = current
            yield Trigger(TriggerReason.TIP_CHANGED, tip_hash=current)

    def stop(self) -> None:
        """End the stream, interrupting the current sleep."""
        self._stopped.set()

    async def _sleep(self) -> bool:
        """
        Wait one interval.

        Returns:
            True if stopped during the wait.
        """
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
        except TimeoutError:
            return False
        return True

    async def _read_tip(self) -> str | None:
        """Query the tip, logging and swallowing node failures until the next tick."""
        try:
            return await self.node.current_tip_hash()
        except NodeClientError as exc:
            logger.warning("Cannot read best block hash: %s", exc)
            return None
