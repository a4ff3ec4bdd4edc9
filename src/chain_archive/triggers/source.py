"""
Trigger source protocol.

A trigger says "the chain tip may have changed": time to run a sync cycle.
Whether it comes from polling the node or from a push notification is a
configuration choice; the archive service only sees this protocol.

Contract
--------
- The first trigger is emitted unconditionally at startup (initial catch-up).
- The next trigger is produced only after the consumer asks for it, so
  triggers arriving during a cycle wait in the source instead of starting a
  concurrent cycle.
- ``stop()`` ends the stream promptly, even while idle-waiting.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol


class TriggerReason(Enum):
    """Why a trigger fired."""

    STARTUP = auto()
    """Initial catch-up cycle, emitted once before steady-state mode."""

    TIP_CHANGED = auto()
    """Polling observed a best-block hash different from the last one."""

    NOTIFICATION = auto()
    """A push notification was delivered. Not de-duplicated by content."""


@dataclass(frozen=True, slots=True)
class Trigger:
    """A request to run one sync cycle."""

    reason: TriggerReason
    """What caused the trigger."""

    tip_hash: str | None = None
    """Tip hash reported with the trigger, when the source knows it."""


class TriggerSource(Protocol):
    """Protocol for anything that signals possible chain tip changes."""

    def events(self) -> AsyncIterator[Trigger]:
        """
        Stream of triggers, starting with a STARTUP trigger.

        The stream ends after ``stop()`` is called.
        """
        ...

    def stop(self) -> None:
        """Request the stream to end."""
        ...
