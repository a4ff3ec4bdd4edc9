"""
Push-notification trigger source over ZeroMQ.

Bitcoin-style nodes publish a message on the ``hashblock`` topic every time
the best block changes, when started with::

    bitcoind -zmqpubhashblock=tcp://127.0.0.1:28332

Each message is a multipart frame set::

    [topic, 32-byte block hash, 4-byte little-endian sequence number]

Every delivered notification is a trigger. Notifications are not
de-duplicated: a burst of blocks causes a burst of cycles, each of which is a
cheap no-op when nothing changed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Final

import zmq
import zmq.asyncio

from .source import Trigger, TriggerReason

logger = logging.getLogger(__name__)

DEFAULT_ZMQ_ENDPOINT: Final = "tcp://127.0.0.1:28332"
"""Default ``-zmqpubhashblock`` endpoint of a local node."""

DEFAULT_TOPIC: Final = "hashblock"
"""Topic carrying new best-block hashes."""

_HASH_FRAME_LENGTH: Final = 32

_RECV_POLL_MS: Final = 1000
"""Receive poll timeout. Bounds how long stop() takes to end the stream."""


def notification_hash(frames: list[bytes]) -> str | None:
    """Block hash carried by a ``hashblock`` notification, if present."""
    if len(frames) < 2 or len(frames[1]) != _HASH_FRAME_LENGTH:
        return None
    return frames[1].hex()


@dataclass(slots=True)
class SubscriptionTrigger:
    """Triggers on every notification published on a ZeroMQ topic."""

    endpoint: str = DEFAULT_ZMQ_ENDPOINT
    """Publisher endpoint to connect to."""

    topic: str = DEFAULT_TOPIC
    """Topic to subscribe to."""

    context: zmq.asyncio.Context | None = None
    """ZeroMQ context. Defaults to the shared process-wide instance."""

    _stopped: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    """Set when the stream should end."""

    async def events(self) -> AsyncIterator[Trigger]:
        """Emit a startup trigger, then one trigger per delivered notification."""
        if self._stopped.is_set():
            return

        context = self.context or zmq.asyncio.Context.instance()
        socket = context.socket(zmq.SUB)

        # Subscribe before the startup trigger.
        #
        # Notifications published during the catch-up cycle queue in the
        # socket and trigger follow-up cycles instead of being lost.
        socket.setsockopt_string(zmq.SUBSCRIBE, self.topic)
        socket.connect(self.endpoint)
        logger.info("Subscribed to %s on %s", self.topic, self.endpoint)

        try:
            yield Trigger(TriggerReason.STARTUP)

            while not self._stopped.is_set():
                if not await socket.poll(timeout=_RECV_POLL_MS):
                    continue
                frames = await socket.recv_multipart()
                tip_hash = notification_hash(frames)
                logger.debug("Notification on %s: %s", self.topic, tip_hash)
                yield Trigger(TriggerReason.NOTIFICATION, tip_hash=tip_hash)
        finally:
            socket.close(linger=0)

    def stop(self) -> None:
        """End the stream at the next receive poll."""
        self._stopped.set()
