"""
Change detection: when to run a sync cycle.

Two interchangeable sources, selected by configuration:

- PollingTrigger: compares the node's best-block hash on a fixed interval
- SubscriptionTrigger: reacts to ZeroMQ ``hashblock`` notifications
"""

from .polling import DEFAULT_POLL_INTERVAL, PollingTrigger
from .source import Trigger, TriggerReason, TriggerSource
from .subscription import (
    DEFAULT_TOPIC,
    DEFAULT_ZMQ_ENDPOINT,
    SubscriptionTrigger,
    notification_hash,
)

__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_TOPIC",
    "DEFAULT_ZMQ_ENDPOINT",
    "PollingTrigger",
    "SubscriptionTrigger",
    "Trigger",
    "TriggerReason",
    "TriggerSource",
    "notification_hash",
]
