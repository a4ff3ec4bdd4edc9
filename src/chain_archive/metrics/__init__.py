"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking archiver behavior.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    blocks_superseded,
    blocks_written,
    commit_failures,
    cycle_failures,
    cycle_time,
    cycles,
    generate_metrics,
    tip_height,
)

__all__ = [
    "REGISTRY",
    "blocks_superseded",
    "blocks_written",
    "commit_failures",
    "cycle_failures",
    "cycle_time",
    "cycles",
    "generate_metrics",
    "tip_height",
]
