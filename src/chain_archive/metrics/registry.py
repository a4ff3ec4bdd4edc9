"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the archiver.
Exposes metrics in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for archiver metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Archive State
# -----------------------------------------------------------------------------

tip_height = Gauge(
    "chain_archive_tip_height",
    "Highest block height reached by the last successful sync",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Block Reconciliation
# -----------------------------------------------------------------------------

blocks_written = Counter(
    "chain_archive_blocks_written_total",
    "Block files written to the archive",
    registry=REGISTRY,
)

blocks_superseded = Counter(
    "chain_archive_blocks_superseded_total",
    "Stale block files removed after a reorg",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Sync Cycles
# -----------------------------------------------------------------------------

cycles = Counter(
    "chain_archive_cycles_total",
    "Sync cycles completed",
    registry=REGISTRY,
)

cycle_failures = Counter(
    "chain_archive_cycle_failures_total",
    "Sync cycles aborted by a node or storage error",
    registry=REGISTRY,
)

cycle_time = Histogram(
    "chain_archive_cycle_seconds",
    "Sync cycle duration",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Version Control
# -----------------------------------------------------------------------------

commit_failures = Counter(
    "chain_archive_commit_failures_total",
    "Commits or pushes that failed",
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
