"""
Shared pytest fixtures for chain_archive tests.

Provides an archive rooted in a temporary directory and the fakes that stand
in for the node, git and the committer.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from chain_archive.storage import BlockStore
from chain_archive.sync import SyncEngine
from tests.chain_archive.helpers import FakeNode, FakeRunner, RecordingCommitter


@pytest.fixture
def archive_root(tmp_path: Path) -> Path:
    """Archive root inside a fresh repository directory."""
    return tmp_path / "repo" / "blocks"


@pytest.fixture
def store(archive_root: Path) -> BlockStore:
    """Empty block store."""
    return BlockStore(root=archive_root)


@pytest.fixture
def node() -> FakeNode:
    """Node with no blocks."""
    return FakeNode()


@pytest.fixture
def runner() -> FakeRunner:
    """Command runner where every command succeeds."""
    return FakeRunner()


@pytest.fixture
def committer() -> RecordingCommitter:
    """Committer that records tips."""
    return RecordingCommitter()


@pytest.fixture
def engine(store: BlockStore, node: FakeNode, committer: RecordingCommitter) -> SyncEngine:
    """Sync engine wired to the fakes."""
    return SyncEngine(store=store, node=node, committer=committer)
