"""
Committers: snapshot the archive after a sync.

A committer receives the tip a cycle reached and records the archive state.
Failures here never abort anything. The files on disk are already correct,
and the next successful commit picks up these changes together with newer
blocks.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from chain_archive import metrics
from chain_archive.commands import CommandRunner, SubprocessRunner
from chain_archive.types import ChainTip

logger = logging.getLogger(__name__)


def commit_message(tip: ChainTip) -> str:
    """Commit message identifying the reached height and hash."""
    return f"Synced to block {tip.height} ({tip.hash})"


class Committer(Protocol):
    """Protocol for recording the archive state after a cycle."""

    async def commit(self, tip: ChainTip) -> bool:
        """
        Record the archive state at ``tip``.

        Must not raise for commit or publish failures.

        Returns:
            True if the snapshot (and publish, when enabled) succeeded.
        """
        ...


@dataclass(slots=True)
class GitCommitter:
    """
    Commits the archive to a git repository and optionally pushes it.

    Runs ``git add <paths>``, ``git commit -m "Synced to block H (HASH)"``,
    then ``git push`` when enabled.
    """

    repo_path: Path
    """Repository work tree."""

    runner: CommandRunner = field(default_factory=SubprocessRunner)
    """Executes git."""

    push: bool = True
    """Whether to push after committing."""

    paths: Sequence[str] = ("blocks",)
    """Paths staged before committing."""

    git: str = "git"
    """Git executable."""

    async def commit(self, tip: ChainTip) -> bool:
        """Stage, commit, and optionally push. Failures are logged, never raised."""
        try:
            ok = await self._commit(tip)
        except OSError as exc:
            # The git binary itself could not be started.
            logger.error("Cannot run %s: %s", self.git, exc)
            ok = False

        if not ok:
            metrics.commit_failures.inc()
        return ok

    async def _commit(self, tip: ChainTip) -> bool:
        add = await self.runner.run([self.git, "add", *self.paths], cwd=self.repo_path)
        if not add.ok:
            logger.warning("Staging failed: %s", add.describe())
            return False

        # Exit status 0 means the index matches HEAD, 1 means staged changes.
        staged = await self.runner.run(
            [self.git, "diff", "--cached", "--quiet"], cwd=self.repo_path
        )
        if staged.returncode == 0:
            logger.debug("Nothing to commit at block %s", tip)
        elif staged.returncode == 1:
            result = await self.runner.run(
                [self.git, "commit", "-m", commit_message(tip)], cwd=self.repo_path
            )
            if not result.ok:
                logger.warning("Commit failed: %s", result.describe())
                return False
            logger.info("Committed block %s", tip)
        else:
            logger.warning("Cannot inspect the index: %s", staged.describe())
            return False

        if not self.push:
            return True

        # Pushed even when nothing was committed, so an earlier failed push
        # is retried.
        pushed = await self.runner.run([self.git, "push"], cwd=self.repo_path)
        if not pushed.ok:
            logger.warning("Push failed: %s", pushed.describe())
            return False
        logger.info("Pushed block %s", tip)
        return True


class NullCommitter:
    """Committer that only logs. Used when version control is disabled."""

    async def commit(self, tip: ChainTip) -> bool:
        """Log the reached tip and report success."""
        logger.info("Archive at block %s (commit disabled)", tip)
        return True
