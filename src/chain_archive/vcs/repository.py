"""
Repository bootstrap.

On first use the archive directory becomes a git repository with Git LFS
tracking the block files, so the repository history stays small while every
block remains versioned.
"""

from __future__ import annotations

import logging
from pathlib import Path

from chain_archive.commands import CommandRunner, run_checked

logger = logging.getLogger(__name__)


async def is_work_tree(repo_path: Path, runner: CommandRunner, git: str = "git") -> bool:
    """Check whether ``repo_path`` is inside a git work tree."""
    result = await runner.run([git, "rev-parse", "--is-inside-work-tree"], cwd=repo_path)
    return result.ok and result.stdout == "true"


async def ensure_repository(
    repo_path: Path,
    runner: CommandRunner,
    *,
    blocks_dir: str = "blocks",
    extension: str = "block",
    git: str = "git",
) -> bool:
    """
    Prepare ``repo_path`` for archiving.

    A directory that is not yet a git work tree is initialised: ``git init``,
    HTTP/1.1 for large pushes, Git LFS tracking for ``*.<extension>`` and an
    initial staging of the LFS configuration. LFS setup is best effort: a
    machine without git-lfs still gets a working (if heavier) repository.

    The blocks directory is created in every case.

    Returns:
        True if a new repository was initialised.

    Raises:
        CommandError: If ``git init`` or ``git config`` fails.
    """
    repo_path.mkdir(parents=True, exist_ok=True)

    if await is_work_tree(repo_path, runner, git):
        (repo_path / blocks_dir).mkdir(parents=True, exist_ok=True)
        return False

    await run_checked(runner, [git, "init"], cwd=repo_path)
    await run_checked(runner, [git, "config", "--local", "http.version", "HTTP/1.1"], cwd=repo_path)
    (repo_path / blocks_dir).mkdir(parents=True, exist_ok=True)

    for argv in (
        [git, "lfs", "install", "--local"],
        [git, "lfs", "track", f"*.{extension}"],
        [git, "add", "."],
    ):
        result = await runner.run(argv, cwd=repo_path)
        if not result.ok:
            logger.warning("Repository setup step failed: %s", result.describe())

    logger.info("Initialized Git + LFS in %s", repo_path)
    return True
