"""
External command execution.

The archiver drives two external programs: the node's command-line client
(``bitcoin-cli`` and friends) and ``git``. Both are reached through the
narrow :class:`CommandRunner` request/response interface so the node client
and the committer can be tested against fakes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Captured outcome of one command invocation."""

    argv: tuple[str, ...]
    """The command that was run."""

    returncode: int
    """Process exit status."""

    stdout: str
    """Standard output, stripped of surrounding whitespace."""

    stderr: str
    """Standard error, stripped of surrounding whitespace."""

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0

    def describe(self) -> str:
        """One-line description for log and error messages."""
        detail = self.stderr or self.stdout
        return f"`{' '.join(self.argv)}` exited with {self.returncode}: {detail}"


class CommandError(Exception):
    """
    Raised when a command fails and the caller required success.

    Attributes:
        result: The failed invocation.
    """

    def __init__(self, result: CommandResult) -> None:
        self.result = result
        super().__init__(result.describe())


class CommandRunner(Protocol):
    """
    Protocol for running an external command to completion.

    Implementations never raise on a non-zero exit status; they report it in
    the result. Failing to start the program at all (missing binary) raises
    ``OSError``.
    """

    async def run(self, argv: Sequence[str], *, cwd: Path | None = None) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            argv: Program and arguments.
            cwd: Working directory, or None for the current one.

        Returns:
            The captured result.
        """
        ...


class SubprocessRunner:
    """CommandRunner backed by asyncio subprocesses."""

    async def run(self, argv: Sequence[str], *, cwd: Path | None = None) -> CommandResult:
        """Spawn the program, wait for it, and capture both streams."""
        logger.debug("> %s", " ".join(argv))
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        out, err = await proc.communicate()
        returncode = proc.returncode if proc.returncode is not None else -1
        return CommandResult(
            argv=tuple(argv),
            returncode=returncode,
            stdout=out.decode("utf-8", errors="replace").strip(),
            stderr=err.decode("utf-8", errors="replace").strip(),
        )


async def run_checked(
    runner: CommandRunner,
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
) -> CommandResult:
    """
    Run a command that must succeed.

    Raises:
        CommandError: If the command exits with a non-zero status.
    """
    result = await runner.run(argv, cwd=cwd)
    if not result.ok:
        raise CommandError(result)
    return result
