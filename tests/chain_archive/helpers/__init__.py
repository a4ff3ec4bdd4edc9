"""Test helpers: fakes for the node, external commands and the committer."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from chain_archive.commands import CommandResult
from chain_archive.rpc import NodeTransportError
from chain_archive.types import ChainTip


def make_hash(height: int, fork: int = 0) -> str:
    """Deterministic 64-character block hash. ``fork`` separates competing chains."""
    return f"{fork:02x}{height:062x}"


def make_payload(height: int, fork: int = 0) -> bytes:
    """Deterministic raw block bytes for (height, fork)."""
    return f"block-{fork}-{height}".encode()


class FakeNode:
    """In-memory node: a height-to-hash chain plus payloads."""

    def __init__(self, heights: int = 0, fork: int = 0) -> None:
        """Create a node with blocks 0 .. heights-1 on ``fork``."""
        self.chain: dict[int, str] = {}
        self.payloads: dict[str, bytes] = {}
        self.hash_calls: list[int] = []
        self.payload_calls: list[str] = []
        self.fail_at: int | None = None
        self.closed = False
        for height in range(heights):
            self.set_block(height, fork)

    def set_block(self, height: int, fork: int = 0) -> str:
        """Put the block for (height, fork) on the best chain."""
        block_hash = make_hash(height, fork)
        self.chain[height] = block_hash
        self.payloads[block_hash] = make_payload(height, fork)
        return block_hash

    async def block_hash_at(self, height: int) -> str | None:
        """Hash at ``height``; None past the tip."""
        self.hash_calls.append(height)
        if self.fail_at is not None and height == self.fail_at:
            raise NodeTransportError(f"connection refused at {height}")
        return self.chain.get(height)

    async def block_payload(self, block_hash: str) -> bytes:
        """Payload of ``block_hash``."""
        self.payload_calls.append(block_hash)
        return self.payloads[block_hash]

    async def current_tip_hash(self) -> str:
        """Hash of the highest block."""
        return self.chain[max(self.chain)]

    async def close(self) -> None:
        """Record that the client was closed."""
        self.closed = True


class FakeRunner:
    """
    Records commands and answers them from canned results.

    Results are matched by argv prefix, longest prefix first. Results for one
    prefix are used in order and the last one repeats. Unmatched commands
    succeed with empty output.
    """

    def __init__(self) -> None:
        """Create a runner with no canned results."""
        self.calls: list[tuple[tuple[str, ...], Path | None]] = []
        self._results: dict[tuple[str, ...], list[CommandResult]] = {}
        self.missing: set[str] = set()

    def on(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Queue a result for commands starting with ``prefix``."""
        result = CommandResult(
            argv=tuple(prefix), returncode=returncode, stdout=stdout, stderr=stderr
        )
        self._results.setdefault(tuple(prefix), []).append(result)

    @property
    def argvs(self) -> list[tuple[str, ...]]:
        """Every command run, in order."""
        return [argv for argv, _ in self.calls]

    async def run(self, argv: Sequence[str], *, cwd: Path | None = None) -> CommandResult:
        """Record the command and return its canned result."""
        command = tuple(argv)
        self.calls.append((command, cwd))
        if command[0] in self.missing:
            raise FileNotFoundError(command[0])

        for length in range(len(command), 0, -1):
            queue = self._results.get(command[:length])
            if queue:
                result = queue.pop(0) if len(queue) > 1 else queue[0]
                return CommandResult(
                    argv=command,
                    returncode=result.returncode,
                    stdout=result.stdout,
                    stderr=result.stderr,
                )
        return CommandResult(argv=command, returncode=0, stdout="", stderr="")


class RecordingCommitter:
    """Committer that records every tip it is asked to commit."""

    def __init__(self, succeed: bool = True) -> None:
        """Create a committer that reports ``succeed``."""
        self.tips: list[ChainTip] = []
        self.succeed = succeed

    async def commit(self, tip: ChainTip) -> bool:
        """Record the tip."""
        self.tips.append(tip)
        return self.succeed


__all__ = [
    "FakeNode",
    "FakeRunner",
    "RecordingCommitter",
    "make_hash",
    "make_payload",
]
