"""
Version control for the archive.

After every cycle that reached a tip, the archive is committed (and
optionally pushed) so each sync point is a recoverable snapshot.
"""

from .committer import Committer, GitCommitter, NullCommitter, commit_message
from .repository import ensure_repository, is_work_tree

__all__ = [
    "Committer",
    "GitCommitter",
    "NullCommitter",
    "commit_message",
    "ensure_repository",
    "is_work_tree",
]
