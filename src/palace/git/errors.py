"""Errors raised while reading change information from a repository.

Each carries the scan root the repository was opened for, so callers can
report which project change detection failed for.
"""

from __future__ import annotations

from pathlib import Path


class GitError(Exception):
    """Change detection against a repository failed."""

    def __init__(self, message: str, root: Path | str) -> None:
        super().__init__(message)
        self.root = str(root)


class NotARepositoryError(GitError):
    """The scan root is not inside a repository working tree.

    reason is one of ``no repository``, ``bare repository``,
    ``unreadable repository`` or ``outside working tree``.
    """

    def __init__(self, root: Path | str, reason: str = "no repository") -> None:
        super().__init__(f"{root} is not inside a git working tree ({reason})", root)
        self.reason = reason


class UnbornHeadError(GitError):
    """HEAD has no commits, so there is nothing to diff against."""

    def __init__(self, root: Path | str) -> None:
        super().__init__(f"HEAD of the repository at {root} has no commits", root)


class UnknownCommitError(GitError):
    """A recorded scan commit no longer resolves in the repository."""

    def __init__(self, root: Path | str, sha: str) -> None:
        super().__init__(f"Commit {sha!r} not found in the repository at {root}", root)
        self.sha = sha
