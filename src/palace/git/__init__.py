"""Git helpers for source-control based change detection."""

from palace.git.errors import GitError, NotARepositoryError, UnbornHeadError, UnknownCommitError
from palace.git.models import ChangedPaths
from palace.git.repo import GitRepo, is_git_repo

__all__ = [
    "ChangedPaths",
    "GitError",
    "GitRepo",
    "NotARepositoryError",
    "UnbornHeadError",
    "UnknownCommitError",
    "is_git_repo",
]
