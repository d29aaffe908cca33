"""Repository access for change detection - owns pygit2.Repository.

All paths returned here are POSIX paths relative to the scan root, which may
be a subdirectory of the repository working tree. Paths outside the scan
root are dropped.
"""

from __future__ import annotations

from pathlib import Path

import pygit2
import structlog

from palace.git.errors import NotARepositoryError, UnbornHeadError, UnknownCommitError
from palace.git.models import _DELTA_STATUS_MAP, ChangedPaths

logger = structlog.get_logger()

_STATUS_UNTRACKED = pygit2.GIT_STATUS_WT_NEW
_STATUS_DELETED = pygit2.GIT_STATUS_INDEX_DELETED | pygit2.GIT_STATUS_WT_DELETED
_STATUS_INDEX_NEW = pygit2.GIT_STATUS_INDEX_NEW
_STATUS_MODIFIED = (
    pygit2.GIT_STATUS_INDEX_MODIFIED
    | pygit2.GIT_STATUS_WT_MODIFIED
    | pygit2.GIT_STATUS_INDEX_TYPECHANGE
    | pygit2.GIT_STATUS_WT_TYPECHANGE
)


def is_git_repo(path: Path | str) -> bool:
    return pygit2.discover_repository(str(path)) is not None


class GitRepo:
    """Source-control helper used by incremental scans."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).resolve()
        discovered = pygit2.discover_repository(str(self._root))
        if discovered is None:
            raise NotARepositoryError(self._root)
        try:
            self._repo = pygit2.Repository(discovered)
        except pygit2.GitError as e:
            raise NotARepositoryError(self._root, "unreadable repository") from e
        if self._repo.workdir is None:
            raise NotARepositoryError(self._root, "bare repository")

        workdir = Path(self._repo.workdir).resolve()
        try:
            prefix = self._root.relative_to(workdir).as_posix()
        except ValueError as e:
            raise NotARepositoryError(self._root, "outside working tree") from e
        self._prefix = "" if prefix == "." else prefix + "/"

    @property
    def repo(self) -> pygit2.Repository:
        return self._repo

    def repo_root(self) -> Path:
        return Path(self._repo.workdir).resolve()

    # =========================================================================
    # Commit Facts
    # =========================================================================

    def head_commit(self) -> str | None:
        """Return the HEAD commit sha, or None on an unborn branch."""
        if self._repo.head_is_unborn:
            return None
        return str(self._repo.head.peel(pygit2.Commit).id)

    def is_valid_commit(self, sha: str) -> bool:
        if not sha:
            return False
        try:
            self._resolve_commit(sha)
        except UnknownCommitError:
            return False
        return True

    def _resolve_commit(self, ref: str) -> pygit2.Commit:
        try:
            obj = self._repo.revparse_single(ref)
            commit = obj.peel(pygit2.Commit)
        except (KeyError, ValueError, pygit2.GitError) as e:
            raise UnknownCommitError(self._root, ref) from e
        return commit

    def is_dirty(self) -> bool:
        return any(
            flags != pygit2.GIT_STATUS_IGNORED and flags != pygit2.GIT_STATUS_CURRENT
            for flags in self._repo.status().values()
        )

    # =========================================================================
    # Changed Paths
    # =========================================================================

    def _to_root_relative(self, repo_path: str) -> str | None:
        if not self._prefix:
            return repo_path
        if repo_path.startswith(self._prefix):
            return repo_path[len(self._prefix) :]
        return None

    def _collect(self, target: list[str], repo_path: str | None) -> None:
        if repo_path is None:
            return
        rel = self._to_root_relative(repo_path)
        if rel:
            target.append(rel)

    def tracked_files(self) -> list[str]:
        changes = ChangedPaths()
        for entry in self._repo.index:
            self._collect(changes.added, entry.path)
        return changes.added

    def changed_files(self, base: str | None, head: str) -> ChangedPaths:
        """Paths changed between two commits.

        A missing or unknown base reports every tracked file as added.
        Renames are reported as a delete of the old path plus an add of the new one.
        """
        if not base or not self.is_valid_commit(base):
            return ChangedPaths(added=self.tracked_files())

        base_commit = self._resolve_commit(base)
        head_commit = self._resolve_commit(head)
        diff = self._repo.diff(base_commit, head_commit)
        diff.find_similar()

        changes = ChangedPaths()
        for delta in diff.deltas:
            status = _DELTA_STATUS_MAP.get(delta.status, "unknown")
            if status == "renamed":
                self._collect(changes.deleted, delta.old_file.path)
                self._collect(changes.added, delta.new_file.path)
            elif status in ("added", "copied"):
                self._collect(changes.added, delta.new_file.path)
            elif status == "modified":
                self._collect(changes.modified, delta.new_file.path)
            elif status == "deleted":
                self._collect(changes.deleted, delta.old_file.path)
        return changes

    def uncommitted_changes(self) -> ChangedPaths:
        """Working tree and index changes relative to HEAD."""
        changes = ChangedPaths()
        for path, flags in self._repo.status().items():
            if flags & _STATUS_UNTRACKED:
                self._collect(changes.added, path)
            elif flags & _STATUS_DELETED:
                self._collect(changes.deleted, path)
            elif flags & _STATUS_INDEX_NEW:
                self._collect(changes.added, path)
            elif flags & _STATUS_MODIFIED:
                self._collect(changes.modified, path)
        return changes

    def changed_files_since(self, base: str | None) -> ChangedPaths:
        """Committed changes since base merged with uncommitted changes.

        Uncommitted adds and modifications never duplicate a path already
        reported; an uncommitted delete wins over any committed add/modify.
        """
        head = self.head_commit()
        if head is None:
            raise UnbornHeadError(self._root)

        committed = self.changed_files(base, head)
        added = dict.fromkeys(committed.added)
        modified = dict.fromkeys(committed.modified)
        deleted = dict.fromkeys(committed.deleted)

        try:
            pending = self.uncommitted_changes()
        except pygit2.GitError as e:
            logger.warning("git_status_failed", error=str(e))
            return committed.sorted()

        for path in pending.added:
            if path not in added and path not in modified:
                added[path] = None
        for path in pending.modified:
            if path not in added and path not in modified:
                modified[path] = None
        for path in pending.deleted:
            if path not in deleted:
                deleted[path] = None
                added.pop(path, None)
                modified.pop(path, None)

        return ChangedPaths(sorted(added), sorted(modified), sorted(deleted))
