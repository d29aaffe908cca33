"""Serializable data models for git change detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

import pygit2

DeltaStatus = Literal["added", "deleted", "modified", "renamed", "copied", "unknown"]

_DELTA_STATUS_MAP: dict[int, DeltaStatus] = {
    pygit2.GIT_DELTA_ADDED: "added",
    pygit2.GIT_DELTA_DELETED: "deleted",
    pygit2.GIT_DELTA_MODIFIED: "modified",
    pygit2.GIT_DELTA_RENAMED: "renamed",
    pygit2.GIT_DELTA_COPIED: "copied",
}


@dataclass(slots=True)
class ChangedPaths:
    """Paths grouped by change kind, relative to the scan root."""

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.modified) + len(self.deleted)

    def is_empty(self) -> bool:
        return self.total == 0

    def sorted(self) -> ChangedPaths:
        return ChangedPaths(sorted(self.added), sorted(self.modified), sorted(self.deleted))
