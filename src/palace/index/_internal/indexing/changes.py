"""Change detection and incremental application.

Both detection strategies (content hash, source control) produce the same
FileChange shape; apply_changes consumes either in one transaction.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from palace.core.errors import ScanError
from palace.git.models import ChangedPaths
from palace.index._internal.analysis import AnalyzerRegistry
from palace.index._internal.db.store import (
    format_timestamp,
    insert_file_record,
    load_file_metadata,
)
from palace.index._internal.indexing.files import hash_file, list_files
from palace.index._internal.indexing.scanner import FileRecord, ScanOptions, process_file
from palace.index.models import ChangeAction

if TYPE_CHECKING:
    from palace.index._internal.db.database import Database

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class FileChange:
    """One path's change. old_hash is None for added, new_hash None for deleted."""

    path: str
    action: ChangeAction
    old_hash: str | None = None
    new_hash: str | None = None


@dataclass(slots=True)
class IncrementalScanSummary:
    files_added: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    files_unchanged: int = 0
    duration_sec: float = 0.0
    changes: list[FileChange] = field(default_factory=list)

    @property
    def total_changed(self) -> int:
        return self.files_added + self.files_modified + self.files_deleted


def detect_changes(db: Database, root: Path, globs: list[str]) -> list[FileChange]:
    """Hash-based change set between disk and the recorded index.

    Files on disk are reported in path order as added or modified; paths
    recorded but no longer on disk follow as deleted. Unreadable files are
    skipped, not treated as deleted.
    """
    indexed = {path: meta.hash for path, meta in load_file_metadata(db).items()}
    changes: list[FileChange] = []

    for rel in list_files(root, globs):
        try:
            new_hash = hash_file(root / rel)
        except OSError as e:
            logger.warning("change_detection_skip_unreadable", path=rel, error=str(e))
            # Keep it out of the deleted set
            indexed.pop(rel, None)
            continue

        old_hash = indexed.pop(rel, None)
        if old_hash is None:
            changes.append(FileChange(rel, ChangeAction.ADDED, None, new_hash))
        elif old_hash != new_hash:
            changes.append(FileChange(rel, ChangeAction.MODIFIED, old_hash, new_hash))

    for path in sorted(indexed):
        changes.append(FileChange(path, ChangeAction.DELETED, indexed[path], None))
    return changes


def changes_from_paths(paths: ChangedPaths) -> list[FileChange]:
    """Convert source-control changed paths into a change set."""
    changes = [FileChange(p, ChangeAction.ADDED) for p in paths.added]
    changes.extend(FileChange(p, ChangeAction.MODIFIED) for p in paths.modified)
    changes.extend(FileChange(p, ChangeAction.DELETED) for p in paths.deleted)
    return changes


def apply_changes(
    db: Database,
    root: Path,
    changes: list[FileChange],
    options: ScanOptions | None = None,
) -> IncrementalScanSummary:
    """Delete and re-insert rows for each changed path in one transaction.

    Added and modified files are read before the transaction opens; an
    unreadable file aborts the whole batch.
    """
    start = time.monotonic()
    summary = IncrementalScanSummary(changes=list(changes))
    if not changes:
        summary.duration_sec = time.monotonic() - start
        return summary

    options = options or ScanOptions()
    registry = AnalyzerRegistry.with_defaults(root, enable_lsp=options.enable_lsp)
    records: dict[str, FileRecord] = {}
    for change in changes:
        if change.action is ChangeAction.DELETED:
            continue
        try:
            records[change.path] = process_file(root, change.path, registry, options)
        except ScanError:
            logger.error("incremental_file_unreadable", path=change.path)
            raise

    with db.index_writer("incremental_scan") as writer:
        indexed_at = format_timestamp(datetime.now(UTC))
        for change in changes:
            writer.delete_file(change.path)
            if change.action is ChangeAction.DELETED:
                summary.files_deleted += 1
                continue
            insert_file_record(writer, records[change.path], indexed_at)
            if change.action is ChangeAction.ADDED:
                summary.files_added += 1
            else:
                summary.files_modified += 1

    summary.duration_sec = time.monotonic() - start
    logger.info(
        "incremental_changes_applied",
        added=summary.files_added,
        modified=summary.files_modified,
        deleted=summary.files_deleted,
    )
    return summary
