"""High-level index operations: full scan, incremental update, status.

Each operation resolves the repo root, loads configuration, opens (and
migrates) the index database for the duration of the call and closes it
before returning. Full scans also write a JSON scan artifact next to the
database for audit and provenance.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

import pygit2
import structlog
from pydantic import BaseModel, Field

from palace.config.loader import get_index_paths, load_config
from palace.config.models import PalaceConfig
from palace.core.errors import ScanError, StorageError
from palace.core.excludes import matches_guardrail
from palace.core.logging import operation
from palace.git import ChangedPaths, GitError, GitRepo, is_git_repo
from palace.index._internal.db import (
    Database,
    IndexCounts,
    ScanSummary,
    get_schema_version,
    index_counts,
    latest_scan,
    open_database,
    stamp_latest_scan_commit,
    write_scan,
)
from palace.index._internal.db.store import format_timestamp
from palace.index._internal.indexing import (
    FileChange,
    IncrementalScanSummary,
    ScanOptions,
    apply_changes,
    build_file_records,
    changes_from_paths,
    detect_changes,
    guardrail_globs,
)

logger = structlog.get_logger()

SCAN_ARTIFACT_SCHEMA_VERSION = "1.0.0"
SCAN_ARTIFACT_KIND = "palace/scan"


# =============================================================================
# Scan artifact
# =============================================================================


class Provenance(BaseModel):
    created_by: str = "palace scan"
    created_at: str


class ScanArtifact(BaseModel):
    """JSON summary of a full scan, written to ``.palace/index/scan.json``."""

    schema_version: str = SCAN_ARTIFACT_SCHEMA_VERSION
    kind: str = SCAN_ARTIFACT_KIND
    scan_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    db_scan_id: int
    started_at: str
    completed_at: str
    file_count: int
    chunk_count: int
    symbol_count: int
    relationship_count: int
    scan_hash: str
    provenance: Provenance

    @classmethod
    def from_summary(cls, summary: ScanSummary) -> ScanArtifact:
        return cls(
            db_scan_id=summary.id,
            started_at=format_timestamp(summary.started_at or summary.completed_at),
            completed_at=format_timestamp(summary.completed_at),
            file_count=summary.file_count,
            chunk_count=summary.chunk_count,
            symbol_count=summary.symbol_count,
            relationship_count=summary.relationship_count,
            scan_hash=summary.scan_hash,
            provenance=Provenance(created_at=format_timestamp(datetime.now(UTC))),
        )


def write_scan_artifact(path: Path, artifact: ScanArtifact) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(artifact.model_dump_json(indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise StorageError.transaction_failed("write_scan_artifact", str(e)) from e


def load_scan_artifact(path: Path) -> ScanArtifact | None:
    """Read a scan artifact, or None if it does not exist."""
    if not path.is_file():
        return None
    return ScanArtifact.model_validate_json(path.read_text(encoding="utf-8"))


# =============================================================================
# Helpers
# =============================================================================


def resolve_root(root: Path | str) -> Path:
    """Absolute, resolved root directory.

    Raises:
        ScanError: root_not_found if it is not an existing directory.
    """
    path = Path(root).expanduser().resolve()
    if not path.is_dir():
        raise ScanError.root_not_found(str(path))
    return path


def _scan_options(config: PalaceConfig, workers: int | None = None) -> ScanOptions:
    return ScanOptions(
        workers=config.scanner.workers if workers is None else workers,
        chunk_max_lines=config.index.chunk_max_lines,
        chunk_max_bytes=config.index.chunk_max_bytes,
        enable_lsp=config.scanner.enable_lsp,
    )


def _head_commit(root: Path) -> str | None:
    if not is_git_repo(root):
        return None
    try:
        return GitRepo(root).head_commit()
    except (GitError, pygit2.GitError) as e:
        logger.debug("git_head_unavailable", root=str(root), error=str(e))
        return None


def _existing_db_path(root: Path, config: PalaceConfig) -> Path:
    db_path, _ = get_index_paths(root, config)
    if not db_path.is_file():
        raise StorageError.index_not_found(str(db_path))
    return db_path


def filter_changed_paths(paths: ChangedPaths, globs: list[str]) -> ChangedPaths:
    """Drop paths that fall under a guardrail glob."""
    return ChangedPaths(
        added=[p for p in paths.added if not matches_guardrail(p, globs)],
        modified=[p for p in paths.modified if not matches_guardrail(p, globs)],
        deleted=[p for p in paths.deleted if not matches_guardrail(p, globs)],
    )


def _apply_incremental(
    db: Database,
    root: Path,
    changes: list[FileChange],
    options: ScanOptions,
    detection: str,
) -> IncrementalScanSummary:
    start = time.monotonic()
    before = index_counts(db).files
    if changes:
        summary = apply_changes(db, root, changes, options)
        summary.files_unchanged = before - summary.files_modified - summary.files_deleted
    else:
        summary = IncrementalScanSummary(files_unchanged=before)

    commit = _head_commit(root)
    if commit:
        stamp_latest_scan_commit(db, commit)

    summary.duration_sec = time.monotonic() - start
    logger.info(
        "incremental_scan_completed",
        detection=detection,
        added=summary.files_added,
        modified=summary.files_modified,
        deleted=summary.files_deleted,
        unchanged=summary.files_unchanged,
        duration_sec=round(summary.duration_sec, 3),
    )
    return summary


# =============================================================================
# Operations
# =============================================================================


def run_scan(
    root: Path | str,
    config: PalaceConfig | None = None,
    *,
    workers: int | None = None,
) -> tuple[ScanSummary, int]:
    """Rebuild the whole index for root.

    Returns the persisted scan summary and the number of files scanned.
    """
    root_path = resolve_root(root)
    config = config or load_config(root_path)
    db_path, artifact_path = get_index_paths(root_path, config)
    options = _scan_options(config, workers)

    with operation("scan", root_path):
        started_at = datetime.now(UTC)
        logger.info("scan_started", workers=options.workers)
        records = build_file_records(root_path, guardrail_globs(config.guardrails), options)
        commit = _head_commit(root_path)

        with open_database(db_path, config.database) as db:
            summary = write_scan(db, str(root_path), records, started_at, commit)

        write_scan_artifact(artifact_path, ScanArtifact.from_summary(summary))
        logger.info(
            "scan_completed",
            scan_id=summary.id,
            files=summary.file_count,
            commit=commit,
        )
    return summary, len(records)


def run_incremental(
    root: Path | str, config: PalaceConfig | None = None
) -> IncrementalScanSummary:
    """Update the index from content-hash differences against disk.

    Raises:
        StorageError: index_not_found if no index exists yet.
    """
    root_path = resolve_root(root)
    config = config or load_config(root_path)
    db_path = _existing_db_path(root_path, config)

    with operation("update", root_path), open_database(db_path, config.database) as db:
        changes = detect_changes(db, root_path, guardrail_globs(config.guardrails))
        return _apply_incremental(db, root_path, changes, _scan_options(config), "hash")


def run_incremental_git(
    root: Path | str, config: PalaceConfig | None = None
) -> IncrementalScanSummary:
    """Update the index from source-control changes since the last scanned commit.

    Raises:
        ScanError: not_a_git_repository, no_git_baseline when the latest scan
            recorded no commit, or git_failed when the diff cannot be computed.
        StorageError: index_not_found if no index exists yet.
    """
    root_path = resolve_root(root)
    if not is_git_repo(root_path):
        raise ScanError.not_a_git_repository(str(root_path))
    config = config or load_config(root_path)
    db_path = _existing_db_path(root_path, config)

    with operation("update", root_path), open_database(db_path, config.database) as db:
        last = latest_scan(db)
        if last is None or not last.commit_hash:
            raise ScanError.no_git_baseline(str(root_path))

        try:
            paths = GitRepo(root_path).changed_files_since(last.commit_hash)
        except (GitError, pygit2.GitError) as e:
            raise ScanError.git_failed(str(root_path), str(e)) from e

        filtered = filter_changed_paths(paths, guardrail_globs(config.guardrails))
        changes = changes_from_paths(filtered)
        return _apply_incremental(db, root_path, changes, _scan_options(config), "git")


def run_incremental_auto(
    root: Path | str, config: PalaceConfig | None = None
) -> IncrementalScanSummary:
    """Git-based update when possible, hash-based otherwise."""
    try:
        return run_incremental_git(root, config)
    except ScanError as e:
        logger.info("git_change_detection_fallback", reason=e.message, code=e.error_name)
        return run_incremental(root, config)


@dataclass(frozen=True, slots=True)
class IndexStatus:
    db_path: Path
    schema_version: int
    latest_scan: ScanSummary | None
    counts: IndexCounts


def get_index_status(root: Path | str, config: PalaceConfig | None = None) -> IndexStatus:
    """Schema version, latest scan and row counts of an existing index."""
    root_path = resolve_root(root)
    config = config or load_config(root_path)
    db_path = _existing_db_path(root_path, config)
    with open_database(db_path, config.database) as db:
        return IndexStatus(
            db_path=db_path,
            schema_version=get_schema_version(db),
            latest_scan=latest_scan(db),
            counts=index_counts(db),
        )


def open_index(root: Path | str, config: PalaceConfig | None = None) -> Database:
    """Open an existing index for queries. The caller closes it."""
    root_path = resolve_root(root)
    config = config or load_config(root_path)
    return open_database(_existing_db_path(root_path, config), config.database)
