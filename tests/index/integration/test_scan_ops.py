"""End-to-end tests for full and hash-based incremental scans."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from palace.config.models import IndexConfig, LoggingConfig, LogOutputConfig, PalaceConfig
from palace.core.errors import ErrorCode, ScanError, StorageError
from palace.core.logging import configure_logging
from palace.index._internal.db import get_symbol, search_chunks, search_symbols
from palace.index._internal.db.migrations import LATEST_VERSION
from palace.index.ops import (
    get_index_status,
    load_scan_artifact,
    open_index,
    resolve_root,
    run_incremental,
    run_incremental_auto,
    run_incremental_git,
    run_scan,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def config() -> PalaceConfig:
    return PalaceConfig()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.py").write_text("def alpha():\n    return beta()\n")
    (root / "b.py").write_text("def beta():\n    return 2\n")
    (root / "c.py").write_text("def gamma():\n    pass\n")
    return root


@pytest.fixture
def json_log(tmp_path: Path) -> Generator[Path, None, None]:
    """Route structured events to a JSON lines file for the test."""
    path = tmp_path / "events.log"
    configure_logging(
        config=LoggingConfig(
            level="DEBUG", outputs=[LogOutputConfig(format="json", destination=str(path))]
        )
    )
    yield path
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.WARNING)


def _events(path: Path) -> dict[str, dict[str, object]]:
    lines = [json.loads(line) for line in path.read_text().splitlines() if line.strip()]
    return {e["event"]: e for e in lines}


class TestRunScan:
    """Full scans."""

    def test_scan_populates_index(self, project: Path, config: PalaceConfig) -> None:
        summary, scanned = run_scan(project, config)

        assert scanned == 3
        assert summary.file_count == 3
        assert summary.symbol_count == 3
        assert summary.relationship_count == 1
        assert summary.commit_hash is None
        assert len(summary.scan_hash) == 64
        assert (project / ".palace" / "index" / "palace.db").is_file()

    def test_scan_artifact(self, project: Path, config: PalaceConfig) -> None:
        """A JSON artifact mirrors the persisted scan."""
        summary, _ = run_scan(project, config)
        artifact = load_scan_artifact(project / ".palace" / "index" / "scan.json")

        assert artifact is not None
        assert artifact.db_scan_id == summary.id
        assert artifact.file_count == 3
        assert artifact.scan_hash == summary.scan_hash
        assert artifact.provenance.created_by == "palace scan"

    def test_missing_artifact(self, tmp_path: Path) -> None:
        assert load_scan_artifact(tmp_path / "scan.json") is None

    def test_rescan_is_stable(self, project: Path, config: PalaceConfig) -> None:
        """The index directory is never scanned and an unchanged tree hashes the same."""
        first, _ = run_scan(project, config)
        second, scanned = run_scan(project, config, workers=2)

        assert scanned == 3
        assert second.id > first.id
        assert second.scan_hash == first.scan_hash

    def test_custom_index_path(self, project: Path, tmp_path: Path) -> None:
        """index_path relocates the database and artifact."""
        index_dir = tmp_path / "elsewhere"
        config = PalaceConfig(index=IndexConfig(index_path=str(index_dir), db_name="x.db"))
        run_scan(project, config)
        assert (index_dir / "x.db").is_file()
        assert (index_dir / "scan.json").is_file()
        assert not (project / ".palace").exists()

    def test_missing_root(self, tmp_path: Path, config: PalaceConfig) -> None:
        with pytest.raises(ScanError) as exc_info:
            run_scan(tmp_path / "nope", config)
        assert exc_info.value.code == ErrorCode.SCAN_ROOT_NOT_FOUND

    def test_resolve_root(self, project: Path) -> None:
        assert resolve_root(str(project / "." / "")) == project.resolve()

    def test_events_carry_operation_and_root(
        self, project: Path, config: PalaceConfig, json_log: Path
    ) -> None:
        """Every scan event names the operation and the scan root."""
        run_scan(project, config)

        events = _events(json_log)
        started, written = events["scan_started"], events["scan_written"]
        assert started["operation"] == written["operation"] == "scan"
        assert started["root"] == written["root"] == str(project.resolve())
        assert started["operation_id"] == written["operation_id"]


class TestRunIncremental:
    """Hash-based incremental updates."""

    def test_one_modified_file(self, project: Path, config: PalaceConfig) -> None:
        run_scan(project, config)
        (project / "b.py").write_text("def beta_two():\n    return 2\n")

        summary = run_incremental(project, config)

        assert (summary.files_added, summary.files_modified, summary.files_deleted) == (0, 1, 0)
        assert summary.files_unchanged == 2
        assert summary.duration_sec >= 0
        with open_index(project, config) as db:
            assert get_symbol(db, "beta_two") is not None
            assert get_symbol(db, "beta") is None

    def test_added_and_deleted(self, project: Path, config: PalaceConfig) -> None:
        run_scan(project, config)
        (project / "c.py").unlink()
        (project / "d.py").write_text("def delta():\n    pass\n")

        summary = run_incremental(project, config)

        assert (summary.files_added, summary.files_deleted, summary.files_unchanged) == (1, 1, 2)
        with open_index(project, config) as db:
            assert [h.path for h in search_chunks(db, "delta")] == ["d.py"]

    def test_modify_and_delete_leave_no_stale_search_rows(
        self, project: Path, config: PalaceConfig
    ) -> None:
        """Full-text rows follow the files they mirror through an update."""
        run_scan(project, config)
        (project / "a.py").write_text("def omega():\n    return beta()\n")
        (project / "c.py").unlink()

        run_incremental(project, config)

        with open_index(project, config) as db:
            assert search_chunks(db, "alpha") == []
            assert search_chunks(db, "gamma") == []
            assert [h.path for h in search_chunks(db, "omega")] == ["a.py"]
            assert [s.name for s in search_symbols(db, "omega", 10)] == ["omega"]
            for table in ("chunks_fts", "symbols_fts"):
                sql = f"SELECT count(*) FROM {table} WHERE {table} MATCH :query"
                assert db.scalar(sql, {"query": '"alpha" OR "gamma"'}) == 0, table
            assert db.scalar("SELECT count(*) FROM chunks_fts WHERE path = 'a.py'") == 1
            assert db.scalar("SELECT count(*) FROM chunks_fts WHERE path = 'c.py'") == 0

    def test_nothing_changed(self, project: Path, config: PalaceConfig) -> None:
        run_scan(project, config)
        summary = run_incremental(project, config)
        assert summary.total_changed == 0
        assert summary.files_unchanged == 3

    def test_requires_existing_index(self, project: Path, config: PalaceConfig) -> None:
        """Incremental updates need a prior full scan."""
        with pytest.raises(StorageError) as exc_info:
            run_incremental(project, config)
        assert exc_info.value.code == ErrorCode.STORAGE_INDEX_NOT_FOUND

    def test_git_detection_needs_repository(self, project: Path, config: PalaceConfig) -> None:
        run_scan(project, config)
        with pytest.raises(ScanError) as exc_info:
            run_incremental_git(project, config)
        assert exc_info.value.code == ErrorCode.SCAN_NOT_A_GIT_REPOSITORY

    def test_auto_falls_back_to_hashes(self, project: Path, config: PalaceConfig) -> None:
        """Outside a repository auto detection compares content hashes."""
        run_scan(project, config)
        (project / "a.py").write_text("def alpha():\n    return 0\n")
        summary = run_incremental_auto(project, config)
        assert summary.files_modified == 1

    def test_update_events_bound_to_update(
        self, project: Path, config: PalaceConfig, json_log: Path
    ) -> None:
        run_scan(project, config)
        run_incremental(project, config)

        completed = _events(json_log)["incremental_scan_completed"]
        assert completed["operation"] == "update"
        assert completed["detection"] == "hash"
        assert completed["root"] == str(project.resolve())


class TestIndexStatus:
    """Status of an existing index."""

    def test_status_after_scan(self, project: Path, config: PalaceConfig) -> None:
        summary, _ = run_scan(project, config)
        status = get_index_status(project, config)

        assert status.schema_version == LATEST_VERSION
        assert status.latest_scan is not None
        assert status.latest_scan.id == summary.id
        assert (status.counts.files, status.counts.symbols) == (3, 3)
        assert status.db_path == project.resolve() / ".palace" / "index" / "palace.db"

    def test_status_without_index(self, project: Path, config: PalaceConfig) -> None:
        with pytest.raises(StorageError):
            get_index_status(project, config)
