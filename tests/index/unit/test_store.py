"""Tests for scan persistence and chunk search."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import OperationalError

from palace.core.errors import ErrorCode, StorageError
from palace.index._internal.analysis import SymbolFact
from palace.index._internal.db import (
    Database,
    compute_scan_hash,
    get_chunks_for_file,
    index_counts,
    latest_scan,
    load_file_metadata,
    search_chunks,
    stamp_latest_scan_commit,
    write_scan,
)
from palace.index._internal.db import store
from palace.index._internal.db.database import IndexWriter
from palace.index._internal.db.store import format_timestamp, parse_timestamp
from palace.index._internal.indexing.scanner import FileRecord


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_format_is_utc_second_precision(self) -> None:
        """Timestamps are RFC 3339 in UTC without fractional seconds."""
        value = datetime(2024, 3, 5, 10, 20, 30, 123456, tzinfo=UTC)
        assert format_timestamp(value) == "2024-03-05T10:20:30Z"

    def test_parse_round_trip(self) -> None:
        """Parsing a formatted timestamp yields an aware datetime."""
        value = datetime(2024, 3, 5, 10, 20, 30, tzinfo=UTC)
        assert parse_timestamp(format_timestamp(value)) == value


class TestComputeScanHash:
    """Tests for compute_scan_hash."""

    def test_deterministic(self, make_record: Callable[..., FileRecord]) -> None:
        """Same records in the same order hash identically."""
        records = [make_record("a.py", "x = 1\n"), make_record("b.py", "y = 2\n")]
        assert compute_scan_hash(records) == compute_scan_hash(list(records))

    def test_order_sensitive(self, make_record: Callable[..., FileRecord]) -> None:
        """Reordering records changes the hash."""
        a = make_record("a.py", "x = 1\n")
        b = make_record("b.py", "y = 2\n")
        assert compute_scan_hash([a, b]) != compute_scan_hash([b, a])

    def test_content_sensitive(self, make_record: Callable[..., FileRecord]) -> None:
        """A content change changes the hash."""
        before = compute_scan_hash([make_record("a.py", "x = 1\n")])
        after = compute_scan_hash([make_record("a.py", "x = 2\n")])
        assert before != after


class TestWriteScan:
    """Tests for write_scan and latest_scan."""

    def test_latest_scan_none_when_empty(self, temp_db: Database) -> None:
        """No scans recorded means no latest scan."""
        assert latest_scan(temp_db) is None

    def test_round_trip_counts(self, call_graph_db: Database) -> None:
        """Counts read back equal the counts written."""
        scan = latest_scan(call_graph_db)
        assert scan is not None
        assert scan.file_count == 3
        assert scan.chunk_count == 3
        assert scan.symbol_count == 5
        # 2 imports + 5 calls
        assert scan.relationship_count == 7

    def test_summary_matches_latest(
        self, temp_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """The returned summary and latest_scan agree."""
        records = [make_record("a.py", "x = 1\n")]
        summary = write_scan(temp_db, "/repo", records, datetime.now(UTC), "abc123")
        scan = latest_scan(temp_db)

        assert scan is not None
        assert scan.id == summary.id
        assert scan.scan_hash == summary.scan_hash == compute_scan_hash(records)
        assert scan.commit_hash == "abc123"
        assert scan.root == "/repo"
        assert scan.completed_at == summary.completed_at

    def test_missing_commit_reads_back_as_none(
        self, temp_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """Scans outside source control have no commit hash."""
        write_scan(temp_db, "/repo", [make_record("a.py")], datetime.now(UTC))
        scan = latest_scan(temp_db)
        assert scan is not None
        assert scan.commit_hash is None
        assert temp_db.scalar("SELECT commit_hash IS NULL FROM scans") == 1

    def test_rewrite_replaces_index(
        self, call_graph_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """A second full scan clears everything the first one wrote."""
        first = latest_scan(call_graph_db)
        summary = write_scan(
            call_graph_db, "/repo", [make_record("only.py", "z = 3\n")], datetime.now(UTC)
        )

        counts = index_counts(call_graph_db)
        assert counts.files == 1
        assert counts.symbols == 0
        assert counts.relationships == 0
        assert first is not None
        assert summary.id > first.id
        assert search_chunks(call_graph_db, "helper") == []

    def test_nested_symbols_counted(
        self, temp_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """Children are inserted and counted along with their parents."""
        cls = SymbolFact(
            name="Store",
            kind="class",
            line_start=1,
            line_end=6,
            children=[
                SymbolFact(name="get", kind="method", line_start=2, line_end=3),
                SymbolFact(name="put", kind="method", line_start=5, line_end=6),
            ],
        )
        summary = write_scan(
            temp_db, "/repo", [make_record("store.py", symbols=[cls])], datetime.now(UTC)
        )
        assert summary.symbol_count == 3
        assert index_counts(temp_db).symbols == 3

    def test_failed_insert_rolls_back(
        self,
        call_graph_db: Database,
        make_record: Callable[..., FileRecord],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failure partway through leaves the previous index and scans intact."""
        before = index_counts(call_graph_db)
        first = latest_scan(call_graph_db)
        real_insert = store.insert_file_record
        inserted: list[str] = []

        def failing_insert(writer: IndexWriter, record: FileRecord, indexed_at: str) -> object:
            if inserted:
                raise OperationalError("INSERT INTO files", {}, Exception("disk I/O error"))
            inserted.append(record.path)
            return real_insert(writer, record, indexed_at)

        monkeypatch.setattr(store, "insert_file_record", failing_insert)
        records = [make_record("new_a.py", "n = 1\n"), make_record("new_b.py", "m = 2\n")]

        with pytest.raises(StorageError) as exc_info:
            write_scan(call_graph_db, "/repo", records, datetime.now(UTC))

        assert exc_info.value.code == ErrorCode.STORAGE_TRANSACTION_FAILED
        assert inserted == ["new_a.py"]
        assert index_counts(call_graph_db) == before
        scan = latest_scan(call_graph_db)
        assert scan is not None and first is not None
        assert scan.id == first.id
        assert [h.path for h in search_chunks(call_graph_db, "helper")] == ["app.py", "service.py"]
        assert "new_a.py" not in load_file_metadata(call_graph_db)

    def test_empty_scan(self, temp_db: Database) -> None:
        """A scan with no files still records a scans row."""
        summary = write_scan(temp_db, "/repo", [], datetime.now(UTC))
        assert summary.file_count == 0
        assert latest_scan(temp_db) is not None


class TestStampLatestScanCommit:
    """Tests for stamp_latest_scan_commit."""

    def test_updates_latest_only(
        self, temp_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """Only the newest scan row gets the new commit."""
        first = write_scan(temp_db, "/repo", [make_record("a.py")], datetime.now(UTC), "old")
        write_scan(temp_db, "/repo", [make_record("a.py")], datetime.now(UTC), "mid")

        stamp_latest_scan_commit(temp_db, "new")

        scan = latest_scan(temp_db)
        assert scan is not None
        assert scan.commit_hash == "new"
        old = temp_db.scalar("SELECT commit_hash FROM scans WHERE id = :id", {"id": first.id})
        assert old == "old"


class TestFileMetadata:
    """Tests for load_file_metadata."""

    def test_returns_recorded_hashes(
        self, temp_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """Each path maps to its stored hash, size and mod time."""
        record = make_record("a.py", "x = 1\n")
        write_scan(temp_db, "/repo", [record], datetime.now(UTC))

        meta = load_file_metadata(temp_db)
        assert set(meta) == {"a.py"}
        assert meta["a.py"].hash == record.hash
        assert meta["a.py"].size == record.size
        assert meta["a.py"].mod_time == "2024-01-01T00:00:00Z"


class TestSearchChunks:
    """Tests for full-text chunk search."""

    def test_finds_chunks_ordered_by_path(self, call_graph_db: Database) -> None:
        """Hits come back ordered by path, then chunk index."""
        hits = search_chunks(call_graph_db, "helper")
        assert [h.path for h in hits] == ["app.py", "service.py"]
        assert hits[0].start_line == 1

    def test_empty_query_returns_nothing(self, call_graph_db: Database) -> None:
        """Blank queries do not reach the full-text index."""
        assert search_chunks(call_graph_db, "   ") == []

    def test_quotes_are_escaped(self, call_graph_db: Database) -> None:
        """Queries with FTS syntax characters do not raise."""
        assert search_chunks(call_graph_db, 'helper" OR "x') == []

    def test_limit(self, call_graph_db: Database) -> None:
        """At most limit hits are returned."""
        assert len(search_chunks(call_graph_db, "helper", limit=1)) == 1

    def test_get_chunks_for_file(
        self, temp_db: Database, make_record: Callable[..., FileRecord]
    ) -> None:
        """Chunks are returned in index order."""
        content = "\n".join(f"line {i}" for i in range(1, 301))
        write_scan(temp_db, "/repo", [make_record("big.py", content)], datetime.now(UTC))

        chunks = get_chunks_for_file(temp_db, "big.py")
        assert [c.chunk_index for c in chunks] == [0, 1, 2]
        assert chunks[0].start_line == 1
        assert chunks[-1].end_line == 300
