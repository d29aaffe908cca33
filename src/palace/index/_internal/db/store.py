"""Index reads and writes: full scan rewrite, per-file inserts, chunk search."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func
from sqlmodel import col, select

from palace.index.models import Chunk, IndexedFile, Relation, Scan, Symbol

if TYPE_CHECKING:
    from palace.index._internal.analysis import SymbolFact
    from palace.index._internal.db.database import Database, IndexWriter
    from palace.index._internal.indexing.scanner import FileRecord

logger = structlog.get_logger()

DEFAULT_SEARCH_LIMIT = 20


@dataclass(slots=True)
class ScanSummary:
    """Metadata and counts for one completed full scan."""

    id: int
    root: str
    scan_hash: str
    commit_hash: str | None
    file_count: int
    chunk_count: int
    symbol_count: int
    relationship_count: int
    started_at: datetime | None
    completed_at: datetime


@dataclass(frozen=True, slots=True)
class FileMetadata:
    hash: str
    size: int
    mod_time: str


@dataclass(frozen=True, slots=True)
class IndexCounts:
    files: int
    chunks: int
    symbols: int
    relationships: int


@dataclass(frozen=True, slots=True)
class ChunkHit:
    path: str
    chunk_index: int
    start_line: int
    end_line: int
    content: str


@dataclass(slots=True)
class _InsertCounts:
    chunks: int = 0
    symbols: int = 0
    relationships: int = 0


def format_timestamp(value: datetime) -> str:
    """RFC 3339 in UTC with second precision."""
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def compute_scan_hash(records: Iterable[FileRecord]) -> str:
    """SHA-256 over path then content hash of each record, in order."""
    h = hashlib.sha256()
    for record in records:
        h.update(record.path.encode("utf-8"))
        h.update(record.hash.encode("utf-8"))
    return h.hexdigest()


def _insert_symbols(
    writer: IndexWriter,
    file_path: str,
    symbols: list[SymbolFact],
    parent_id: int | None,
) -> int:
    count = 0
    for sym in symbols:
        symbol_id = writer.insert_returning_id(
            Symbol,
            {
                "file_path": file_path,
                "name": sym.name,
                "kind": sym.kind,
                "line_start": sym.line_start,
                "line_end": sym.line_end,
                "signature": sym.signature,
                "doc_comment": sym.doc_comment,
                "parent_id": parent_id,
                "exported": sym.exported,
            },
        )
        writer.insert_symbol_fts(
            {
                "name": sym.name,
                "file_path": file_path,
                "kind": sym.kind,
                "doc_comment": sym.doc_comment,
            }
        )
        count += 1
        if sym.children:
            count += _insert_symbols(writer, file_path, sym.children, symbol_id)
    return count


def insert_file_record(writer: IndexWriter, record: FileRecord, indexed_at: str) -> _InsertCounts:
    """Insert a file with its chunks, symbol tree and relationships."""
    counts = _InsertCounts()
    writer.insert_many(
        IndexedFile,
        [
            {
                "path": record.path,
                "hash": record.hash,
                "size": record.size,
                "mod_time": format_timestamp(record.mod_time),
                "indexed_at": indexed_at,
                "language": record.language,
            }
        ],
    )

    chunk_rows = [
        {
            "path": record.path,
            "chunk_index": chunk.index,
            "start_line": chunk.start_line,
            "end_line": chunk.end_line,
            "content": chunk.content,
        }
        for chunk in record.chunks
    ]
    writer.insert_many(Chunk, chunk_rows)
    writer.insert_chunk_fts(
        [
            {"path": r["path"], "content": r["content"], "chunk_index": r["chunk_index"]}
            for r in chunk_rows
        ]
    )
    counts.chunks = len(chunk_rows)

    if record.analysis is not None:
        counts.symbols = _insert_symbols(writer, record.path, record.analysis.symbols, None)
        counts.relationships = writer.insert_many(
            Relation,
            [
                {
                    "source_file": record.path,
                    "source_symbol_id": None,
                    "target_file": rel.target_file,
                    "target_symbol": rel.target_symbol,
                    "kind": rel.kind,
                    "line": rel.line,
                    "column": rel.column,
                }
                for rel in record.analysis.relationships
            ],
        )
    return counts


def write_scan(
    db: Database,
    root: str,
    records: list[FileRecord],
    started_at: datetime,
    commit_hash: str | None = None,
) -> ScanSummary:
    """Replace the whole index with records and append a scans row.

    Runs in a single transaction: readers see either the previous index or
    the complete new one.
    """
    scan_hash = compute_scan_hash(records)
    totals = _InsertCounts()

    with db.index_writer("write_scan") as writer:
        writer.clear_index()
        indexed_at = format_timestamp(datetime.now(UTC))
        for record in records:
            counts = insert_file_record(writer, record, indexed_at)
            totals.chunks += counts.chunks
            totals.symbols += counts.symbols
            totals.relationships += counts.relationships

        completed_at = datetime.now(UTC).replace(microsecond=0)
        scan_id = writer.insert_returning_id(
            Scan,
            {
                "root": root,
                "scan_hash": scan_hash,
                "started_at": format_timestamp(started_at),
                "completed_at": format_timestamp(completed_at),
                "commit_hash": commit_hash or None,
            },
        )

    logger.info(
        "scan_written",
        scan_id=scan_id,
        files=len(records),
        chunks=totals.chunks,
        symbols=totals.symbols,
        relationships=totals.relationships,
    )
    return ScanSummary(
        id=scan_id,
        root=root,
        scan_hash=scan_hash,
        commit_hash=commit_hash or None,
        file_count=len(records),
        chunk_count=totals.chunks,
        symbol_count=totals.symbols,
        relationship_count=totals.relationships,
        started_at=started_at.astimezone(UTC).replace(microsecond=0),
        completed_at=completed_at,
    )


def index_counts(db: Database) -> IndexCounts:
    with db.session() as session:
        return IndexCounts(
            files=session.exec(select(func.count()).select_from(IndexedFile)).one(),
            chunks=session.exec(select(func.count()).select_from(Chunk)).one(),
            symbols=session.exec(select(func.count()).select_from(Symbol)).one(),
            relationships=session.exec(select(func.count()).select_from(Relation)).one(),
        )


def latest_scan(db: Database) -> ScanSummary | None:
    """The scan with the highest id, with current index counts, or None."""
    with db.session() as session:
        scan = session.exec(select(Scan).order_by(col(Scan.id).desc()).limit(1)).first()
    if scan is None or scan.id is None:
        return None

    counts = index_counts(db)
    return ScanSummary(
        id=scan.id,
        root=scan.root,
        scan_hash=scan.scan_hash,
        commit_hash=scan.commit_hash,
        file_count=counts.files,
        chunk_count=counts.chunks,
        symbol_count=counts.symbols,
        relationship_count=counts.relationships,
        started_at=parse_timestamp(scan.started_at),
        completed_at=parse_timestamp(scan.completed_at),
    )


def stamp_latest_scan_commit(db: Database, commit_hash: str) -> None:
    """Record the commit an incremental scan brought the index up to."""
    with db.index_writer("stamp_scan_commit") as writer:
        writer.update_where(
            Scan,
            {"commit_hash": commit_hash},
            "id = (SELECT MAX(id) FROM scans)",
            {},
        )


def load_file_metadata(db: Database) -> dict[str, FileMetadata]:
    """path -> recorded hash, size and mod time."""
    with db.session() as session:
        rows = session.exec(
            select(IndexedFile.path, IndexedFile.hash, IndexedFile.size, IndexedFile.mod_time)
        )
        return {path: FileMetadata(hash=h, size=size, mod_time=mod) for path, h, size, mod in rows}


def sanitize_fts_query(query: str) -> str:
    """Quote a user query as a single FTS5 phrase."""
    return '"' + query.replace('"', '""') + '"'


def search_chunks(db: Database, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[ChunkHit]:
    """Full-text chunk search, ordered by path then chunk index."""
    if not query.strip():
        return []
    if limit <= 0:
        limit = DEFAULT_SEARCH_LIMIT
    rows = db.execute_raw(
        """
        SELECT c.path, c.chunk_index, c.start_line, c.end_line, c.content
        FROM chunks_fts
        JOIN chunks c ON c.path = chunks_fts.path AND c.chunk_index = chunks_fts.chunk_index
        WHERE chunks_fts MATCH :query
        ORDER BY c.path, c.chunk_index
        LIMIT :limit
        """,
        {"query": sanitize_fts_query(query), "limit": limit},
    )
    return [ChunkHit(*row) for row in rows]


def get_chunks_for_file(db: Database, path: str) -> list[ChunkHit]:
    with db.session() as session:
        chunks = session.exec(
            select(Chunk).where(Chunk.path == path).order_by(col(Chunk.chunk_index))
        ).all()
    return [ChunkHit(c.path, c.chunk_index, c.start_line, c.end_line, c.content) for c in chunks]
