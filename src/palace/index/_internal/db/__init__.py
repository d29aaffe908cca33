"""Database layer for the index."""

from palace.index._internal.db.database import Database, IndexWriter, open_database
from palace.index._internal.db.lookup import (
    DecisionRecord,
    ImportInfo,
    SymbolInfo,
    get_file_language,
    get_imports_for_file,
    get_symbol,
    get_symbols_for_file,
    list_exported_symbols,
    record_decision,
    search_decisions,
    search_symbols,
    search_symbols_by_kind,
)
from palace.index._internal.db.migrations import (
    LATEST_VERSION,
    MIGRATIONS,
    get_schema_version,
    run_migrations,
)
from palace.index._internal.db.store import (
    ChunkHit,
    FileMetadata,
    IndexCounts,
    ScanSummary,
    compute_scan_hash,
    get_chunks_for_file,
    index_counts,
    insert_file_record,
    latest_scan,
    load_file_metadata,
    search_chunks,
    stamp_latest_scan_commit,
    write_scan,
)

__all__ = [
    "Database",
    "IndexWriter",
    "open_database",
    "DecisionRecord",
    "ImportInfo",
    "SymbolInfo",
    "get_file_language",
    "get_imports_for_file",
    "get_symbol",
    "get_symbols_for_file",
    "list_exported_symbols",
    "record_decision",
    "search_decisions",
    "search_symbols",
    "search_symbols_by_kind",
    "LATEST_VERSION",
    "MIGRATIONS",
    "get_schema_version",
    "run_migrations",
    "ChunkHit",
    "FileMetadata",
    "IndexCounts",
    "ScanSummary",
    "compute_scan_hash",
    "get_chunks_for_file",
    "index_counts",
    "insert_file_record",
    "latest_scan",
    "load_file_metadata",
    "search_chunks",
    "stamp_latest_scan_commit",
    "write_scan",
]
