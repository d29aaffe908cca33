"""Versioned schema migrations for the index database.

Migrations are applied in order, starting from version 0. Each runs once,
inside its own transaction, and records a schema_version row on success.
Never modify an existing migration; append a new one.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from palace.core.errors import StorageError

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from palace.index._internal.db.database import Database

logger = structlog.get_logger()

SCHEMA_VERSION_DDL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
)
"""

_V0_STATEMENTS: tuple[str, ...] = (
    # Core file storage
    """CREATE TABLE IF NOT EXISTS files (
        path TEXT PRIMARY KEY,
        hash TEXT NOT NULL,
        size INTEGER NOT NULL,
        mod_time TEXT NOT NULL,
        indexed_at TEXT NOT NULL,
        language TEXT DEFAULT ''
    )""",
    """CREATE TABLE IF NOT EXISTS chunks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        path TEXT NOT NULL,
        chunk_index INTEGER NOT NULL,
        start_line INTEGER NOT NULL,
        end_line INTEGER NOT NULL,
        content TEXT NOT NULL,
        FOREIGN KEY(path) REFERENCES files(path) ON DELETE CASCADE
    )""",
    """CREATE VIRTUAL TABLE IF NOT EXISTS chunks_fts USING fts5(
        path,
        content,
        chunk_index,
        tokenize="unicode61 tokenchars '_.:@#$-'"
    )""",
    """CREATE TABLE IF NOT EXISTS scans (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        root TEXT NOT NULL,
        scan_hash TEXT NOT NULL,
        started_at TEXT NOT NULL,
        completed_at TEXT NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_chunks_path ON chunks(path)",
    # Symbols: functions, classes, methods, variables
    """CREATE TABLE IF NOT EXISTS symbols (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        file_path TEXT NOT NULL,
        name TEXT NOT NULL,
        kind TEXT NOT NULL,
        line_start INTEGER NOT NULL,
        line_end INTEGER NOT NULL,
        signature TEXT DEFAULT '',
        doc_comment TEXT DEFAULT '',
        parent_id INTEGER DEFAULT NULL,
        exported INTEGER DEFAULT 0,
        FOREIGN KEY(file_path) REFERENCES files(path) ON DELETE CASCADE,
        FOREIGN KEY(parent_id) REFERENCES symbols(id) ON DELETE CASCADE
    )""",
    "CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file_path)",
    "CREATE INDEX IF NOT EXISTS idx_symbols_name ON symbols(name)",
    "CREATE INDEX IF NOT EXISTS idx_symbols_kind ON symbols(kind)",
    """CREATE VIRTUAL TABLE IF NOT EXISTS symbols_fts USING fts5(
        name,
        file_path,
        kind,
        doc_comment,
        tokenize="unicode61 tokenchars '_'"
    )""",
    # Relationships: imports, calls, references, extends
    """CREATE TABLE IF NOT EXISTS relationships (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_file TEXT NOT NULL,
        source_symbol_id INTEGER DEFAULT NULL,
        target_file TEXT DEFAULT NULL,
        target_symbol TEXT DEFAULT NULL,
        kind TEXT NOT NULL,
        line INTEGER DEFAULT 0,
        column INTEGER DEFAULT 0,
        FOREIGN KEY(source_file) REFERENCES files(path) ON DELETE CASCADE,
        FOREIGN KEY(source_symbol_id) REFERENCES symbols(id) ON DELETE CASCADE
    )""",
    "CREATE INDEX IF NOT EXISTS idx_rel_source ON relationships(source_file)",
    "CREATE INDEX IF NOT EXISTS idx_rel_target ON relationships(target_file)",
    "CREATE INDEX IF NOT EXISTS idx_rel_kind ON relationships(kind)",
    # Co-located tables owned by the memory subsystem
    """CREATE TABLE IF NOT EXISTS decisions (
        id TEXT PRIMARY KEY,
        room TEXT DEFAULT '',
        title TEXT NOT NULL,
        summary TEXT DEFAULT '',
        rationale TEXT DEFAULT '',
        affected_files TEXT DEFAULT '[]',
        created_at TEXT NOT NULL,
        created_by TEXT DEFAULT ''
    )""",
    """CREATE TABLE IF NOT EXISTS sessions (
        id TEXT PRIMARY KEY,
        goal TEXT DEFAULT '',
        room TEXT DEFAULT '',
        started_at TEXT NOT NULL,
        last_activity TEXT NOT NULL,
        files_touched TEXT DEFAULT '[]',
        learnings TEXT DEFAULT '[]',
        warnings TEXT DEFAULT '[]',
        state TEXT DEFAULT '{}'
    )""",
    """CREATE TABLE IF NOT EXISTS rooms (
        name TEXT PRIMARY KEY,
        summary TEXT DEFAULT '',
        entry_points TEXT DEFAULT '[]',
        file_patterns TEXT DEFAULT '[]',
        updated_at TEXT NOT NULL
    )""",
)


def _migrate_v0(conn: Connection) -> None:
    """Initial schema."""
    for stmt in _V0_STATEMENTS:
        conn.execute(text(stmt))


def _migrate_v1(conn: Connection) -> None:
    """Track the git commit each scan was taken at."""
    try:
        conn.execute(text("ALTER TABLE scans ADD COLUMN commit_hash TEXT DEFAULT NULL"))
    except OperationalError as e:
        # Column may already exist from a manual addition
        if "duplicate column" not in str(e).lower():
            raise


MIGRATIONS: tuple[Callable[[Connection], None], ...] = (
    _migrate_v0,
    _migrate_v1,
)

LATEST_VERSION = len(MIGRATIONS) - 1


def get_schema_version(db: Database) -> int:
    """Highest applied migration version, or -1 if none."""
    with db.engine.connect() as conn:
        conn.execute(text(SCHEMA_VERSION_DDL))
        conn.commit()
        version = conn.execute(
            text("SELECT COALESCE(MAX(version), -1) FROM schema_version")
        ).scalar()
    return int(version if version is not None else -1)


def run_migrations(db: Database) -> int:
    """Apply every pending migration in order. Returns the resulting version.

    Raises:
        StorageError: migration_failed for the first migration that fails;
            nothing from that migration is committed.
    """
    current = get_schema_version(db)
    for version in range(current + 1, len(MIGRATIONS)):
        try:
            with db.write_transaction(f"migration_{version}") as conn:
                MIGRATIONS[version](conn)
                conn.execute(
                    text("INSERT INTO schema_version (version, applied_at) VALUES (:v, :at)"),
                    {"v": version, "at": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")},
                )
        except StorageError as e:
            reason = str(e.details.get("reason", e.message))
            raise StorageError.migration_failed(version, reason) from e
        logger.info("migration_applied", version=version, db_path=str(db.db_path))
        current = version
    return current
