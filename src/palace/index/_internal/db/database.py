"""Database engine, write transactions and bulk index writer.

This module provides:
- Database: Connection manager with WAL mode, foreign keys and busy handling
- IndexWriter: Core-SQL inserts for files, chunks, symbols and relationships,
  keeping the FTS5 shadow tables in step with their primary rows
- Retry logic for SQLite busy timeout handling when opening write transactions

The hybrid pattern:
- Use ORM sessions for reads and low-volume writes (decisions, scan stamps)
- Use write_transaction/IndexWriter for full and incremental index rewrites
"""

from __future__ import annotations

import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from palace.core.errors import PalaceError, StorageError

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

    from palace.config.models import DatabaseConfig

logger = structlog.get_logger()

# Retry configuration for SQLite busy handling
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 0.1  # 100ms base
DEFAULT_RETRY_MAX_DELAY = 2.0  # 2s max
DEFAULT_BUSY_TIMEOUT_MS = 30000


def _is_database_locked_error(error: Exception) -> bool:
    """Check if error is a SQLite database locked error."""
    error_str = str(error).lower()
    return "database is locked" in error_str or "database is busy" in error_str


def _pragma_listener(busy_timeout_ms: int) -> Callable[[Any, Any], None]:
    def _configure_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
        """Configure SQLite for concurrent reads and a single writer."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA cache_size=-64000")  # 64MB cache
        cursor.close()

    return _configure_pragmas


class Database:
    """SQLite connection manager for one index file.

    Includes retry logic with exponential backoff for handling
    SQLite busy timeouts when a write transaction is opened.
    """

    def __init__(
        self,
        db_path: Path,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    ) -> None:
        self.db_path = db_path
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self._busy_timeout_ms = busy_timeout_ms
        self.engine = self._create_engine()

    @classmethod
    def from_config(cls, db_path: Path, config: DatabaseConfig | None = None) -> Database:
        if config is None:
            return cls(db_path)
        return cls(
            db_path,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay_sec,
            busy_timeout_ms=config.busy_timeout_ms,
        )

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        event.listen(engine, "connect", _pragma_listener(self._busy_timeout_ms))
        return engine

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for reads and low-volume writes."""
        with Session(self.engine) as session:
            yield session

    def _begin_immediate(self, retries: int) -> Connection:
        """Open a connection holding the RESERVED lock, retrying while busy."""
        for attempt in range(retries + 1):  # +1 for initial attempt
            conn = self.engine.connect()
            try:
                conn.exec_driver_sql("BEGIN IMMEDIATE")
                return conn
            except OperationalError as e:
                conn.close()
                if _is_database_locked_error(e) and attempt < retries:
                    delay = min(
                        self._retry_base_delay * (2**attempt),
                        self._retry_max_delay,
                    )
                    logger.warning(
                        "sqlite_busy_retry",
                        attempt=attempt + 1,
                        max_retries=retries,
                        delay_sec=delay,
                    )
                    time.sleep(delay)
                    continue
                raise StorageError.transaction_failed("begin", str(e)) from e
        raise StorageError.transaction_failed("begin", "retries exhausted")

    @contextmanager
    def write_transaction(
        self,
        operation: str,
        max_retries: int | None = None,
    ) -> Generator[Connection, None, None]:
        """
        Connection inside BEGIN IMMEDIATE for multi-statement writes.

        Commits on successful exit. Any exception rolls back the whole
        transaction; SQLAlchemy errors surface as StorageError.transaction_failed.

        Args:
            operation: Name used in logs and errors (e.g. "write_scan")
            max_retries: Override default max retries for acquiring the lock
        """
        retries = max_retries if max_retries is not None else self._max_retries
        conn = self._begin_immediate(retries)
        try:
            yield conn
            conn.commit()
        except SQLAlchemyError as e:
            conn.rollback()
            logger.error("transaction_rolled_back", operation=operation, error=str(e))
            raise StorageError.transaction_failed(operation, str(e)) from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def index_writer(self, operation: str) -> Generator[IndexWriter, None, None]:
        """
        Bulk writer for index rows.

        Auto-commits on successful exit, rolls back on exception.
        """
        with self.write_transaction(operation) as conn:
            yield IndexWriter(conn)

    def execute_raw(self, sql: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Execute a read query and return all rows."""
        with self.engine.connect() as conn:
            return list(conn.execute(text(sql), params or {}))

    def scalar(self, sql: str, params: dict[str, Any] | None = None) -> Any:
        with self.engine.connect() as conn:
            return conn.execute(text(sql), params or {}).scalar()

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()


def open_database(db_path: Path, config: DatabaseConfig | None = None) -> Database:
    """Create parent directories, open the index and migrate it to the latest version.

    The engine is disposed before any error is raised, so a failed open
    never leaks a handle.
    """
    from palace.index._internal.db.migrations import run_migrations

    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageError.open_failed(str(db_path), str(e)) from e

    db = Database.from_config(db_path, config)
    try:
        run_migrations(db)
    except PalaceError:
        db.close()
        raise
    except SQLAlchemyError as e:
        db.close()
        raise StorageError.open_failed(str(db_path), str(e)) from e
    return db


class IndexWriter:
    """Core-SQL inserts for index rows, bypassing ORM overhead.

    Every chunk and symbol insert also writes its FTS5 shadow row on the
    same connection, so both land or roll back together.
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def insert_many(self, model_class: type[SQLModel], records: list[dict[str, Any]]) -> int:
        """Bulk insert records into table, returning count inserted."""
        if not records:
            return 0

        table = model_class.__table__  # type: ignore[attr-defined]
        self.conn.execute(table.insert(), records)
        return len(records)

    def insert_returning_id(self, model_class: type[SQLModel], record: dict[str, Any]) -> int:
        table = model_class.__table__  # type: ignore[attr-defined]
        result = self.conn.execute(table.insert(), record)
        return int(result.inserted_primary_key[0])

    def insert_chunk_fts(self, records: list[dict[str, Any]]) -> None:
        if not records:
            return
        self.conn.execute(
            text(
                "INSERT INTO chunks_fts (path, content, chunk_index) "
                "VALUES (:path, :content, :chunk_index)"
            ),
            records,
        )

    def insert_symbol_fts(self, record: dict[str, Any]) -> None:
        self.conn.execute(
            text(
                "INSERT INTO symbols_fts (name, file_path, kind, doc_comment) "
                "VALUES (:name, :file_path, :kind, :doc_comment)"
            ),
            record,
        )

    def delete_where(
        self,
        model_class: type[SQLModel],
        condition: str,
        params: dict[str, Any],
    ) -> int:
        """Bulk delete rows matching condition, returning count affected."""
        table = model_class.__table__  # type: ignore[attr-defined]
        sql = f"DELETE FROM {table.name} WHERE {condition}"
        result = self.conn.execute(text(sql), params)
        return int(result.rowcount)

    def delete_file(self, path: str) -> None:
        """Remove a file and, by cascade, its chunks, symbols and relationships."""
        self.conn.execute(text("DELETE FROM chunks_fts WHERE path = :path"), {"path": path})
        self.conn.execute(text("DELETE FROM symbols_fts WHERE file_path = :path"), {"path": path})
        self.conn.execute(text("DELETE FROM files WHERE path = :path"), {"path": path})

    def clear_index(self) -> None:
        """Delete every file-derived row, children before parents."""
        for table in (
            "relationships",
            "symbols_fts",
            "symbols",
            "chunks",
            "chunks_fts",
            "files",
        ):
            self.conn.execute(text(f"DELETE FROM {table}"))

    def update_where(
        self,
        model_class: type[SQLModel],
        updates: dict[str, Any],
        condition: str,
        params: dict[str, Any],
    ) -> int:
        """
        Bulk update with condition.

        Returns:
            Number of rows affected
        """
        table = model_class.__table__  # type: ignore[attr-defined]
        set_clause = ", ".join(f"{k} = :upd_{k}" for k in updates)
        sql = f"UPDATE {table.name} SET {set_clause} WHERE {condition}"
        update_params = {f"upd_{k}": v for k, v in updates.items()}
        result = self.conn.execute(text(sql), {**update_params, **params})
        return int(result.rowcount)
