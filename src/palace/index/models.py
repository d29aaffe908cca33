"""SQLModel definitions for the palace index.

Single source of truth for row shapes. The physical schema (including the
FTS5 shadow tables ``chunks_fts`` and ``symbols_fts``) is created by the
versioned migrations in ``_internal/db/migrations.py``; these models must
stay column-compatible with that DDL. ``create_all`` is never used.

Timestamps are stored as RFC 3339 strings (UTC, second precision).
"""

from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlmodel import Field, SQLModel

# ============================================================================
# ENUMS
# ============================================================================


class SymbolKind(str, Enum):
    """Kinds of structural symbols an analyzer may report."""

    CLASS = "class"
    INTERFACE = "interface"
    STRUCT = "struct"
    FUNCTION = "function"
    METHOD = "method"
    VARIABLE = "variable"
    CONSTANT = "constant"
    TYPE = "type"
    ENUM = "enum"
    PROPERTY = "property"
    CONSTRUCTOR = "constructor"


class RelationKind(str, Enum):
    """Edge kinds stored in the relationships table."""

    IMPORT = "import"
    CALL = "call"
    REFERENCE = "reference"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES = "uses"


class ChangeAction(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


# ============================================================================
# TABLES
# ============================================================================


class SchemaVersion(SQLModel, table=True):
    """One row per applied migration."""

    __tablename__ = "schema_version"

    version: int = Field(primary_key=True)
    applied_at: str


class IndexedFile(SQLModel, table=True):
    """Tracked file. Deleting a row cascades to chunks, symbols and relationships."""

    __tablename__ = "files"

    path: str = Field(primary_key=True)
    hash: str
    size: int
    mod_time: str
    indexed_at: str
    language: str = ""


class Chunk(SQLModel, table=True):
    """Line-aligned content window, mirrored into chunks_fts by (path, chunk_index)."""

    __tablename__ = "chunks"

    id: int | None = Field(default=None, primary_key=True)
    path: str = Field(
        sa_column=Column(String, ForeignKey("files.path", ondelete="CASCADE"), nullable=False)
    )
    chunk_index: int
    start_line: int
    end_line: int
    content: str


class Scan(SQLModel, table=True):
    """One row per full scan. The latest scan has the highest id."""

    __tablename__ = "scans"

    id: int | None = Field(default=None, primary_key=True)
    root: str
    scan_hash: str
    started_at: str
    completed_at: str
    commit_hash: str | None = None


class Symbol(SQLModel, table=True):
    """Named structural unit. Forms a per-file tree via parent_id."""

    __tablename__ = "symbols"

    id: int | None = Field(default=None, primary_key=True)
    file_path: str = Field(
        sa_column=Column(String, ForeignKey("files.path", ondelete="CASCADE"), nullable=False)
    )
    name: str
    kind: str
    line_start: int
    line_end: int
    signature: str = ""
    doc_comment: str = ""
    parent_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("symbols.id", ondelete="CASCADE"), nullable=True),
    )
    exported: bool = False


class Relation(SQLModel, table=True):
    """Directed edge of the import/call/reference graphs.

    target_file and target_symbol are None when the analyzer could not
    resolve them.
    """

    __tablename__ = "relationships"

    id: int | None = Field(default=None, primary_key=True)
    source_file: str = Field(
        sa_column=Column(String, ForeignKey("files.path", ondelete="CASCADE"), nullable=False)
    )
    source_symbol_id: int | None = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("symbols.id", ondelete="CASCADE"), nullable=True),
    )
    target_file: str | None = None
    target_symbol: str | None = None
    kind: str
    line: int = 0
    column: int = 0


class Decision(SQLModel, table=True):
    """Recorded architectural decision. affected_files is a JSON list."""

    __tablename__ = "decisions"

    id: str = Field(primary_key=True)
    room: str = ""
    title: str
    summary: str = ""
    rationale: str = ""
    affected_files: str = "[]"
    created_at: str
    created_by: str = ""
