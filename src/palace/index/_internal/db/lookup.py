"""Read-side lookups over symbols, import edges and decisions."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import or_
from sqlmodel import col, select

from palace.index._internal.db.store import format_timestamp, sanitize_fts_query
from palace.index.models import Decision, IndexedFile, Relation, RelationKind, Symbol

if TYPE_CHECKING:
    from palace.index._internal.db.database import Database

logger = structlog.get_logger()

MAX_DECISION_HITS = 10
DEFAULT_KIND_LIMIT = 50


@dataclass(slots=True)
class SymbolInfo:
    """A symbol as returned to callers, optionally with its children."""

    name: str
    kind: str
    file_path: str
    line_start: int
    line_end: int
    signature: str = ""
    doc_comment: str = ""
    exported: bool = False
    children: list[SymbolInfo] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Symbol) -> SymbolInfo:
        return cls(
            name=row.name,
            kind=row.kind,
            file_path=row.file_path,
            line_start=row.line_start,
            line_end=row.line_end,
            signature=row.signature or "",
            doc_comment=row.doc_comment or "",
            exported=bool(row.exported),
        )

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "name": self.name,
            "kind": self.kind,
            "file_path": self.file_path,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "exported": self.exported,
        }
        if self.signature:
            data["signature"] = self.signature
        if self.doc_comment:
            data["doc_comment"] = self.doc_comment
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass(frozen=True, slots=True)
class ImportInfo:
    source_file: str
    target_file: str | None
    target_symbol: str | None
    kind: str
    line: int

    def to_dict(self) -> dict[str, object]:
        return {
            "source_file": self.source_file,
            "target_file": self.target_file,
            "target_symbol": self.target_symbol,
            "kind": self.kind,
            "line": self.line,
        }


@dataclass(slots=True)
class DecisionRecord:
    """An architectural decision co-located in the index store."""

    id: str
    title: str
    summary: str = ""
    rationale: str = ""
    room: str = ""
    affected_files: list[str] = field(default_factory=list)
    created_at: str = ""

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "room": self.room,
            "title": self.title,
            "summary": self.summary,
            "rationale": self.rationale,
            "affected_files": list(self.affected_files),
            "created_at": self.created_at,
        }


# =============================================================================
# Symbols
# =============================================================================


def search_symbols(db: Database, query: str, limit: int) -> list[SymbolInfo]:
    """FTS match over symbol names and doc comments, ordered by file and line."""
    if not query.strip():
        return []
    rows = db.execute_raw(
        """
        SELECT DISTINCT s.id, s.name, s.kind, s.file_path, s.line_start, s.line_end,
               s.signature, s.doc_comment, s.exported
        FROM symbols_fts
        JOIN symbols s ON s.name = symbols_fts.name AND s.file_path = symbols_fts.file_path
        WHERE symbols_fts MATCH :query
        ORDER BY s.file_path, s.line_start
        LIMIT :limit
        """,
        {"query": sanitize_fts_query(query), "limit": limit},
    )
    return [
        SymbolInfo(
            name=name,
            kind=kind,
            file_path=path,
            line_start=start,
            line_end=end,
            signature=sig or "",
            doc_comment=doc or "",
            exported=bool(exported),
        )
        for _id, name, kind, path, start, end, sig, doc, exported in rows
    ]


def search_symbols_by_kind(
    db: Database, kind: str, limit: int = DEFAULT_KIND_LIMIT
) -> list[SymbolInfo]:
    if limit <= 0:
        limit = DEFAULT_KIND_LIMIT
    stmt = (
        select(Symbol)
        .where(Symbol.kind == kind)
        .order_by(col(Symbol.file_path), col(Symbol.line_start))
        .limit(limit)
    )
    with db.session() as session:
        return [SymbolInfo.from_row(s) for s in session.exec(stmt)]


def get_symbol(db: Database, name: str, file_path: str | None = None) -> SymbolInfo | None:
    """First symbol with this name, optionally restricted to one file."""
    stmt = select(Symbol).where(Symbol.name == name)
    if file_path:
        stmt = stmt.where(Symbol.file_path == file_path)
    with db.session() as session:
        row = session.exec(stmt.order_by(col(Symbol.id)).limit(1)).first()
    return SymbolInfo.from_row(row) if row is not None else None


def list_exported_symbols(db: Database, file_path: str) -> list[SymbolInfo]:
    stmt = (
        select(Symbol)
        .where(Symbol.file_path == file_path, col(Symbol.exported).is_(True))
        .order_by(col(Symbol.line_start))
    )
    with db.session() as session:
        return [SymbolInfo.from_row(s) for s in session.exec(stmt)]


def get_symbols_for_file(db: Database, path: str) -> list[SymbolInfo]:
    """Top-level symbols of a file with nested children rebuilt from parent_id."""
    stmt = (
        select(Symbol)
        .where(Symbol.file_path == path)
        .order_by(col(Symbol.line_start), col(Symbol.id))
    )
    with db.session() as session:
        rows = list(session.exec(stmt))

    by_id: dict[int, SymbolInfo] = {}
    for row in rows:
        if row.id is not None:
            by_id[row.id] = SymbolInfo.from_row(row)

    top_level: list[SymbolInfo] = []
    for row in rows:
        if row.id is None:
            continue
        info = by_id[row.id]
        if row.parent_id is None:
            top_level.append(info)
        elif (parent := by_id.get(row.parent_id)) is not None:
            parent.children.append(info)
    return top_level


def get_imports_for_file(db: Database, path: str) -> list[ImportInfo]:
    stmt = (
        select(Relation)
        .where(Relation.source_file == path, Relation.kind == RelationKind.IMPORT.value)
        .order_by(col(Relation.line), col(Relation.id))
    )
    with db.session() as session:
        return [
            ImportInfo(r.source_file, r.target_file, r.target_symbol, r.kind, r.line)
            for r in session.exec(stmt)
        ]


def get_file_language(db: Database, path: str) -> str:
    """Recorded language of a file, or "" when the file is not indexed."""
    with db.session() as session:
        stmt = select(IndexedFile.language).where(IndexedFile.path == path)
        language = session.exec(stmt).first()
    return language or ""


# =============================================================================
# Decisions
# =============================================================================


def _decode_affected_files(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        # Rows written by older tooling used a comma-joined list
        return [p for p in raw.split(",") if p]
    if isinstance(value, list):
        return [str(p) for p in value]
    return []


def record_decision(db: Database, decision: DecisionRecord) -> None:
    """Insert or replace a decision keyed by id."""
    created_at = decision.created_at or format_timestamp(datetime.now(UTC))
    with db.index_writer("record_decision") as writer:
        writer.delete_where(Decision, "id = :id", {"id": decision.id})
        writer.insert_many(
            Decision,
            [
                {
                    "id": decision.id,
                    "room": decision.room,
                    "title": decision.title,
                    "summary": decision.summary,
                    "rationale": decision.rationale,
                    "affected_files": json.dumps(decision.affected_files),
                    "created_at": created_at,
                    "created_by": "",
                }
            ],
        )
    logger.debug("decision_recorded", decision_id=decision.id)


def search_decisions(db: Database, query: str) -> list[DecisionRecord]:
    """Substring match over title, summary and rationale (max 10)."""
    pattern = f"%{query}%"
    stmt = (
        select(Decision)
        .where(
            or_(
                col(Decision.title).like(pattern),
                col(Decision.summary).like(pattern),
                col(Decision.rationale).like(pattern),
            )
        )
        .order_by(col(Decision.created_at).desc(), col(Decision.id))
        .limit(MAX_DECISION_HITS)
    )
    with db.session() as session:
        return [
            DecisionRecord(
                id=d.id,
                title=d.title,
                summary=d.summary or "",
                rationale=d.rationale or "",
                room=d.room or "",
                affected_files=_decode_affected_files(d.affected_files),
                created_at=d.created_at,
            )
            for d in session.exec(stmt)
        ]
