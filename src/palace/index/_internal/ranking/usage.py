"""Usage and centrality scores derived from relationship counts.

File usage scores are normalized per batch: the most-used file in the batch
scores 1.0 and a batch with no signal at all scores 0 everywhere. Symbol
centrality is log-damped and normalized against a fixed saturation point, so
it is comparable across calls.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlmodel import Session, col, select

from palace.index._internal.graph.callgraph import locate_symbol
from palace.index._internal.graph.matcher import QUALIFIED_MATCHER, match_condition
from palace.index.models import Relation, RelationKind, Symbol

if TYPE_CHECKING:
    from palace.index._internal.db.database import Database
    from palace.index._internal.db.lookup import SymbolInfo

DEFAULT_RANK_LIMIT = 20

# log2(1 + 2*in + out) reaches this at roughly a hundred weighted calls
CENTRALITY_SATURATION = 7.0
INCOMING_CENTRALITY_WEIGHT = 2.0
OUTGOING_CENTRALITY_WEIGHT = 1.0

_CALL = RelationKind.CALL.value
_IMPORT = RelationKind.IMPORT.value
_CONNECTION_KINDS = (
    RelationKind.CALL.value,
    RelationKind.IMPORT.value,
    RelationKind.REFERENCE.value,
)


@dataclass(frozen=True, slots=True)
class UsageWeights:
    incoming_call: float = 2.0
    outgoing_call: float = 0.5
    imported_by: float = 1.5
    imports: float = 0.3
    symbols: float = 0.2


DEFAULT_USAGE_WEIGHTS = UsageWeights()


@dataclass(slots=True)
class FileUsageScore:
    """Raw usage counts for one file plus its normalized score in [0, 1]."""

    path: str
    incoming_calls: int = 0
    outgoing_calls: int = 0
    imported_by: int = 0
    imports: int = 0
    symbol_count: int = 0
    usage_score: float = 0.0

    def raw_score(self, weights: UsageWeights = DEFAULT_USAGE_WEIGHTS) -> float:
        return (
            self.incoming_calls * weights.incoming_call
            + self.outgoing_calls * weights.outgoing_call
            + self.imported_by * weights.imported_by
            + self.imports * weights.imports
            + self.symbol_count * weights.symbols
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "incoming_calls": self.incoming_calls,
            "outgoing_calls": self.outgoing_calls,
            "imported_by": self.imported_by,
            "imports": self.imports,
            "symbol_count": self.symbol_count,
            "usage_score": self.usage_score,
        }


def _count(session: Session, stmt: Any) -> int:
    return int(session.exec(stmt).one())


def _file_counts(session: Session, path: str) -> FileUsageScore:
    incoming = (
        select(func.count())
        .select_from(Relation)
        .join(Symbol, col(Relation.target_symbol) == col(Symbol.name))
        .where(Symbol.file_path == path, Relation.kind == _CALL, Relation.source_file != path)
    )
    outgoing = (
        select(func.count())
        .select_from(Relation)
        .where(Relation.source_file == path, Relation.kind == _CALL)
    )
    importers = select(func.count(func.distinct(Relation.source_file))).where(
        Relation.target_file == path, Relation.kind == _IMPORT
    )
    imported = select(func.count(func.distinct(Relation.target_file))).where(
        Relation.source_file == path, Relation.kind == _IMPORT
    )
    symbols = select(func.count()).select_from(Symbol).where(Symbol.file_path == path)
    return FileUsageScore(
        path=path,
        incoming_calls=_count(session, incoming),
        outgoing_calls=_count(session, outgoing),
        imported_by=_count(session, importers),
        imports=_count(session, imported),
        symbol_count=_count(session, symbols),
    )


def get_file_usage_scores(
    db: Database,
    files: Sequence[str],
    weights: UsageWeights | None = None,
) -> dict[str, FileUsageScore]:
    """Counts and batch-normalized usage score for each file."""
    weights = weights or DEFAULT_USAGE_WEIGHTS
    scores: dict[str, FileUsageScore] = {}
    raw: dict[str, float] = {}
    with db.session() as session:
        for path in files:
            if path in scores:
                continue
            score = _file_counts(session, path)
            scores[path] = score
            raw[path] = score.raw_score(weights)

    max_raw = max(raw.values(), default=0.0)
    if max_raw > 0:
        for path, score in scores.items():
            score.usage_score = raw[path] / max_raw
    return scores


def get_most_imported_files(db: Database, limit: int = DEFAULT_RANK_LIMIT) -> list[FileUsageScore]:
    """Files imported by the most distinct files, scored relative to the top one."""
    if limit <= 0:
        limit = DEFAULT_RANK_LIMIT
    import_count = func.count(func.distinct(Relation.source_file)).label("import_count")
    stmt = (
        select(Relation.target_file, import_count)
        .where(
            Relation.kind == _IMPORT,
            col(Relation.target_file).is_not(None),
            Relation.target_file != "",
        )
        .group_by(col(Relation.target_file))
        .order_by(import_count.desc(), col(Relation.target_file))
        .limit(limit)
    )
    with db.session() as session:
        rows = session.exec(stmt).all()

    results: list[FileUsageScore] = []
    top = rows[0][1] if rows else 0
    for path, count in rows:
        score = count / top if top > 0 else 0.0
        results.append(FileUsageScore(path=path, imported_by=count, usage_score=score))
    return results


def get_most_connected_files(
    db: Database, limit: int = DEFAULT_RANK_LIMIT
) -> list[FileUsageScore]:
    """Hub files ranked by call, import and reference edges in plus out."""
    if limit <= 0:
        limit = DEFAULT_RANK_LIMIT
    rows = db.execute_raw(
        """
        WITH file_connections AS (
            SELECT source_file AS file, COUNT(*) AS outgoing, 0 AS incoming
            FROM relationships
            WHERE kind IN (:k0, :k1, :k2)
            GROUP BY source_file
            UNION ALL
            SELECT target_file AS file, 0 AS outgoing, COUNT(*) AS incoming
            FROM relationships
            WHERE kind IN (:k0, :k1, :k2) AND target_file IS NOT NULL
            GROUP BY target_file
        )
        SELECT file, SUM(outgoing) AS total_out, SUM(incoming) AS total_in
        FROM file_connections
        WHERE file IS NOT NULL AND file != ''
        GROUP BY file
        ORDER BY (SUM(outgoing) + SUM(incoming)) DESC, file
        LIMIT :limit
        """,
        {
            "k0": _CONNECTION_KINDS[0],
            "k1": _CONNECTION_KINDS[1],
            "k2": _CONNECTION_KINDS[2],
            "limit": limit,
        },
    )
    results = [
        FileUsageScore(
            path=path,
            outgoing_calls=int(out),
            incoming_calls=int(inc),
            usage_score=float(out + inc),
        )
        for path, out, inc in rows
    ]
    max_score = max((r.usage_score for r in results), default=0.0)
    if max_score > 0:
        for r in results:
            r.usage_score /= max_score
    return results


def centrality_from_counts(incoming: int, outgoing: int) -> float:
    """Log-damped weighted call count mapped into [0, 1]."""
    weighted = incoming * INCOMING_CENTRALITY_WEIGHT + outgoing * OUTGOING_CENTRALITY_WEIGHT
    if weighted <= 0:
        return 0.0
    return min(math.log2(weighted + 1) / CENTRALITY_SATURATION, 1.0)


def _symbol_centrality(session: Session, name: str, file_path: str | None) -> float:
    incoming = _count(
        session,
        select(func.count())
        .select_from(Relation)
        .where(Relation.kind == _CALL)
        .where(match_condition(col(Relation.target_symbol), name, QUALIFIED_MATCHER)),
    )

    outgoing = 0
    if file_path:
        symbol = locate_symbol(session, name, file_path)
        if symbol is not None:
            outgoing = _count(
                session,
                select(func.count())
                .select_from(Relation)
                .where(
                    Relation.kind == _CALL,
                    Relation.source_file == file_path,
                    Relation.line >= symbol.line_start,
                    Relation.line <= symbol.line_end,
                ),
            )
    return centrality_from_counts(incoming, outgoing)


def get_symbol_centrality(db: Database, name: str, file_path: str | None = None) -> float:
    """How central a symbol is in the call graph, in [0, 1].

    Outgoing calls are only counted when file_path locates the symbol's body.
    """
    with db.session() as session:
        return _symbol_centrality(session, name, file_path)


def batch_get_symbol_centrality(db: Database, symbols: Iterable[SymbolInfo]) -> dict[str, float]:
    """Centrality keyed by ``"<file_path>:<name>"``."""
    result: dict[str, float] = {}
    with db.session() as session:
        for sym in symbols:
            key = f"{sym.file_path}:{sym.name}"
            if key not in result:
                result[key] = _symbol_centrality(session, sym.name, sym.file_path)
    return result
