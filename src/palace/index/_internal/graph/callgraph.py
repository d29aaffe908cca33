"""Direct call edges: callers and callees of a symbol, per-file call graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import func
from sqlmodel import Session, col, select

from palace.core.errors import GraphError
from palace.index._internal.graph.matcher import (
    QUALIFIED_MATCHER,
    SymbolMatcher,
    match_condition,
)
from palace.index.models import Relation, RelationKind, Symbol, SymbolKind

if TYPE_CHECKING:
    from palace.index._internal.db.database import Database

DEFAULT_MOST_CALLED_LIMIT = 20

_CALL = RelationKind.CALL.value
_CALLABLE_KINDS = (SymbolKind.FUNCTION.value, SymbolKind.METHOD.value)


@dataclass(frozen=True, slots=True)
class CallSite:
    """A location where one symbol calls another.

    caller_symbol is the innermost function or method containing the call,
    or None for module-level calls.
    """

    file_path: str
    line: int
    callee_symbol: str
    caller_symbol: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "file_path": self.file_path,
            "line": self.line,
            "caller_symbol": self.caller_symbol,
            "callee_symbol": self.callee_symbol,
        }


@dataclass(slots=True)
class CallGraph:
    scope: str
    incoming_calls: list[CallSite] = field(default_factory=list)
    outgoing_calls: list[CallSite] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SymbolCallCount:
    symbol: str
    count: int


# =============================================================================
# Session-level queries (shared with traversal)
# =============================================================================


def enclosing_symbol(session: Session, file_path: str, line: int) -> str | None:
    """Tightest function or method whose line range contains line."""
    stmt = (
        select(Symbol.name)
        .where(
            Symbol.file_path == file_path,
            Symbol.line_start <= line,
            Symbol.line_end >= line,
            col(Symbol.kind).in_(_CALLABLE_KINDS),
        )
        .order_by(col(Symbol.line_end) - col(Symbol.line_start), col(Symbol.id))
        .limit(1)
    )
    return session.exec(stmt).first()


def incoming_calls(
    session: Session,
    symbol_name: str,
    matcher: SymbolMatcher | None = None,
) -> list[CallSite]:
    stmt = (
        select(Relation.source_file, Relation.line, Relation.target_symbol)
        .where(Relation.kind == _CALL)
        .where(match_condition(col(Relation.target_symbol), symbol_name, matcher))
        .order_by(col(Relation.source_file), col(Relation.line), col(Relation.id))
    )
    return [
        CallSite(
            file_path=path,
            line=line,
            callee_symbol=target or "",
            caller_symbol=enclosing_symbol(session, path, line),
        )
        for path, line, target in session.exec(stmt).all()
    ]


def locate_symbol(
    session: Session, symbol_name: str, file_path: str | None = None
) -> Symbol | None:
    stmt = select(Symbol).where(Symbol.name == symbol_name)
    if file_path:
        stmt = stmt.where(Symbol.file_path == file_path)
    return session.exec(stmt.order_by(col(Symbol.id)).limit(1)).first()


def outgoing_calls(
    session: Session, symbol_name: str, file_path: str | None = None
) -> list[CallSite] | None:
    """Calls made inside the symbol's line range, or None if it is unknown."""
    symbol = locate_symbol(session, symbol_name, file_path)
    if symbol is None:
        return None
    stmt = (
        select(Relation.source_file, Relation.line, Relation.target_symbol)
        .where(
            Relation.kind == _CALL,
            Relation.source_file == symbol.file_path,
            Relation.line >= symbol.line_start,
            Relation.line <= symbol.line_end,
        )
        .order_by(col(Relation.line), col(Relation.id))
    )
    return [
        CallSite(
            file_path=path,
            line=line,
            callee_symbol=target or "",
            caller_symbol=symbol_name,
        )
        for path, line, target in session.exec(stmt).all()
    ]


def symbol_file(session: Session, symbol_name: str) -> str | None:
    stmt = (
        select(Symbol.file_path)
        .where(Symbol.name == symbol_name)
        .order_by(col(Symbol.id))
        .limit(1)
    )
    return session.exec(stmt).first()


# =============================================================================
# Public API
# =============================================================================


def get_incoming_calls(
    db: Database,
    symbol_name: str,
    matcher: SymbolMatcher | None = None,
) -> list[CallSite]:
    """All call sites targeting symbol_name, ordered by file then line.

    symbol_name may be a bare name (``parse``) or qualified (``config.parse``);
    the matcher decides which stored call targets refer to it.
    """
    with db.session() as session:
        return incoming_calls(session, symbol_name, matcher)


def get_outgoing_calls(
    db: Database,
    symbol_name: str,
    file_path: str | None = None,
) -> list[CallSite]:
    """Calls made from within the symbol's body, ordered by line.

    Raises:
        GraphError: symbol_not_found when no such symbol is indexed.
    """
    with db.session() as session:
        calls = outgoing_calls(session, symbol_name, file_path)
    if calls is None:
        raise GraphError.symbol_not_found(symbol_name, file_path)
    return calls


def find_enclosing_symbol(db: Database, file_path: str, line: int) -> str | None:
    with db.session() as session:
        return enclosing_symbol(session, file_path, line)


def find_symbol_file(db: Database, symbol_name: str) -> str | None:
    """File where symbol_name is defined (first match), or None."""
    with db.session() as session:
        return symbol_file(session, symbol_name)


def get_call_graph(
    db: Database,
    file_path: str,
    matcher: SymbolMatcher | None = None,
) -> CallGraph:
    """Calls made from a file plus calls into its symbols from other files."""
    result = CallGraph(scope=file_path)
    with db.session() as session:
        out_stmt = (
            select(Relation.source_file, Relation.line, Relation.target_symbol)
            .where(Relation.kind == _CALL, Relation.source_file == file_path)
            .order_by(col(Relation.line), col(Relation.id))
        )
        for path, line, target in session.exec(out_stmt).all():
            result.outgoing_calls.append(
                CallSite(
                    file_path=path,
                    line=line,
                    callee_symbol=target or "",
                    caller_symbol=enclosing_symbol(session, path, line),
                )
            )

        names = session.exec(
            select(Symbol.name)
            .where(Symbol.file_path == file_path)
            .order_by(col(Symbol.line_start), col(Symbol.id))
        ).all()
        for name in names:
            result.incoming_calls.extend(
                call
                for call in incoming_calls(session, name, matcher)
                if call.file_path != file_path
            )
    return result


def get_callers_count(db: Database, symbol_name: str) -> int:
    stmt = (
        select(func.count())
        .select_from(Relation)
        .where(Relation.kind == _CALL)
        .where(match_condition(col(Relation.target_symbol), symbol_name, QUALIFIED_MATCHER))
    )
    with db.session() as session:
        return session.exec(stmt).one()


def get_most_called_symbols(
    db: Database, limit: int = DEFAULT_MOST_CALLED_LIMIT
) -> list[SymbolCallCount]:
    """Call targets ranked by number of call sites."""
    if limit <= 0:
        limit = DEFAULT_MOST_CALLED_LIMIT
    call_count = func.count().label("call_count")
    stmt = (
        select(Relation.target_symbol, call_count)
        .where(Relation.kind == _CALL, col(Relation.target_symbol).is_not(None))
        .group_by(col(Relation.target_symbol))
        .order_by(call_count.desc(), col(Relation.target_symbol))
        .limit(limit)
    )
    with db.session() as session:
        return [SymbolCallCount(symbol=s, count=n) for s, n in session.exec(stmt).all()]
