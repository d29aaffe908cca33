"""Import-graph expansion and file-level dependency queries."""

from __future__ import annotations

import posixpath
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from sqlmodel import Session, col, select

from palace.core.excludes import DEFAULT_EXCLUDE_PATTERNS, should_exclude_file
from palace.index._internal.db.lookup import (
    SymbolInfo,
    get_file_language,
    get_imports_for_file,
    get_symbols_for_file,
)
from palace.index._internal.graph.matcher import (
    QUALIFIED_MATCHER,
    SymbolMatcher,
    match_condition,
)
from palace.index._internal.graph.traversal import clamp_depth
from palace.index.models import Relation, RelationKind

if TYPE_CHECKING:
    from palace.index._internal.db.database import Database

logger = structlog.get_logger()

DEFAULT_EXPAND_DEPTH = 2
DEFAULT_EXPAND_MAX_FILES = 50
DEFAULT_RELATED_MAX_FILES = 20


@dataclass(slots=True)
class ExpandedFile:
    """A file reached by expansion.

    depth is 0 for seeds. expanded_via names the edge that first reached the
    file (``imported-by:<file>``, ``imports:<file>``, ``calls:<symbol>``) and
    is None for seeds.
    """

    path: str
    depth: int = 0
    expanded_via: str | None = None
    imports: list[str] = field(default_factory=list)
    imported_by: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.path,
            "depth": self.depth,
            "expanded_via": self.expanded_via,
            "imports": list(self.imports),
            "imported_by": list(self.imported_by),
        }


@dataclass(slots=True)
class ExpansionResult:
    """Files reached by expansion, ordered by depth then path.

    truncated is set when max_files stopped the walk before every reachable
    file was visited.
    """

    files: list[ExpandedFile] = field(default_factory=list)
    max_depth: int = DEFAULT_EXPAND_DEPTH
    truncated: bool = False

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def to_dict(self) -> dict[str, object]:
        return {
            "files": [f.to_dict() for f in self.files],
            "max_depth": self.max_depth,
            "truncated": self.truncated,
        }


@dataclass(slots=True)
class ExpandOptions:
    max_depth: int = DEFAULT_EXPAND_DEPTH
    include_kinds: tuple[str, ...] = (RelationKind.IMPORT.value,)
    exclude_patterns: Sequence[str] = DEFAULT_EXCLUDE_PATTERNS
    max_files: int = DEFAULT_EXPAND_MAX_FILES
    both_directions: bool = False


@dataclass(slots=True)
class DependencyNode:
    file: str
    language: str
    imports: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ImpactResult:
    """What a change to target would touch."""

    target: str
    dependents: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    symbols: list[SymbolInfo] = field(default_factory=list)


def normalize_path(path: str) -> str:
    """Forward slashes, no redundant separators or dot segments."""
    return posixpath.normpath(path.replace("\\", "/"))


def _outgoing_targets(session: Session, path: str, kinds: Sequence[str]) -> list[str]:
    stmt = (
        select(Relation.target_file)
        .where(Relation.source_file == path, col(Relation.kind).in_(kinds))
        .order_by(col(Relation.line), col(Relation.id))
    )
    return [t for t in session.exec(stmt).all() if t]


def _incoming_sources(session: Session, path: str, kinds: Sequence[str]) -> list[str]:
    stmt = (
        select(Relation.source_file)
        .where(Relation.target_file == path, col(Relation.kind).in_(kinds))
        .order_by(col(Relation.source_file), col(Relation.id))
    )
    return list(session.exec(stmt).all())


def expand_with_dependencies(
    db: Database,
    seed_files: Sequence[str],
    options: ExpandOptions | None = None,
) -> ExpansionResult:
    """Follow import edges outward from seed files, breadth first.

    Each file is visited once, at the shallowest depth it is reachable from
    any seed. Depth is clamped like call chains (non-positive means the
    default, capped at 10). Files beyond max_depth are listed in their
    importer's ``imports`` but not visited. Once max_files have been visited
    any further reachable file marks the result truncated. Excluded files
    are neither visited nor expanded through.
    """
    opts = options or ExpandOptions()
    max_depth = clamp_depth(opts.max_depth, DEFAULT_EXPAND_DEPTH)
    max_files = opts.max_files if opts.max_files > 0 else DEFAULT_EXPAND_MAX_FILES
    kinds = opts.include_kinds or (RelationKind.IMPORT.value,)

    visited: dict[str, ExpandedFile] = {}
    truncated = False
    queue: deque[tuple[str, int, str | None]] = deque((seed, 0, None) for seed in seed_files)

    with db.session() as session:
        while queue:
            path, depth, via = queue.popleft()
            if path in visited or should_exclude_file(path, opts.exclude_patterns):
                continue
            if len(visited) >= max_files:
                truncated = True
                break

            node = ExpandedFile(path=path, depth=depth, expanded_via=via)
            visited[path] = node

            node.imports = _outgoing_targets(session, path, kinds)
            if depth + 1 <= max_depth:
                queue.extend((t, depth + 1, f"imported-by:{path}") for t in node.imports)

            if opts.both_directions:
                node.imported_by = _incoming_sources(session, path, kinds)
                if depth + 1 <= max_depth:
                    queue.extend((s, depth + 1, f"imports:{path}") for s in node.imported_by)

    files = sorted(visited.values(), key=lambda f: (f.depth, f.path))
    if truncated:
        logger.info("dependency_expansion_truncated", seeds=len(seed_files), max_files=max_files)
    logger.debug("dependencies_expanded", seeds=len(seed_files), files=len(files))
    return ExpansionResult(files=files, max_depth=max_depth, truncated=truncated)


def get_import_graph(db: Database, files: Sequence[str]) -> dict[str, ExpandedFile]:
    """Direct imports and importers of each non-excluded file, without recursion."""
    kinds = (RelationKind.IMPORT.value,)
    result: dict[str, ExpandedFile] = {}
    with db.session() as session:
        for path in files:
            if should_exclude_file(path, DEFAULT_EXCLUDE_PATTERNS):
                continue
            result[path] = ExpandedFile(
                path=path,
                imports=_outgoing_targets(session, path, kinds),
                imported_by=_incoming_sources(session, path, kinds),
            )
    return result


def get_related_files_by_symbol(
    db: Database,
    symbol_name: str,
    max_files: int = DEFAULT_RELATED_MAX_FILES,
    matcher: SymbolMatcher | None = None,
) -> list[ExpandedFile]:
    """Files that call symbol_name, then files that reference it, deduplicated."""
    if max_files <= 0:
        max_files = DEFAULT_RELATED_MAX_FILES
    matcher = matcher or QUALIFIED_MATCHER

    result: list[ExpandedFile] = []
    seen: set[str] = set()
    with db.session() as session:
        for kind, label in ((RelationKind.CALL, "calls"), (RelationKind.REFERENCE, "references")):
            remaining = max_files - len(result)
            if remaining <= 0:
                break
            stmt = (
                select(Relation.source_file)
                .where(Relation.kind == kind.value)
                .where(match_condition(col(Relation.target_symbol), symbol_name, matcher))
                .distinct()
                .order_by(col(Relation.source_file))
                .limit(remaining)
            )
            for path in session.exec(stmt).all():
                if path in seen or len(result) >= max_files:
                    continue
                seen.add(path)
                result.append(
                    ExpandedFile(path=path, depth=1, expanded_via=f"{label}:{symbol_name}")
                )
    return result


def get_dependency_graph(db: Database, root_files: Sequence[str]) -> list[DependencyNode]:
    """Language and direct import targets for each root file, each visited once."""
    nodes: list[DependencyNode] = []
    seen: set[str] = set()
    for path in root_files:
        if path in seen:
            continue
        seen.add(path)
        nodes.append(
            DependencyNode(
                file=path,
                language=get_file_language(db, path),
                imports=[i.target_file for i in get_imports_for_file(db, path) if i.target_file],
            )
        )
    return nodes


def get_impact(db: Database, target: str) -> ImpactResult:
    """Dependents (by substring match on import targets), dependencies and symbols."""
    kind = RelationKind.IMPORT.value
    with db.session() as session:
        dependents = session.exec(
            select(Relation.source_file)
            .where(Relation.kind == kind, col(Relation.target_file).like(f"%{target}%"))
            .distinct()
            .order_by(col(Relation.source_file))
        ).all()
        dependencies = session.exec(
            select(Relation.target_file)
            .where(
                Relation.kind == kind,
                Relation.source_file == target,
                col(Relation.target_file).is_not(None),
            )
            .distinct()
            .order_by(col(Relation.target_file))
        ).all()
    return ImpactResult(
        target=target,
        dependents=list(dependents),
        dependencies=[d for d in dependencies if d],
        symbols=get_symbols_for_file(db, target),
    )
