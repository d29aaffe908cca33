"""Recursive call-chain traversal over call relationships.

Chains are built with an explicit frame stack instead of recursion. Each
frame holds the sorted, deduplicated neighbors of one node still waiting to
be emitted; the traversal context carries the depth clamp, the path cap and
the set of keys on the current root-to-node path (cycle guard).

A node whose expansion yields no children is a leaf and completes one path.
Once the path cap is reached every pending sibling is pruned and the result
is marked truncated.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from palace.index._internal.graph.callgraph import (
    CallSite,
    incoming_calls,
    outgoing_calls,
    symbol_file,
)
from palace.index._internal.graph.matcher import SymbolMatcher

if TYPE_CHECKING:
    from sqlmodel import Session

    from palace.index._internal.db.database import Database

logger = structlog.get_logger()

DEFAULT_DEPTH = 3
MAX_DEPTH = 10
DEFAULT_MAX_PATHS = 100


class ChainDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    BOTH = "both"


@dataclass(slots=True)
class CallChainNode:
    symbol: str
    file_path: str | None = None
    line: int = 0
    depth: int = 0
    children: list[CallChainNode] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"symbol": self.symbol, "depth": self.depth}
        if self.file_path:
            data["file_path"] = self.file_path
        if self.line:
            data["line"] = self.line
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass(slots=True)
class CallChainResult:
    target: str
    direction: ChainDirection
    max_depth: int
    chains: list[CallChainNode] = field(default_factory=list)
    total_paths: int = 0
    truncated: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "target": self.target,
            "direction": self.direction.value,
            "max_depth": self.max_depth,
            "chains": [c.to_dict() for c in self.chains],
            "total_paths": self.total_paths,
            "truncated": self.truncated,
        }


def clamp_depth(max_depth: int | None, default: int = DEFAULT_DEPTH, limit: int = MAX_DEPTH) -> int:
    """Non-positive means default; anything above limit is capped."""
    if max_depth is None or max_depth <= 0:
        max_depth = default
    return max(1, min(max_depth, limit))


# =============================================================================
# Worklist traversal
# =============================================================================


@dataclass(frozen=True, slots=True)
class _Step:
    """One neighbor to emit: the node to create and where to continue from."""

    symbol: str
    file_path: str
    line: int
    next_file: str | None
    expand: bool = True


@dataclass(slots=True)
class _Frame:
    key: str
    depth: int
    pending: deque[_Step]
    nodes: list[CallChainNode] = field(default_factory=list)
    open_node: CallChainNode | None = None


@dataclass(slots=True)
class TraversalContext:
    """Limits and mutable bookkeeping for one traversal."""

    max_depth: int
    max_paths: int = DEFAULT_MAX_PATHS
    total_paths: int = 0
    truncated: bool = False
    on_path: set[str] = field(default_factory=set)

    @property
    def path_cap_reached(self) -> bool:
        return self.total_paths >= self.max_paths


NeighborFn = Callable[[str, str | None], list[_Step]]
KeyFn = Callable[[str, str | None], str]


class ChainWalker:
    """Builds a call-chain forest from a neighbor function.

    neighbors(symbol, file) returns the steps below a node; key(symbol, file)
    identifies a node for cycle detection.
    """

    def __init__(self, neighbors: NeighborFn, key: KeyFn, context: TraversalContext) -> None:
        self._neighbors = neighbors
        self._key = key
        self.context = context

    def _enter(self, symbol: str, file_path: str | None, depth: int) -> _Frame | None:
        ctx = self.context
        if depth > ctx.max_depth or ctx.path_cap_reached:
            if ctx.path_cap_reached:
                ctx.truncated = True
            return None
        key = self._key(symbol, file_path)
        if key in ctx.on_path:
            return None
        steps = self._neighbors(symbol, file_path)
        if not steps:
            return None
        ctx.on_path.add(key)
        return _Frame(key=key, depth=depth, pending=deque(steps))

    def walk(self, symbol: str, file_path: str | None) -> list[CallChainNode]:
        ctx = self.context
        root = self._enter(symbol, file_path, 1)
        if root is None:
            return []

        stack = [root]
        while stack:
            frame = stack[-1]
            if frame.pending and ctx.path_cap_reached:
                ctx.truncated = True
                frame.pending.clear()

            if not frame.pending:
                stack.pop()
                ctx.on_path.discard(frame.key)
                if stack:
                    parent = stack[-1]
                    if parent.open_node is not None:
                        parent.open_node.children = frame.nodes
                        parent.open_node = None
                    if not frame.nodes:
                        ctx.total_paths += 1
                continue

            step = frame.pending.popleft()
            node = CallChainNode(
                symbol=step.symbol,
                file_path=step.file_path,
                line=step.line,
                depth=frame.depth,
            )
            frame.nodes.append(node)

            child = None
            if step.expand:
                child = self._enter(step.symbol, step.next_file, frame.depth + 1)
            if child is None:
                ctx.total_paths += 1
            else:
                frame.open_node = node
                stack.append(child)

        return root.nodes


# =============================================================================
# Neighbor functions
# =============================================================================


def _dedupe_sorted(
    calls: Iterable[CallSite], by: Callable[[CallSite], str | None]
) -> list[CallSite]:
    """Keep the earliest call site per name, then order by name."""
    best: dict[str, CallSite] = {}
    for call in calls:
        name = by(call)
        if not name:
            continue
        existing = best.get(name)
        if existing is None or call.line < existing.line:
            best[name] = call
    return [best[name] for name in sorted(best)]


def _caller_steps(session: Session, matcher: SymbolMatcher | None) -> NeighborFn:
    def neighbors(symbol: str, _file: str | None) -> list[_Step]:
        calls = incoming_calls(session, symbol, matcher)
        callers = _dedupe_sorted(calls, lambda c: c.caller_symbol)
        return [
            _Step(
                symbol=c.caller_symbol or "",
                file_path=c.file_path,
                line=c.line,
                next_file=None,
            )
            for c in callers
        ]

    return neighbors


def _callee_steps(session: Session) -> NeighborFn:
    def neighbors(symbol: str, file_path: str | None) -> list[_Step]:
        callees = _dedupe_sorted(
            outgoing_calls(session, symbol, file_path) or [],
            lambda c: c.callee_symbol,
        )
        return [
            _Step(
                symbol=c.callee_symbol,
                file_path=c.file_path,
                line=c.line,
                next_file=next_file,
                # Callees without a known definition file are leaves
                expand=next_file is not None,
            )
            for c in callees
            for next_file in (symbol_file(session, c.callee_symbol),)
        ]

    return neighbors


# =============================================================================
# Public API
# =============================================================================


def get_call_chain_up(
    db: Database,
    symbol_name: str,
    max_depth: int | None = None,
    *,
    max_paths: int = DEFAULT_MAX_PATHS,
    matcher: SymbolMatcher | None = None,
) -> CallChainResult:
    """Callers of callers of symbol_name, up to max_depth levels."""
    depth = clamp_depth(max_depth)
    ctx = TraversalContext(max_depth=depth, max_paths=max_paths)
    with db.session() as session:
        walker = ChainWalker(_caller_steps(session, matcher), lambda s, _f: s, ctx)
        chains = walker.walk(symbol_name, None)

    if ctx.truncated:
        logger.info(
            "call_chain_truncated", target=symbol_name, direction="up", paths=ctx.total_paths
        )
    return CallChainResult(
        target=symbol_name,
        direction=ChainDirection.UP,
        max_depth=depth,
        chains=chains,
        total_paths=ctx.total_paths,
        truncated=ctx.truncated,
    )


def get_call_chain_down(
    db: Database,
    symbol_name: str,
    file_path: str | None = None,
    max_depth: int | None = None,
    *,
    max_paths: int = DEFAULT_MAX_PATHS,
) -> CallChainResult:
    """Callees of callees of symbol_name, up to max_depth levels.

    Without file_path the symbol's defining file is looked up; an unknown
    symbol yields an empty result.
    """
    depth = clamp_depth(max_depth)
    ctx = TraversalContext(max_depth=depth, max_paths=max_paths)
    chains: list[CallChainNode] = []
    with db.session() as session:
        start_file = file_path or symbol_file(session, symbol_name)
        if start_file:
            walker = ChainWalker(_callee_steps(session), lambda s, f: f"{s}:{f}", ctx)
            chains = walker.walk(symbol_name, start_file)

    if ctx.truncated:
        logger.info(
            "call_chain_truncated", target=symbol_name, direction="down", paths=ctx.total_paths
        )
    return CallChainResult(
        target=symbol_name,
        direction=ChainDirection.DOWN,
        max_depth=depth,
        chains=chains,
        total_paths=ctx.total_paths,
        truncated=ctx.truncated,
    )


def get_call_chain(
    db: Database,
    symbol_name: str,
    file_path: str | None = None,
    direction: ChainDirection | str = ChainDirection.UP,
    max_depth: int | None = None,
    *,
    max_paths: int = DEFAULT_MAX_PATHS,
    matcher: SymbolMatcher | None = None,
) -> CallChainResult:
    """Trace in one direction, or both.

    "both" concatenates the up and down forests without merging symbols
    reachable from both sides; path counts add up and either side being
    truncated truncates the result. Unknown directions trace up.
    """
    try:
        direction = ChainDirection(direction)
    except ValueError:
        direction = ChainDirection.UP

    if direction is ChainDirection.DOWN:
        return get_call_chain_down(db, symbol_name, file_path, max_depth, max_paths=max_paths)
    up = get_call_chain_up(db, symbol_name, max_depth, max_paths=max_paths, matcher=matcher)
    if direction is ChainDirection.UP:
        return up

    down = get_call_chain_down(db, symbol_name, file_path, max_depth, max_paths=max_paths)
    return CallChainResult(
        target=symbol_name,
        direction=ChainDirection.BOTH,
        max_depth=up.max_depth,
        chains=[*up.chains, *down.chains],
        total_paths=up.total_paths + down.total_paths,
        truncated=up.truncated or down.truncated,
    )


def flatten_call_chain(result: CallChainResult) -> list[list[CallChainNode]]:
    """Root-to-leaf paths of the chain forest, in tree order.

    Returned nodes are copies without children.
    """
    paths: list[list[CallChainNode]] = []
    stack: list[tuple[CallChainNode, list[CallChainNode]]] = [
        (node, []) for node in reversed(result.chains)
    ]
    while stack:
        node, prefix = stack.pop()
        path = [*prefix, CallChainNode(node.symbol, node.file_path, node.line, node.depth)]
        if not node.children:
            paths.append(path)
            continue
        stack.extend((child, path) for child in reversed(node.children))
    return paths
