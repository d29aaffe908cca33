"""Tests for direct call-edge queries."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from palace.core.errors import ErrorCode, GraphError
from palace.index._internal.analysis import RelationshipFact, SymbolFact
from palace.index._internal.db import Database
from palace.index._internal.graph import (
    QualifiedNameMatcher,
    find_enclosing_symbol,
    find_symbol_file,
    get_call_graph,
    get_callers_count,
    get_incoming_calls,
    get_most_called_symbols,
    get_outgoing_calls,
)
from palace.index._internal.indexing.scanner import FileRecord

Seeder = Callable[[list[FileRecord]], Database]


class ExactMatcher:
    """Matches only call targets spelled exactly like the symbol."""

    def patterns(self, name: str) -> list[str]:
        return [name]


def _fn(name: str, start: int, end: int, kind: str = "function") -> SymbolFact:
    return SymbolFact(name=name, kind=kind, line_start=start, line_end=end)


def _call(target: str, line: int) -> RelationshipFact:
    return RelationshipFact(kind="call", target_symbol=target, line=line)


class TestIncomingCalls:
    """Tests for get_incoming_calls."""

    def test_caller_is_enclosing_function(
        self, seed_index: Seeder, make_record: Callable[..., FileRecord]
    ) -> None:
        """A call inside main's body is attributed to main."""
        db = seed_index(
            [
                make_record(
                    "a.py",
                    symbols=[_fn("main", 1, 5), _fn("helper", 7, 9)],
                    relationships=[_call("helper", 3)],
                )
            ]
        )
        calls = get_incoming_calls(db, "helper")
        assert len(calls) == 1
        assert calls[0].caller_symbol == "main"
        assert (calls[0].file_path, calls[0].line) == ("a.py", 3)

    def test_ordered_by_file_then_line(self, call_graph_db: Database) -> None:
        """Call sites come back in file, then line order."""
        calls = get_incoming_calls(call_graph_db, "helper")
        assert [(c.file_path, c.line, c.caller_symbol) for c in calls] == [
            ("app.py", 4, "main"),
            ("service.py", 3, "run"),
        ]

    def test_module_level_call_has_no_caller(
        self, seed_index: Seeder, make_record: Callable[..., FileRecord]
    ) -> None:
        """Calls outside any function have caller None."""
        db = seed_index(
            [make_record("a.py", symbols=[_fn("f", 1, 2)], relationships=[_call("f", 4)])]
        )
        assert get_incoming_calls(db, "f")[0].caller_symbol is None

    def test_innermost_function_wins(
        self, seed_index: Seeder, make_record: Callable[..., FileRecord]
    ) -> None:
        """A method inside a class is preferred to a wider enclosing function."""
        db = seed_index(
            [
                make_record(
                    "a.py",
                    symbols=[
                        _fn("outer", 1, 20),
                        _fn("inner", 5, 8, kind="method"),
                        _fn("Klass", 4, 10, kind="class"),
                    ],
                    relationships=[_call("target", 6)],
                )
            ]
        )
        assert get_incoming_calls(db, "target")[0].caller_symbol == "inner"

    def test_qualified_call_targets(
        self, seed_index: Seeder, make_record: Callable[..., FileRecord]
    ) -> None:
        """Dotted and scoped call targets match the bare name by default."""
        db = seed_index(
            [
                make_record(
                    "a.py",
                    symbols=[_fn("main", 1, 10)],
                    relationships=[
                        _call("self.parse", 2),
                        _call("Config::parse", 3),
                        _call("parse", 4),
                        _call("reparse", 5),
                    ],
                )
            ]
        )
        lines = [c.line for c in get_incoming_calls(db, "parse")]
        assert lines == [2, 3, 4]

    def test_custom_matcher(
        self, seed_index: Seeder, make_record: Callable[..., FileRecord]
    ) -> None:
        """A pluggable matcher narrows what counts as a call to the symbol."""
        db = seed_index(
            [
                make_record(
                    "a.py",
                    symbols=[_fn("main", 1, 10)],
                    relationships=[_call("self.parse", 2), _call("parse", 4)],
                )
            ]
        )
        calls = get_incoming_calls(db, "parse", ExactMatcher())
        assert [c.line for c in calls] == [4]

    def test_unknown_symbol(self, call_graph_db: Database) -> None:
        """No call sites for a symbol nobody calls."""
        assert get_incoming_calls(call_graph_db, "main") == []


class TestOutgoingCalls:
    """Tests for get_outgoing_calls."""

    def test_calls_within_body(self, call_graph_db: Database) -> None:
        """Only calls inside the symbol's line range are returned, by line."""
        calls = get_outgoing_calls(call_graph_db, "run")
        assert [(c.callee_symbol, c.line) for c in calls] == [("helper", 3), ("save", 5)]
        assert all(c.caller_symbol == "run" for c in calls)

    def test_leaf_function(self, call_graph_db: Database) -> None:
        """A function that calls nothing has no outgoing calls."""
        assert get_outgoing_calls(call_graph_db, "save") == []

    def test_unknown_symbol_raises(self, call_graph_db: Database) -> None:
        """Unknown symbols raise symbol_not_found."""
        with pytest.raises(GraphError) as exc_info:
            get_outgoing_calls(call_graph_db, "nope")
        assert exc_info.value.code == ErrorCode.GRAPH_SYMBOL_NOT_FOUND

    def test_file_scoped_lookup(self, call_graph_db: Database) -> None:
        """A file path restricts which definition is used."""
        with pytest.raises(GraphError):
            get_outgoing_calls(call_graph_db, "run", "util.py")


class TestSymbolLocation:
    """Tests for enclosing-symbol and definition-file lookups."""

    def test_find_enclosing_symbol(self, call_graph_db: Database) -> None:
        """Lines map to the function containing them, or None between functions."""
        assert find_enclosing_symbol(call_graph_db, "service.py", 12) == "helper"
        assert find_enclosing_symbol(call_graph_db, "service.py", 9) is None

    def test_find_symbol_file(self, call_graph_db: Database) -> None:
        """A symbol's defining file, or None."""
        assert find_symbol_file(call_graph_db, "format_value") == "util.py"
        assert find_symbol_file(call_graph_db, "nope") is None


class TestCallGraph:
    """Tests for file-scoped call graphs and counts."""

    def test_get_call_graph(self, call_graph_db: Database) -> None:
        """Outgoing calls from the file plus incoming calls from other files."""
        graph = get_call_graph(call_graph_db, "util.py")
        assert graph.scope == "util.py"
        assert graph.outgoing_calls == []
        assert [(c.callee_symbol, c.caller_symbol) for c in graph.incoming_calls] == [
            ("save", "run"),
            ("format_value", "helper"),
        ]

    def test_call_graph_excludes_self_calls(self, call_graph_db: Database) -> None:
        """Calls from the same file are outgoing, not incoming."""
        graph = get_call_graph(call_graph_db, "service.py")
        assert [c.file_path for c in graph.incoming_calls] == ["app.py", "app.py"]
        assert [c.callee_symbol for c in graph.outgoing_calls] == [
            "helper",
            "save",
            "format_value",
        ]

    def test_callers_count(self, call_graph_db: Database) -> None:
        """Counts every call site naming the symbol."""
        assert get_callers_count(call_graph_db, "helper") == 2
        assert get_callers_count(call_graph_db, "main") == 0

    def test_most_called(self, call_graph_db: Database) -> None:
        """Ranked by count, ties by name."""
        ranked = get_most_called_symbols(call_graph_db, limit=3)
        assert [(r.symbol, r.count) for r in ranked] == [
            ("helper", 2),
            ("format_value", 1),
            ("run", 1),
        ]

    def test_qualified_matcher_patterns(self) -> None:
        """The counting matcher accepts dotted and scoped forms only."""
        assert QualifiedNameMatcher().patterns("go") == ["go", "%.go", "%::go"]
