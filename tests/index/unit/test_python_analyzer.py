"""Tests for the tree-sitter Python analyzer and the analyzer registry."""

from __future__ import annotations

from pathlib import Path

import pytest

from palace.index._internal.analysis import (
    AnalysisError,
    AnalyzerRegistry,
    FileAnalysis,
    PythonAnalyzer,
    SymbolFact,
)
from palace.index._internal.analysis.python import _clean_docstring

SOURCE = b'''"""Module doc."""
import os
import json as j
from . import sibling
from .models import Item
from ..shared.base import Base

LIMIT = 10
_cache = {}


@decorator
def load(path: str) -> dict:
    """Load a file."""
    return j.loads(os.path.join(path))


class Store(Base):
    \'\'\'Persist items.\'\'\'

    def __init__(self):
        self.items = []

    def save(self, item):
        self.validate(item)
        helper()

    def _private(self):
        def inner():
            pass
        return inner
'''

PATH = "pkg/sub/store.py"


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace with targets for the relative and src/ imports."""
    for rel in ("pkg/sub/__init__.py", "pkg/sub/models.py", "src/pkg/shared/base.py"):
        target = tmp_path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("")
    return tmp_path


@pytest.fixture
def analysis(workspace: Path) -> FileAnalysis:
    return PythonAnalyzer(workspace).analyze(SOURCE, PATH)


def _by_name(symbols: list[SymbolFact]) -> dict[str, SymbolFact]:
    return {s.name: s for s in symbols}


class TestSymbols:
    """Symbol extraction."""

    def test_top_level_symbols(self, analysis: FileAnalysis) -> None:
        """Module-level definitions in source order; the docstring is not a symbol."""
        assert [(s.name, s.kind) for s in analysis.symbols] == [
            ("LIMIT", "constant"),
            ("_cache", "variable"),
            ("load", "function"),
            ("Store", "class"),
        ]
        assert analysis.symbol_count == 8

    def test_function_details(self, analysis: FileAnalysis) -> None:
        """Decorated functions span the decorator and carry signature and docstring."""
        load = _by_name(analysis.symbols)["load"]
        assert (load.line_start, load.line_end) == (12, 15)
        assert load.signature == "def load(path: str) -> dict"
        assert load.doc_comment == "Load a file."
        assert load.exported

    def test_class_members(self, analysis: FileAnalysis) -> None:
        """Methods nest under their class; __init__ is a constructor."""
        store = _by_name(analysis.symbols)["Store"]
        assert store.signature == "class Store(Base)"
        assert store.doc_comment == "Persist items."
        assert (store.line_start, store.line_end) == (18, 31)
        assert [(c.name, c.kind) for c in store.children] == [
            ("__init__", "constructor"),
            ("save", "method"),
            ("_private", "method"),
        ]

    def test_nested_function(self, analysis: FileAnalysis) -> None:
        """Functions defined inside methods are children of the method."""
        private = _by_name(_by_name(analysis.symbols)["Store"].children)["_private"]
        assert not private.exported
        assert [(c.name, c.kind, c.line_start) for c in private.children] == [
            ("inner", "function", 29)
        ]

    def test_underscore_names_not_exported(self, analysis: FileAnalysis) -> None:
        symbols = _by_name(analysis.symbols)
        assert symbols["LIMIT"].exported
        assert not symbols["_cache"].exported


class TestRelationships:
    """Import and call extraction."""

    def test_imports_made_absolute(self, analysis: FileAnalysis) -> None:
        """Relative imports are resolved against the file's package."""
        imports = [r for r in analysis.relationships if r.kind == "import"]
        assert [(r.target_symbol, r.line) for r in imports] == [
            ("os", 2),
            ("json", 3),
            ("pkg.sub", 4),
            ("pkg.sub.models", 5),
            ("pkg.shared.base", 6),
        ]

    def test_import_files_resolved(self, analysis: FileAnalysis) -> None:
        """Modules present in the workspace, or under src/, resolve to files."""
        targets = [r.target_file for r in analysis.relationships if r.kind == "import"]
        assert targets == [
            None,
            None,
            "pkg/sub/__init__.py",
            "pkg/sub/models.py",
            "src/pkg/shared/base.py",
        ]

    def test_calls_keep_dotted_names(self, analysis: FileAnalysis) -> None:
        """Call targets are recorded as written, in source order."""
        calls = [r for r in analysis.relationships if r.kind == "call"]
        assert [(r.target_symbol, r.line) for r in calls] == [
            ("j.loads", 15),
            ("os.path.join", 15),
            ("self.validate", 25),
            ("helper", 26),
        ]

    def test_no_root_leaves_targets_unresolved(self) -> None:
        """Without a workspace root nothing resolves to a file."""
        result = PythonAnalyzer().analyze(SOURCE, PATH)
        assert all(r.target_file is None for r in result.relationships)


class TestErrors:
    def test_syntax_error_raises(self) -> None:
        """Unparseable source raises AnalysisError naming the file."""
        with pytest.raises(AnalysisError) as exc_info:
            PythonAnalyzer().analyze(b"def broken(:\n    pass\n", "broken.py")
        assert exc_info.value.path == "broken.py"

    def test_empty_file(self) -> None:
        result = PythonAnalyzer().analyze(b"", "empty.py")
        assert (result.symbols, result.relationships) == ([], [])


class TestCleanDocstring:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ('"""Triple."""', "Triple."),
            ("'single'", "single"),
            ('r"""Raw."""', "Raw."),
            ('"""\n    Indented.\n    """', "Indented."),
        ],
    )
    def test_quotes_and_prefixes_stripped(self, raw: str, expected: str) -> None:
        assert _clean_docstring(raw) == expected


class TestAnalyzerRegistry:
    """Tests for AnalyzerRegistry."""

    def test_defaults(self, tmp_path: Path) -> None:
        registry = AnalyzerRegistry.with_defaults(tmp_path)
        assert registry.languages() == ["python"]
        assert isinstance(registry.get("python"), PythonAnalyzer)
        assert registry.get("go") is None

    def test_language_detected_from_path(self, tmp_path: Path) -> None:
        """The path picks the analyzer when no language is given."""
        registry = AnalyzerRegistry.with_defaults(tmp_path)
        result = registry.analyze(b"def f():\n    pass\n", "mod.py")
        assert [s.name for s in result.symbols] == ["f"]

    def test_unregistered_language_is_empty(self, tmp_path: Path) -> None:
        """Files without an analyzer get an empty analysis."""
        registry = AnalyzerRegistry.with_defaults(tmp_path)
        result = registry.analyze(b"package main\n", "main.go")
        assert result.language == "go"
        assert result.symbols == []

    def test_custom_analyzer(self, tmp_path: Path) -> None:
        """Any object with a language and analyze() can be registered."""

        class EchoAnalyzer:
            language = "go"

            def analyze(self, content: bytes, path: str) -> FileAnalysis:
                return FileAnalysis(
                    path=path,
                    language="go",
                    symbols=[SymbolFact("main", "function", 1, 1)],
                )

        registry = AnalyzerRegistry(tmp_path)
        registry.register(EchoAnalyzer())
        result = registry.analyze(b"package main\n", "main.go")
        assert [s.name for s in result.symbols] == ["main"]
