"""Analyzer contract: per-language structural facts for one file."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


class AnalysisError(Exception):
    """A file could not be analyzed. The scanner indexes it without facts."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to analyze {path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass(slots=True)
class SymbolFact:
    """A symbol and its nested children, as reported by an analyzer."""

    name: str
    kind: str
    line_start: int
    line_end: int
    signature: str = ""
    doc_comment: str = ""
    exported: bool = False
    children: list[SymbolFact] = field(default_factory=list)

    def walk(self) -> list[SymbolFact]:
        """This symbol followed by all descendants, depth-first."""
        out = [self]
        for child in self.children:
            out.extend(child.walk())
        return out


@dataclass(slots=True)
class RelationshipFact:
    """An outgoing edge from the analyzed file.

    target_file is None when the analyzer could not resolve the target to a
    file in the workspace.
    """

    kind: str
    target_symbol: str | None = None
    target_file: str | None = None
    line: int = 0
    column: int = 0


@dataclass(slots=True)
class FileAnalysis:
    path: str
    language: str
    symbols: list[SymbolFact] = field(default_factory=list)
    relationships: list[RelationshipFact] = field(default_factory=list)

    @property
    def symbol_count(self) -> int:
        return sum(len(s.walk()) for s in self.symbols)


@runtime_checkable
class Analyzer(Protocol):
    """Extracts symbols and relationships for one language.

    Implementations are not assumed thread-safe; each scan worker owns its
    own registry.
    """

    @property
    def language(self) -> str: ...

    def analyze(self, content: bytes, path: str) -> FileAnalysis: ...
