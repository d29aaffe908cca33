"""Value objects returned by context assembly."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from palace.core.excludes import DEFAULT_EXCLUDE_PATTERNS
from palace.index._internal.db.lookup import DecisionRecord, ImportInfo, SymbolInfo

if TYPE_CHECKING:
    from palace.config.models import ContextConfig

DEFAULT_SNIPPET_LENGTH = 500


@dataclass(slots=True)
class FileContext:
    """A file relevant to a query, with an optional snippet and its symbols."""

    path: str
    language: str = ""
    relevance: float = 0.0
    symbols: list[SymbolInfo] = field(default_factory=list)
    chunk_start: int = 0
    chunk_end: int = 0
    snippet: str = ""

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "path": self.path,
            "language": self.language,
            "relevance": self.relevance,
        }
        if self.symbols:
            data["symbols"] = [s.to_dict() for s in self.symbols]
        if self.chunk_start or self.chunk_end:
            data["chunk_start"] = self.chunk_start
            data["chunk_end"] = self.chunk_end
        if self.snippet:
            data["snippet"] = self.snippet
        return data


@dataclass(slots=True)
class TokenStats:
    total_tokens: int = 0
    symbol_tokens: int = 0
    file_tokens: int = 0
    import_tokens: int = 0
    budget: int = 0
    truncated: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "total_tokens": self.total_tokens,
            "symbol_tokens": self.symbol_tokens,
            "file_tokens": self.file_tokens,
            "import_tokens": self.import_tokens,
            "budget": self.budget,
            "truncated": self.truncated,
        }


@dataclass(slots=True)
class ContextResult:
    """Everything assembled for one query."""

    query: str
    files: list[FileContext] = field(default_factory=list)
    symbols: list[SymbolInfo] = field(default_factory=list)
    imports: list[ImportInfo] = field(default_factory=list)
    decisions: list[DecisionRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_files: int = 0
    token_stats: TokenStats | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "query": self.query,
            "files": [f.to_dict() for f in self.files],
            "symbols": [s.to_dict() for s in self.symbols],
            "imports": [i.to_dict() for i in self.imports],
            "total_files": self.total_files,
        }
        if self.decisions:
            data["decisions"] = [d.to_dict() for d in self.decisions]
        if self.warnings:
            data["warnings"] = list(self.warnings)
        if self.token_stats is not None:
            data["token_stats"] = self.token_stats.to_dict()
        return data


@dataclass(slots=True)
class ContextOptions:
    """Filtering and budgeting for context assembly.

    With no explicit exclude patterns, test, generated, lock and vendor
    files are excluded unless include_tests is set.
    """

    exclude_patterns: list[str] = field(default_factory=list)
    exclude_kinds: list[str] = field(default_factory=list)
    max_tokens: int = 0
    include_tests: bool = False
    snippet_length: int = DEFAULT_SNIPPET_LENGTH

    @classmethod
    def from_config(cls, config: ContextConfig) -> ContextOptions:
        return cls(max_tokens=config.max_tokens, snippet_length=config.snippet_length)

    def effective_exclude_patterns(self) -> Sequence[str]:
        if self.exclude_patterns:
            return self.exclude_patterns
        if self.include_tests:
            return ()
        return DEFAULT_EXCLUDE_PATTERNS
