"""Analyzer registry keyed by language id."""

from __future__ import annotations

from pathlib import Path

from palace.core.languages import UNKNOWN, detect_language
from palace.index._internal.analysis.base import Analyzer, FileAnalysis


class AnalyzerRegistry:
    """Language id -> analyzer lookup for one worker.

    Args:
        root: Workspace root, used by analyzers to resolve import targets.
        enable_lsp: Whether analyzers may start language servers. Pooled
            scan workers always pass False.
    """

    def __init__(self, root: Path, enable_lsp: bool = False) -> None:
        self.root = root
        self.enable_lsp = enable_lsp
        self._analyzers: dict[str, Analyzer] = {}

    @classmethod
    def with_defaults(cls, root: Path, enable_lsp: bool = False) -> AnalyzerRegistry:
        from palace.index._internal.analysis.python import PythonAnalyzer

        registry = cls(root, enable_lsp=enable_lsp)
        registry.register(PythonAnalyzer(root))
        return registry

    def register(self, analyzer: Analyzer) -> None:
        self._analyzers[analyzer.language] = analyzer

    def get(self, language: str) -> Analyzer | None:
        return self._analyzers.get(language)

    def languages(self) -> list[str]:
        return sorted(self._analyzers)

    def analyze(self, content: bytes, path: str, language: str | None = None) -> FileAnalysis:
        """Analyze a file. Unknown languages yield an empty analysis.

        Raises:
            AnalysisError: The registered analyzer failed on this file.
        """
        language = language or detect_language(path)
        analyzer = self.get(language) if language != UNKNOWN else None
        if analyzer is None:
            return FileAnalysis(path=path, language=language)
        return analyzer.analyze(content, path)
