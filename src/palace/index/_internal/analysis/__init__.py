"""Structural analysis collaborators (symbols and relationships per file)."""

from palace.index._internal.analysis.base import (
    AnalysisError,
    Analyzer,
    FileAnalysis,
    RelationshipFact,
    SymbolFact,
)
from palace.index._internal.analysis.python import PythonAnalyzer
from palace.index._internal.analysis.registry import AnalyzerRegistry

__all__ = [
    "AnalysisError",
    "Analyzer",
    "AnalyzerRegistry",
    "FileAnalysis",
    "PythonAnalyzer",
    "RelationshipFact",
    "SymbolFact",
]
