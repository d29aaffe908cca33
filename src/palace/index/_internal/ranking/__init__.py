"""File and symbol ranking: usage, centrality and blended context scores."""

from palace.index._internal.ranking.smart_context import (
    ContextScore,
    FileEditInfo,
    SeedFile,
    SmartContextOptions,
    SmartContextResult,
    SmartContextStats,
    compute_smart_context,
    dependency_score,
    quick_score_files,
    recency_score,
)
from palace.index._internal.ranking.usage import (
    FileUsageScore,
    UsageWeights,
    batch_get_symbol_centrality,
    centrality_from_counts,
    get_file_usage_scores,
    get_most_connected_files,
    get_most_imported_files,
    get_symbol_centrality,
)

__all__ = [
    "ContextScore",
    "FileEditInfo",
    "SeedFile",
    "SmartContextOptions",
    "SmartContextResult",
    "SmartContextStats",
    "compute_smart_context",
    "dependency_score",
    "quick_score_files",
    "recency_score",
    "FileUsageScore",
    "UsageWeights",
    "batch_get_symbol_centrality",
    "centrality_from_counts",
    "get_file_usage_scores",
    "get_most_connected_files",
    "get_most_imported_files",
    "get_symbol_centrality",
]
