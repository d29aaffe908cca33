"""Index and context-ranking engine.

This module provides:
- Storage: SQLite schema, migrations, full-text mirrors
- Scanning: parallel file record building, hash- and git-based incremental updates
- Graph: call chains, call graphs, dependency expansion, impact
- Ranking: usage, centrality and blended smart-context scores
- Context: query context assembly under a token budget

Scan and update entry points live in `palace.index.ops`. Internal
implementations are in `palace.index._internal/`.
"""

from palace.index._internal.context import (
    TRUNCATION_WARNING,
    BudgetedItem,
    ContextOptions,
    ContextResult,
    FileContext,
    TokenBudget,
    TokenStats,
    apply_token_budget,
    enhance_context_result,
    estimate_tokens,
    estimate_tokens_simple,
    get_context_for_task,
    truncate_symbols,
    truncate_to_token_budget,
)
from palace.index._internal.db import (
    ChunkHit,
    Database,
    DecisionRecord,
    ImportInfo,
    IndexCounts,
    ScanSummary,
    SymbolInfo,
    get_chunks_for_file,
    get_file_language,
    get_imports_for_file,
    get_schema_version,
    get_symbol,
    get_symbols_for_file,
    index_counts,
    latest_scan,
    list_exported_symbols,
    load_file_metadata,
    open_database,
    record_decision,
    run_migrations,
    search_chunks,
    search_decisions,
    search_symbols,
    search_symbols_by_kind,
    write_scan,
)
from palace.index._internal.graph import (
    CallChainNode,
    CallChainResult,
    CallGraph,
    CallSite,
    ChainDirection,
    DefaultSymbolMatcher,
    DependencyNode,
    ExpandedFile,
    ExpandOptions,
    ExpansionResult,
    ImpactResult,
    QualifiedNameMatcher,
    SymbolCallCount,
    SymbolMatcher,
    clamp_depth,
    expand_with_dependencies,
    find_enclosing_symbol,
    find_symbol_file,
    flatten_call_chain,
    get_call_chain,
    get_call_chain_down,
    get_call_chain_up,
    get_call_graph,
    get_callers_count,
    get_dependency_graph,
    get_impact,
    get_import_graph,
    get_incoming_calls,
    get_most_called_symbols,
    get_outgoing_calls,
    get_related_files_by_symbol,
)
from palace.index._internal.indexing import (
    FileChange,
    FileRecord,
    IncrementalScanSummary,
    ScanOptions,
    apply_changes,
    build_file_records,
    detect_changes,
)
from palace.index._internal.ranking import (
    ContextScore,
    FileEditInfo,
    FileUsageScore,
    SeedFile,
    SmartContextOptions,
    SmartContextResult,
    batch_get_symbol_centrality,
    compute_smart_context,
    get_file_usage_scores,
    get_most_connected_files,
    get_most_imported_files,
    get_symbol_centrality,
    quick_score_files,
)

__all__ = [
    # Context
    "TRUNCATION_WARNING",
    "BudgetedItem",
    "ContextOptions",
    "ContextResult",
    "FileContext",
    "TokenBudget",
    "TokenStats",
    "apply_token_budget",
    "enhance_context_result",
    "estimate_tokens",
    "estimate_tokens_simple",
    "get_context_for_task",
    "truncate_symbols",
    "truncate_to_token_budget",
    # Storage
    "ChunkHit",
    "Database",
    "DecisionRecord",
    "ImportInfo",
    "IndexCounts",
    "ScanSummary",
    "SymbolInfo",
    "get_chunks_for_file",
    "get_file_language",
    "get_imports_for_file",
    "get_schema_version",
    "get_symbol",
    "get_symbols_for_file",
    "index_counts",
    "latest_scan",
    "list_exported_symbols",
    "load_file_metadata",
    "open_database",
    "record_decision",
    "run_migrations",
    "search_chunks",
    "search_decisions",
    "search_symbols",
    "search_symbols_by_kind",
    "write_scan",
    # Graph
    "CallChainNode",
    "CallChainResult",
    "CallGraph",
    "CallSite",
    "ChainDirection",
    "DefaultSymbolMatcher",
    "DependencyNode",
    "ExpandedFile",
    "ExpandOptions",
    "ExpansionResult",
    "ImpactResult",
    "QualifiedNameMatcher",
    "SymbolCallCount",
    "SymbolMatcher",
    "clamp_depth",
    "expand_with_dependencies",
    "find_enclosing_symbol",
    "find_symbol_file",
    "flatten_call_chain",
    "get_call_chain",
    "get_call_chain_down",
    "get_call_chain_up",
    "get_call_graph",
    "get_callers_count",
    "get_dependency_graph",
    "get_impact",
    "get_import_graph",
    "get_incoming_calls",
    "get_most_called_symbols",
    "get_outgoing_calls",
    "get_related_files_by_symbol",
    # Indexing
    "FileChange",
    "FileRecord",
    "IncrementalScanSummary",
    "ScanOptions",
    "apply_changes",
    "build_file_records",
    "detect_changes",
    # Ranking
    "ContextScore",
    "FileEditInfo",
    "FileUsageScore",
    "SeedFile",
    "SmartContextOptions",
    "SmartContextResult",
    "batch_get_symbol_centrality",
    "compute_smart_context",
    "get_file_usage_scores",
    "get_most_connected_files",
    "get_most_imported_files",
    "get_symbol_centrality",
    "quick_score_files",
]
