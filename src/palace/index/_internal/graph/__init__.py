"""Call-graph and import-graph queries over the relationships table."""

from palace.index._internal.graph.callgraph import (
    CallGraph,
    CallSite,
    SymbolCallCount,
    find_enclosing_symbol,
    find_symbol_file,
    get_call_graph,
    get_callers_count,
    get_incoming_calls,
    get_most_called_symbols,
    get_outgoing_calls,
)
from palace.index._internal.graph.expand import (
    DependencyNode,
    ExpandedFile,
    ExpandOptions,
    ExpansionResult,
    ImpactResult,
    expand_with_dependencies,
    get_dependency_graph,
    get_impact,
    get_import_graph,
    get_related_files_by_symbol,
    normalize_path,
)
from palace.index._internal.graph.matcher import (
    DefaultSymbolMatcher,
    QualifiedNameMatcher,
    SymbolMatcher,
)
from palace.index._internal.graph.traversal import (
    CallChainNode,
    CallChainResult,
    ChainDirection,
    TraversalContext,
    clamp_depth,
    flatten_call_chain,
    get_call_chain,
    get_call_chain_down,
    get_call_chain_up,
)

__all__ = [
    "CallGraph",
    "CallSite",
    "SymbolCallCount",
    "find_enclosing_symbol",
    "find_symbol_file",
    "get_call_graph",
    "get_callers_count",
    "get_incoming_calls",
    "get_most_called_symbols",
    "get_outgoing_calls",
    "DependencyNode",
    "ExpandedFile",
    "ExpandOptions",
    "ExpansionResult",
    "ImpactResult",
    "expand_with_dependencies",
    "get_dependency_graph",
    "get_impact",
    "get_import_graph",
    "get_related_files_by_symbol",
    "normalize_path",
    "DefaultSymbolMatcher",
    "QualifiedNameMatcher",
    "SymbolMatcher",
    "CallChainNode",
    "CallChainResult",
    "ChainDirection",
    "TraversalContext",
    "clamp_depth",
    "flatten_call_chain",
    "get_call_chain",
    "get_call_chain_down",
    "get_call_chain_up",
]
