"""Query context assembly and token budgeting."""

from palace.index._internal.context.assembler import (
    TRUNCATION_WARNING,
    apply_token_budget,
    enhance_context_result,
    estimate_file_context_tokens,
    estimate_symbol_tokens,
    get_context_for_task,
    truncate_file_contexts,
    truncate_imports,
)
from palace.index._internal.context.models import (
    ContextOptions,
    ContextResult,
    FileContext,
    TokenStats,
)
from palace.index._internal.context.tokens import (
    BudgetedItem,
    TokenBudget,
    estimate_tokens,
    estimate_tokens_simple,
    truncate_symbols,
    truncate_to_token_budget,
)

__all__ = [
    "TRUNCATION_WARNING",
    "apply_token_budget",
    "enhance_context_result",
    "estimate_file_context_tokens",
    "estimate_symbol_tokens",
    "get_context_for_task",
    "truncate_file_contexts",
    "truncate_imports",
    "ContextOptions",
    "ContextResult",
    "FileContext",
    "TokenStats",
    "BudgetedItem",
    "TokenBudget",
    "estimate_tokens",
    "estimate_tokens_simple",
    "truncate_symbols",
    "truncate_to_token_budget",
]
