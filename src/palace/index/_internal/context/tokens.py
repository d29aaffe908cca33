"""Token estimation and greedy budget fitting.

Estimates are heuristic and tokenizer-free. Words (runs of characters that
are neither whitespace nor punctuation/symbols) cost 1 token up to 4
characters, 2 up to 8, and about one per 4 characters beyond that. Each
newline and each punctuation or symbol character costs one token; other
whitespace is free.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from palace.index._internal.db.lookup import SymbolInfo

T = TypeVar("T")

CHARS_PER_TOKEN = 4

BUDGET_SYMBOLS = "symbols"
BUDGET_CHUNKS = "chunks"
BUDGET_METADATA = "metadata"

# Functions and methods outrank types, which outrank data
_KIND_PRIORITY: dict[str, float] = {
    "function": 3.0,
    "method": 3.0,
    "class": 2.5,
    "struct": 2.5,
    "interface": 2.5,
    "type": 2.0,
    "constant": 1.5,
    "variable": 1.5,
}
_DEFAULT_KIND_PRIORITY = 1.0


def _is_punct_or_symbol(ch: str) -> bool:
    return unicodedata.category(ch)[0] in ("P", "S")


def _word_tokens(length: int) -> int:
    if length <= 0:
        return 0
    if length <= 4:
        return 1
    if length <= 8:
        return 2
    return (length + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


def estimate_tokens(text: str) -> int:
    """Approximate token count for code or prose."""
    tokens = 0
    word_len = 0
    for ch in text:
        if ch.isspace():
            tokens += _word_tokens(word_len)
            word_len = 0
            if ch == "\n":
                tokens += 1
        elif _is_punct_or_symbol(ch):
            tokens += _word_tokens(word_len) + 1
            word_len = 0
        else:
            word_len += 1
    return tokens + _word_tokens(word_len)


def estimate_tokens_simple(text: str) -> int:
    """Character-count estimate: ceil(len / 4)."""
    return (len(text) + CHARS_PER_TOKEN - 1) // CHARS_PER_TOKEN


@dataclass(frozen=True, slots=True)
class BudgetedItem(Generic[T]):
    item: T
    token_count: int
    priority: float


def truncate_to_token_budget(
    items: Sequence[BudgetedItem[T]], budget: int
) -> list[BudgetedItem[T]]:
    """Greedily keep the highest-priority items whose cumulative cost fits.

    Items are considered in descending priority (stable for ties). An item
    that does not fit is dropped whole and later, cheaper items may still be
    taken. A non-positive budget keeps nothing.
    """
    if budget <= 0:
        return []
    kept: list[BudgetedItem[T]] = []
    used = 0
    for item in sorted(items, key=lambda b: -b.priority):
        if used + item.token_count <= budget:
            kept.append(item)
            used += item.token_count
    return kept


def symbol_priority(kind: str) -> float:
    return _KIND_PRIORITY.get(kind.lower(), _DEFAULT_KIND_PRIORITY)


def symbol_listing_tokens(symbol: SymbolInfo) -> int:
    """Cost of a symbol's one-line listing (name, kind, file, signature)."""
    text = f"{symbol.name} {symbol.kind} {symbol.file_path}"
    if symbol.signature:
        text += f" {symbol.signature}"
    return estimate_tokens(text)


def truncate_symbols(symbols: Sequence[SymbolInfo], budget: int) -> list[SymbolInfo]:
    """Fit symbols into budget by kind priority.

    A non-positive budget or an empty input is returned unchanged.
    """
    if budget <= 0 or not symbols:
        return list(symbols)
    budgeted = [
        BudgetedItem(
            item=sym,
            token_count=symbol_listing_tokens(sym),
            priority=symbol_priority(sym.kind),
        )
        for sym in symbols
    ]
    return [b.item for b in truncate_to_token_budget(budgeted, budget)]


class TokenBudget:
    """Running allocation of a fixed token budget across categories."""

    def __init__(self, total: int) -> None:
        self.total = total
        self.used = 0
        self.by_category: dict[str, int] = {
            BUDGET_SYMBOLS: 0,
            BUDGET_CHUNKS: 0,
            BUDGET_METADATA: 0,
        }

    @property
    def remaining(self) -> int:
        return self.total - self.used

    def can_fit(self, tokens: int) -> bool:
        return self.used + tokens <= self.total

    def allocate(self, tokens: int, category: str) -> bool:
        """Charge tokens to category, or return False if they do not fit.

        Unknown categories count toward the total only.
        """
        if not self.can_fit(tokens):
            return False
        self.used += tokens
        if category in self.by_category:
            self.by_category[category] += tokens
        return True

    def summary(self) -> str:
        rows = [
            ("Total", self.total),
            ("Used", self.used),
            ("Symbols", self.by_category[BUDGET_SYMBOLS]),
            ("Chunks", self.by_category[BUDGET_CHUNKS]),
            ("Metadata", self.by_category[BUDGET_METADATA]),
            ("Remaining", self.remaining),
        ]
        lines = [f"  {label + ':':<10} {value:,}" for label, value in rows]
        return "\n".join(["Token Budget:", *lines])
