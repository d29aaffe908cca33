"""Assemble query context from symbol and chunk search, then fit it to a budget.

Files found through chunk hits carry relevance 1.0 and a snippet; files found
only through matching symbols carry 0.8. Over-budget results are cut per
category (half to files, 40% to symbols, the rest to imports) and flagged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

from palace.config.models import ContextConfig
from palace.core.excludes import should_exclude_file
from palace.index._internal.context.models import (
    ContextOptions,
    ContextResult,
    FileContext,
    TokenStats,
)
from palace.index._internal.context.tokens import (
    BudgetedItem,
    estimate_tokens,
    symbol_priority,
    truncate_to_token_budget,
)
from palace.index._internal.db.lookup import (
    ImportInfo,
    SymbolInfo,
    get_file_language,
    get_imports_for_file,
    get_symbols_for_file,
    search_decisions,
    search_symbols,
)
from palace.index._internal.db.store import search_chunks
from palace.index._internal.ranking.smart_context import (
    FileEditInfo,
    SeedFile,
    SmartContextOptions,
    compute_smart_context,
)

if TYPE_CHECKING:
    from palace.index._internal.db.database import Database

logger = structlog.get_logger()

DEFAULT_CONTEXT_LIMIT = 20
CHUNK_HIT_RELEVANCE = 1.0
SYMBOL_ONLY_RELEVANCE = 0.8
TRUNCATION_WARNING = "Context truncated to fit token budget"

# Percent of an exceeded budget granted to each category
FILE_BUDGET_PERCENT = 50
SYMBOL_BUDGET_PERCENT = 40
IMPORT_BUDGET_PERCENT = 10


def truncate_snippet(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def get_context_for_task(
    db: Database,
    query: str,
    limit: int = DEFAULT_CONTEXT_LIMIT,
    options: ContextOptions | None = None,
) -> ContextResult:
    """Collect files, symbols, imports and decisions relevant to query.

    Both searches over-fetch 2x limit so filtering still leaves up to limit
    symbols and limit chunk-hit files. Files are ordered by relevance, then
    path.
    """
    if limit <= 0:
        limit = DEFAULT_CONTEXT_LIMIT
    opts = options or ContextOptions()
    patterns = opts.effective_exclude_patterns()
    result = ContextResult(query=query)

    for sym in search_symbols(db, query, limit * 2):
        if should_exclude_file(sym.file_path, patterns):
            continue
        if sym.kind in opts.exclude_kinds:
            continue
        result.symbols.append(sym)
        if len(result.symbols) >= limit:
            break

    # Insertion-ordered set of every file the result will describe
    file_set: dict[str, None] = dict.fromkeys(s.file_path for s in result.symbols)

    contexts: dict[str, FileContext] = {}
    for hit in search_chunks(db, query, limit * 2):
        if should_exclude_file(hit.path, patterns):
            continue
        fc = contexts.get(hit.path)
        if fc is None:
            if len(contexts) >= limit:
                continue
            contexts[hit.path] = FileContext(
                path=hit.path,
                language=get_file_language(db, hit.path),
                relevance=CHUNK_HIT_RELEVANCE,
                chunk_start=hit.start_line,
                chunk_end=hit.end_line,
                snippet=truncate_snippet(hit.content, opts.snippet_length),
            )
        else:
            fc.chunk_start = min(fc.chunk_start, hit.start_line)
            fc.chunk_end = max(fc.chunk_end, hit.end_line)
        file_set[hit.path] = None

    for path in file_set:
        fc = contexts.get(path)
        if fc is None:
            fc = FileContext(
                path=path,
                language=get_file_language(db, path),
                relevance=SYMBOL_ONLY_RELEVANCE,
            )
            contexts[path] = fc
        fc.symbols = [
            s for s in get_symbols_for_file(db, path) if s.kind not in opts.exclude_kinds
        ]
        result.imports.extend(get_imports_for_file(db, path))

    result.files = sorted(contexts.values(), key=lambda f: (-f.relevance, f.path))
    result.decisions = search_decisions(db, query)
    result.total_files = len(result.files)

    if opts.max_tokens > 0:
        apply_token_budget(result, opts.max_tokens)

    logger.debug(
        "context_assembled",
        query=query,
        files=result.total_files,
        symbols=len(result.symbols),
        imports=len(result.imports),
    )
    return result


# =============================================================================
# Token budgeting
# =============================================================================


def estimate_symbol_tokens(symbol: SymbolInfo) -> int:
    text = f"{symbol.name} {symbol.kind} {symbol.file_path}"
    if symbol.signature:
        text += f" {symbol.signature}"
    if symbol.doc_comment:
        text += f" {symbol.doc_comment}"
    return estimate_tokens(text)


def estimate_file_context_tokens(fc: FileContext) -> int:
    """Path and language, plus the snippet and every attached symbol."""
    tokens = estimate_tokens(f"{fc.path} {fc.language}")
    if fc.snippet:
        tokens += estimate_tokens(fc.snippet)
    return tokens + sum(estimate_symbol_tokens(s) for s in fc.symbols)


def estimate_import_tokens(imp: ImportInfo) -> int:
    return estimate_tokens(imp.source_file + (imp.target_file or "") + imp.kind)


def truncate_file_contexts(files: Sequence[FileContext], budget: int) -> list[FileContext]:
    """Keep the most relevant files that fit in budget."""
    budgeted = [
        BudgetedItem(
            item=fc,
            token_count=estimate_file_context_tokens(fc),
            priority=fc.relevance,
        )
        for fc in files
    ]
    return [b.item for b in truncate_to_token_budget(budgeted, budget)]


def _truncate_result_symbols(symbols: Sequence[SymbolInfo], budget: int) -> list[SymbolInfo]:
    budgeted = [
        BudgetedItem(
            item=sym,
            token_count=estimate_symbol_tokens(sym),
            priority=symbol_priority(sym.kind),
        )
        for sym in symbols
    ]
    return [b.item for b in truncate_to_token_budget(budgeted, budget)]


def truncate_imports(imports: Sequence[ImportInfo], budget: int) -> list[ImportInfo]:
    """Keep imports in order while they fit. A non-positive budget keeps none."""
    kept: list[ImportInfo] = []
    used = 0
    for imp in imports:
        tokens = estimate_import_tokens(imp)
        if used + tokens <= budget:
            kept.append(imp)
            used += tokens
    return kept


def _fill_stats(stats: TokenStats, result: ContextResult) -> None:
    stats.file_tokens = sum(estimate_file_context_tokens(f) for f in result.files)
    stats.symbol_tokens = sum(estimate_symbol_tokens(s) for s in result.symbols)
    stats.import_tokens = sum(estimate_import_tokens(i) for i in result.imports)
    stats.total_tokens = stats.file_tokens + stats.symbol_tokens + stats.import_tokens


def apply_token_budget(result: ContextResult, budget: int) -> ContextResult:
    """Fit result into budget tokens, in place.

    Within budget, only token stats are attached. Otherwise each category is
    truncated against its share, the result is flagged truncated and a
    warning is added. A non-positive budget leaves the result untouched.
    """
    if budget <= 0:
        return result

    stats = TokenStats(budget=budget)
    _fill_stats(stats, result)
    if stats.total_tokens <= budget:
        result.token_stats = stats
        return result

    result.files = truncate_file_contexts(result.files, budget * FILE_BUDGET_PERCENT // 100)
    result.symbols = _truncate_result_symbols(
        result.symbols, budget * SYMBOL_BUDGET_PERCENT // 100
    )
    result.imports = truncate_imports(result.imports, budget * IMPORT_BUDGET_PERCENT // 100)
    result.total_files = len(result.files)

    before = stats.total_tokens
    _fill_stats(stats, result)
    stats.truncated = True
    result.token_stats = stats
    if TRUNCATION_WARNING not in result.warnings:
        result.warnings.append(TRUNCATION_WARNING)
    logger.info(
        "context_truncated",
        budget=budget,
        tokens_before=before,
        tokens_after=stats.total_tokens,
    )
    return result


# =============================================================================
# Smart re-ranking
# =============================================================================


def enhance_context_result(
    db: Database,
    result: ContextResult,
    edit_history: Mapping[str, FileEditInfo] | None = None,
    options: SmartContextOptions | ContextConfig | None = None,
) -> ContextResult:
    """Re-rank result files by blended score, adding dependency-expanded files.

    Relevance of every returned file is replaced by its final score. Files
    that came from expansion get their language looked up and no snippet.
    When result carries a token budget, the enhanced result is fitted to it
    again.
    """
    if isinstance(options, ContextConfig):
        options = SmartContextOptions.from_config(options)

    seeds = [SeedFile(path=f.path, relevance=f.relevance) for f in result.files]
    smart = compute_smart_context(db, seeds, edit_history, options)

    originals = {f.path: f for f in result.files}
    files: list[FileContext] = []
    for score in smart.files:
        original = originals.get(score.path)
        if original is not None:
            files.append(
                FileContext(
                    path=original.path,
                    language=original.language,
                    relevance=score.final_score,
                    symbols=original.symbols,
                    chunk_start=original.chunk_start,
                    chunk_end=original.chunk_end,
                    snippet=original.snippet,
                )
            )
        else:
            files.append(
                FileContext(
                    path=score.path,
                    language=get_file_language(db, score.path),
                    relevance=score.final_score,
                )
            )

    enhanced = ContextResult(
        query=result.query,
        files=files,
        symbols=result.symbols,
        imports=result.imports,
        decisions=result.decisions,
        warnings=list(result.warnings),
        total_files=len(files),
    )
    previous = result.token_stats
    if previous is None or previous.budget <= 0:
        return enhanced

    apply_token_budget(enhanced, previous.budget)
    if previous.truncated and enhanced.token_stats is not None:
        enhanced.token_stats.truncated = True
    return enhanced
