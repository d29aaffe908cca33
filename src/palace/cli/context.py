"""palace context command - assemble ranked context for a query."""

from pathlib import Path

import click

from palace.cli.utils import echo_json, get_console, palace_errors, status
from palace.config.loader import load_config
from palace.index import ContextOptions, enhance_context_result, get_context_for_task
from palace.index.ops import open_index, resolve_root


@click.command()
@click.argument("query")
@click.option(
    "--path",
    "path",
    default=".",
    type=click.Path(exists=True, path_type=Path),
    help="Repository root",
)
@click.option("--limit", type=int, default=None, help="Max symbols and chunk-hit files")
@click.option("--max-tokens", type=int, default=None, help="Token budget (0 = no limit)")
@click.option("--include-tests", is_flag=True, help="Keep test and generated files")
@click.option("--smart", is_flag=True, help="Re-rank with usage and dependency signals")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def context_command(
    query: str,
    path: Path,
    limit: int | None,
    max_tokens: int | None,
    include_tests: bool,
    smart: bool,
    as_json: bool,
) -> None:
    """Find the files, symbols and imports relevant to QUERY."""
    with palace_errors():
        root = resolve_root(path)
        config = load_config(root)
        options = ContextOptions.from_config(config.context)
        options.include_tests = include_tests
        if max_tokens is not None:
            options.max_tokens = max_tokens

        with open_index(root, config) as db:
            result = get_context_for_task(
                db, query, limit or config.context.default_limit, options
            )
            if smart:
                result = enhance_context_result(db, result, None, config.context)

    if as_json:
        echo_json(result.to_dict())
        return

    if not result.files and not result.symbols:
        status(f"No context found for '{query}'", style="warning")
        return

    console = get_console()
    console.print(f"[bold]Files[/bold] ({result.total_files})")
    for fc in result.files:
        span = f":{fc.chunk_start}-{fc.chunk_end}" if fc.chunk_end else ""
        console.print(f"  {fc.relevance:.2f}  {fc.path}{span}", markup=False)
    if result.symbols:
        console.print(f"[bold]Symbols[/bold] ({len(result.symbols)})")
        for sym in result.symbols:
            console.print(
                f"  {sym.kind:<9} {sym.name}  {sym.file_path}:{sym.line_start}", markup=False
            )
    if result.decisions:
        console.print(f"[bold]Decisions[/bold] ({len(result.decisions)})")
        for decision in result.decisions:
            console.print(f"  {decision.title}", markup=False)
    if result.token_stats is not None:
        stats = result.token_stats
        console.print(f"Tokens: {stats.total_tokens:,} / {stats.budget:,}")
    for warning in result.warnings:
        status(warning, style="warning")
