"""palace callers / palace deps commands - graph traversal from the terminal."""

from pathlib import Path

import click

from palace.cli.utils import echo_json, get_console, palace_errors, status
from palace.config.loader import load_config
from palace.index import (
    ChainDirection,
    ExpandOptions,
    expand_with_dependencies,
    flatten_call_chain,
    get_call_chain,
)
from palace.index.ops import open_index, resolve_root

_ARROWS = {ChainDirection.UP: " <- ", ChainDirection.DOWN: " -> "}

_PATH_OPTION = click.option(
    "--path",
    "path",
    default=".",
    type=click.Path(exists=True, path_type=Path),
    help="Repository root",
)


@click.command()
@click.argument("symbol")
@_PATH_OPTION
@click.option("--file", "file_path", default=None, help="File defining SYMBOL (for down)")
@click.option(
    "--direction",
    type=click.Choice([d.value for d in ChainDirection]),
    default=ChainDirection.UP.value,
    show_default=True,
)
@click.option("--depth", type=int, default=None, help="Max depth (clamped to 1-10)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def callers_command(
    symbol: str,
    path: Path,
    file_path: str | None,
    direction: str,
    depth: int | None,
    as_json: bool,
) -> None:
    """Trace who calls SYMBOL (up), what it calls (down), or both."""
    with palace_errors():
        root = resolve_root(path)
        config = load_config(root)
        with open_index(root, config) as db:
            result = get_call_chain(
                db,
                symbol,
                file_path,
                direction,
                depth if depth is not None else config.graph.default_depth,
                max_paths=config.graph.max_paths,
            )

    if as_json:
        echo_json(result.to_dict())
        return

    paths = flatten_call_chain(result)
    if not paths:
        status(f"No call chains found for '{symbol}'", style="warning")
        return

    arrow = _ARROWS.get(result.direction, " - ")
    console = get_console()
    for nodes in paths:
        console.print(arrow.join([symbol, *(n.symbol for n in nodes)]), markup=False)
    if result.truncated:
        status(f"Truncated after {result.total_paths} paths", style="warning")


@click.command()
@click.argument("files", nargs=-1, required=True)
@_PATH_OPTION
@click.option("--depth", type=int, default=None, help="Expansion depth, capped at 10")
@click.option("--both", "both_directions", is_flag=True, help="Also follow importers")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def deps_command(
    files: tuple[str, ...],
    path: Path,
    depth: int | None,
    both_directions: bool,
    as_json: bool,
) -> None:
    """Expand FILES through their import graph."""
    with palace_errors():
        root = resolve_root(path)
        config = load_config(root)
        options = ExpandOptions(
            max_depth=depth if depth is not None else config.graph.expansion_depth,
            max_files=config.graph.expansion_max_files,
            both_directions=both_directions,
        )
        with open_index(root, config) as db:
            expanded = expand_with_dependencies(db, list(files), options)

    if as_json:
        echo_json(expanded.to_dict())
        return

    console = get_console()
    for ef in expanded.files:
        via = f"  ({ef.expanded_via})" if ef.expanded_via else ""
        console.print(f"  {ef.depth}  {ef.path}{via}", markup=False)
    if expanded.truncated:
        status(f"Truncated after {len(expanded.files)} files", style="warning")
