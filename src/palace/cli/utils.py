"""CLI utilities."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from palace.core.errors import PalaceError

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
}


def get_console() -> Console:
    # Built per call so output follows the current stdout
    return Console(highlight=False)


def status(message: str, *, style: str = "info") -> None:
    """Print a one-line status message with a style marker."""
    get_console().print(_STYLES.get(style, "") + message)


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def print_table(title: str, rows: list[tuple[str, object]]) -> None:
    """Two-column key/value table."""
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("key", style="bold")
    table.add_column("value")
    for key, value in rows:
        table.add_row(key, str(value))
    get_console().print(table)


@contextmanager
def palace_errors() -> Iterator[None]:
    """Surface PalaceError as a ClickException with the error string."""
    try:
        yield
    except PalaceError as e:
        raise click.ClickException(str(e)) from e
