"""palace scan / palace update commands - build and refresh the index."""

from pathlib import Path

import click

from palace.cli.utils import echo_json, palace_errors, print_table, status
from palace.index.ops import run_incremental, run_incremental_auto, run_scan


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option("--workers", type=int, default=None, help="Analysis workers (0 = auto)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan_command(path: Path, workers: int | None, as_json: bool) -> None:
    """Run a full scan, replacing the whole index.

    PATH is the repository root (default: current directory).
    """
    if workers is not None and workers < 0:
        raise click.BadParameter("must be >= 0", param_hint="--workers")

    with palace_errors():
        summary, file_count = run_scan(path, workers=workers)

    if as_json:
        echo_json(
            {
                "scan_id": summary.id,
                "root": summary.root,
                "scan_hash": summary.scan_hash,
                "commit_hash": summary.commit_hash,
                "file_count": file_count,
                "chunk_count": summary.chunk_count,
                "symbol_count": summary.symbol_count,
                "relationship_count": summary.relationship_count,
                "started_at": summary.started_at,
                "completed_at": summary.completed_at,
            }
        )
        return

    status(f"Scanned {file_count} files", style="success")
    print_table(
        "Scan summary",
        [
            ("Scan", summary.id),
            ("Files", summary.file_count),
            ("Chunks", summary.chunk_count),
            ("Symbols", summary.symbol_count),
            ("Relationships", summary.relationship_count),
            ("Hash", summary.scan_hash[:12]),
            ("Commit", summary.commit_hash or "-"),
        ],
    )


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--git/--hash",
    "use_git",
    default=True,
    help="Detect changes from git (falls back to hashes) or from content hashes only",
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def update_command(path: Path, use_git: bool, as_json: bool) -> None:
    """Apply only what changed since the last scan.

    PATH is the repository root (default: current directory).
    """
    with palace_errors():
        summary = run_incremental_auto(path) if use_git else run_incremental(path)

    if as_json:
        echo_json(
            {
                "files_added": summary.files_added,
                "files_modified": summary.files_modified,
                "files_deleted": summary.files_deleted,
                "files_unchanged": summary.files_unchanged,
                "duration_sec": round(summary.duration_sec, 3),
                "changes": [
                    {"path": c.path, "action": c.action.value} for c in summary.changes
                ],
            }
        )
        return

    if summary.total_changed == 0:
        status(f"Index up to date ({summary.files_unchanged} files)", style="success")
        return
    status(
        f"Updated index: {summary.files_added} added, {summary.files_modified} modified, "
        f"{summary.files_deleted} deleted, {summary.files_unchanged} unchanged",
        style="success",
    )
