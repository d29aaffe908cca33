"""palace status command - show index status."""

from pathlib import Path

import click

from palace.cli.utils import echo_json, palace_errors, print_table, status
from palace.config.loader import get_index_paths
from palace.index.ops import get_index_status, load_scan_artifact, resolve_root


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_command(path: Path, as_json: bool) -> None:
    """Show schema version, latest scan and index counts.

    PATH is the repository root (default: current directory).
    """
    with palace_errors():
        root = resolve_root(path)
        db_path, artifact_path = get_index_paths(root)
        if not db_path.is_file():
            if as_json:
                echo_json({"indexed": False})
            else:
                status("No index found. Run 'palace scan' first.", style="warning")
            return
        info = get_index_status(root)
        artifact = load_scan_artifact(artifact_path)

    scan = info.latest_scan
    if as_json:
        echo_json(
            {
                "indexed": True,
                "db_path": str(info.db_path),
                "schema_version": info.schema_version,
                "latest_scan": None
                if scan is None
                else {
                    "id": scan.id,
                    "scan_hash": scan.scan_hash,
                    "commit_hash": scan.commit_hash,
                    "completed_at": scan.completed_at,
                },
                "scan_artifact_id": artifact.scan_id if artifact else None,
                "files": info.counts.files,
                "chunks": info.counts.chunks,
                "symbols": info.counts.symbols,
                "relationships": info.counts.relationships,
            }
        )
        return

    rows: list[tuple[str, object]] = [
        ("Schema", info.schema_version),
        ("Files", info.counts.files),
        ("Chunks", info.counts.chunks),
        ("Symbols", info.counts.symbols),
        ("Relationships", info.counts.relationships),
    ]
    if scan is not None:
        rows.append(("Last scan", f"#{scan.id} at {scan.completed_at:%Y-%m-%d %H:%M:%S}"))
        rows.append(("Commit", scan.commit_hash or "-"))
    print_table("Index status", rows)
