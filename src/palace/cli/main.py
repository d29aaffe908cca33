"""Palace CLI - palace command."""

import click

from palace.cli.context import context_command
from palace.cli.graph import callers_command, deps_command
from palace.cli.scan import scan_command, update_command
from palace.cli.status import status_command
from palace.core.logging import configure_logging, operation


@click.group()
@click.version_option(version="0.1.0", prog_name="palace")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Palace - code index and context ranking for AI coding agents."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")
    ctx.obj["operation_id"] = ctx.with_resource(operation(ctx.invoked_subcommand or "palace"))


cli.add_command(scan_command, name="scan")
cli.add_command(update_command, name="update")
cli.add_command(status_command, name="status")
cli.add_command(context_command, name="context")
cli.add_command(callers_command, name="callers")
cli.add_command(deps_command, name="deps")


if __name__ == "__main__":
    cli()
