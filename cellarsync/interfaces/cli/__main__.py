"""Entry point for running the cellarsync CLI.

Executing ``python -m cellarsync.interfaces.cli`` (or the ``cellarsync``
console script) invokes the group below.
"""

from __future__ import annotations

import asyncio
import logging

import click

from cellarsync.infrastructure.observability import configure_logging

from .context import CLIContext, build_cli_context
from .item import item
from .output import console
from .report import report
from .sync import sync


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--db", "db_path", default=None, help="Path to the SQLite database.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, db_path: str | None, verbose: bool) -> None:
    """cellarsync command-line interface."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    ctx.ensure_object(dict)
    if "cli_context" not in ctx.obj or db_path is not None:
        ctx.obj["cli_context"] = build_cli_context(db_path)


@cli.command("auth-test")
@click.pass_context
def auth_test(ctx: click.Context) -> None:
    """Check the configured OAuth credentials against the ERP."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status("Testing authentication..."):
        ok = asyncio.run(service.test_authentication())
    if ok:
        console.print("[green]Authentication successful[/green]")
    else:
        console.print("[red]Authentication failed. Please check your OAuth credentials.[/red]")
        ctx.exit(1)


@cli.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", type=int, default=8000, show_default=True)
@click.option("--reload", is_flag=True, help="Restart on code changes (development only).")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("cellarsync.app.api:app", host=host, port=port, reload=reload)


cli.add_command(sync)
cli.add_command(item)
cli.add_command(report)


def main() -> None:
    configure_logging()
    cli()


if __name__ == "__main__":
    main()
