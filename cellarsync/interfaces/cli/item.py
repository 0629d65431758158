"""Single-item maintenance commands."""

from __future__ import annotations

import asyncio

import click

from .context import CLIContext
from .output import console, print_json, print_report


@click.group()
def item() -> None:
    """Sync, inspect or delete one inventory item."""


@item.command("sync")
@click.argument("item_id", type=int)
@click.option(
    "--locations/--no-locations",
    default=True,
    show_default=True,
    help="Fetch stock locations (slow for items stored in many places).",
)
@click.option("--json-output", is_flag=True, help="Print the run report as JSON.")
@click.pass_context
def item_sync_cmd(ctx: click.Context, item_id: int, locations: bool, json_output: bool) -> None:
    """Fetch ITEM_ID from the ERP and store it."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status(f"Syncing item {item_id}..."):
        report = asyncio.run(service.sync_single_item(item_id, include_locations=locations))
    print_report(report, json_output=json_output)


@item.command("check")
@click.argument("item_id", type=int)
@click.option("--json-output", is_flag=True)
@click.pass_context
def item_check_cmd(ctx: click.Context, item_id: int, json_output: bool) -> None:
    """Show whether ITEM_ID is stored and when it was last synced."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    check = cli_context.inventory_service().check_item(item_id)
    if json_output:
        print_json(check.model_dump(by_alias=True))
        return
    if not check.stored:
        console.print(f"[yellow]Item {item_id} is not stored.[/yellow]")
        return
    console.print(
        f"[green]Item {item_id}[/green] {check.item_name or ''} "
        f"(last synced {check.last_synced})"
    )


@item.command("delete")
@click.argument("item_id", type=int)
@click.confirmation_option(prompt="Delete this item from the local store?")
@click.pass_context
def item_delete_cmd(ctx: click.Context, item_id: int) -> None:
    """Remove ITEM_ID from the local store."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    if cli_context.inventory_service().delete_item(item_id):
        console.print(f"[green]Deleted item [bold]{item_id}[/bold][/green]")
    else:
        console.print(f"[yellow]Item {item_id} was not stored.[/yellow]")
        ctx.exit(1)
