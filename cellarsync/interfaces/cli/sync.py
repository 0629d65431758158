"""Synchronization CLI for cellarsync.

Example usage::

    python -m cellarsync.interfaces.cli sync inventory --limit 50 --date 01/12/2025
    python -m cellarsync.interfaces.cli sync sweep --batch-size 500 --max-items 2000
"""

from __future__ import annotations

import asyncio

import click

from .context import CLIContext
from .output import console, print_report

_json_option = click.option(
    "--json-output", is_flag=True, help="Print the run report as JSON."
)


@click.group()
def sync() -> None:
    """Pull records from the ERP into the local store."""


@sync.command("inventory")
@click.option("--limit", type=click.IntRange(1, 1000), default=100, show_default=True)
@click.option("--date", "since", default=None, help="Only items modified after DD/MM/YYYY.")
@_json_option
@click.pass_context
def sync_inventory_cmd(ctx: click.Context, limit: int, since: str | None, json_output: bool) -> None:
    """Sync recently modified inventory items."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status("Syncing inventory items..."):
        report = asyncio.run(service.sync_inventory(limit=limit, since=since))
    print_report(report, json_output=json_output)


@sync.command("sweep")
@click.option("--batch-size", type=click.IntRange(1, 1000), default=1000, show_default=True)
@click.option("--max-items", type=click.IntRange(min=1), default=None)
@click.option("--batch-delay", type=click.FloatRange(min=0), default=3.0, show_default=True)
@_json_option
@click.pass_context
def sync_sweep_cmd(
    ctx: click.Context,
    batch_size: int,
    max_items: int | None,
    batch_delay: float,
    json_output: bool,
) -> None:
    """Walk the whole catalogue and sync every inventory item."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status("Sweeping the inventory catalogue..."):
        report = asyncio.run(
            service.sweep_inventory(
                batch_size=batch_size, max_items=max_items, batch_delay_seconds=batch_delay
            )
        )
    print_report(report, json_output=json_output)


@sync.command("sales-orders")
@click.option("--limit", type=click.IntRange(1, 1000), default=10, show_default=True)
@click.option("--date", "since", default=None, help="Only orders modified after DD/MM/YYYY.")
@_json_option
@click.pass_context
def sync_sales_orders_cmd(
    ctx: click.Context, limit: int, since: str | None, json_output: bool
) -> None:
    """Sync recently modified sales orders with their line items."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status("Syncing sales orders..."):
        report = asyncio.run(service.sync_sales_orders(limit=limit, since=since))
    print_report(report, json_output=json_output)


@sync.command("from-orders")
@click.option("--batch-size", type=click.IntRange(min=1), default=50, show_default=True)
@click.option("--max-items", type=click.IntRange(min=1), default=None)
@_json_option
@click.pass_context
def sync_from_orders_cmd(
    ctx: click.Context, batch_size: int, max_items: int | None, json_output: bool
) -> None:
    """Sync items referenced by stored sales orders but missing locally."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status("Syncing items referenced by sales orders..."):
        report = asyncio.run(
            service.sync_from_sales_orders(batch_size=batch_size, max_items=max_items)
        )
    print_report(report, json_output=json_output)


@sync.command("movement")
@click.option("--batch-size", type=click.IntRange(1, 1000), default=200, show_default=True)
@click.option("--max-items", type=click.IntRange(min=1), default=None)
@_json_option
@click.pass_context
def sync_movement_cmd(
    ctx: click.Context, batch_size: int, max_items: int | None, json_output: bool
) -> None:
    """Update the 12-month movement status of stored items."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    service = cli_context.sync_service()
    with console.status("Checking item movement..."):
        report = asyncio.run(service.enrich_movement(batch_size=batch_size, max_items=max_items))
    print_report(report, json_output=json_output)
