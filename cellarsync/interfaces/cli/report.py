"""CLI commands for summaries of the local store."""

from __future__ import annotations

import click

from .context import CLIContext
from .output import console, print_documents, print_json


@click.group()
def report() -> None:
    """Generate reports and summaries."""


@report.command("inventory")
@click.option("--json-output", is_flag=True)
@click.pass_context
def report_inventory_cmd(ctx: click.Context, json_output: bool) -> None:
    """Overview totals, top producers, types and countries."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    stats = cli_context.inventory_service().statistics()
    if json_output:
        print_json(stats)
        return
    overview = stats["overview"]
    console.print(
        f"[bold]{overview['total_items']}[/bold] items, "
        f"{overview['items_in_stock']} in stock, "
        f"{overview['items_moved']} moved in the last 12 months"
    )
    console.print(
        f"Total value: {overview['total_value']:,.2f}  "
        f"Average cost total: {overview['total_average_cost']:,.2f}"
    )
    print_documents("Top producers", stats["top_producers"], [("name", "Producer"), ("count", "Items")])
    print_documents("By type", stats["by_type"], [("name", "Type"), ("count", "Items")])
    print_documents("By country", stats["by_country"], [("name", "Country"), ("count", "Items")])


@report.command("sales-orders")
@click.option("--from", "from_date", default=None, help="YYYY-MM-DD, default 30 days ago.")
@click.option("--to", "to_date", default=None, help="YYYY-MM-DD, default today.")
@click.option("--json-output", is_flag=True)
@click.pass_context
def report_sales_orders_cmd(
    ctx: click.Context, from_date: str | None, to_date: str | None, json_output: bool
) -> None:
    """Order totals by status and top customers over a date range."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    stats = cli_context.sales_order_service().stats(from_date=from_date, to_date=to_date)
    if json_output:
        print_json(stats)
        return
    overall = stats["overall"] or {}
    console.print(
        f"{stats['period']['from']} to {stats['period']['to']}: "
        f"[bold]{overall.get('total_orders', 0)}[/bold] orders, "
        f"total {overall.get('total_amount', 0):,.2f}"
    )
    columns = [("count", "Orders"), ("total_amount", "Amount")]
    print_documents("By status", stats["by_status"], [("status", "Status"), *columns])
    print_documents("Top customers", stats["by_customer"], [("customer", "Customer"), *columns])


@report.command("runs")
@click.option("--limit", type=click.IntRange(min=1), default=10, show_default=True)
@click.option("--json-output", is_flag=True)
@click.pass_context
def report_runs_cmd(ctx: click.Context, limit: int, json_output: bool) -> None:
    """Recent sync runs with their counters."""
    cli_context: CLIContext = ctx.obj["cli_context"]
    runs = cli_context.reporting_service().recent_runs(limit)
    if json_output:
        print_json(runs)
        return
    print_documents(
        "Sync runs",
        runs,
        [
            ("id", "Run"),
            ("mode", "Mode"),
            ("status", "Status"),
            ("started_at", "Started"),
            ("processed", "Processed"),
            ("saved", "Saved"),
            ("skipped", "Skipped"),
            ("failed", "Failed"),
        ],
    )
