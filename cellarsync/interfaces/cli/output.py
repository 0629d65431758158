"""Rendering helpers shared by the CLI commands."""

from __future__ import annotations

import json
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from cellarsync.services.sync import SyncRunReport

console = Console()

_STATUS_STYLES = {
    "success": "green",
    "partial": "yellow",
    "auth_failed": "red",
    "failed": "red",
}


def print_json(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def print_report(report: SyncRunReport, *, json_output: bool = False) -> None:
    """Print a run report and exit non-zero when the run did not complete."""
    if json_output:
        print_json(report.to_dict())
    else:
        style = _STATUS_STYLES.get(report.status, "white")
        console.print(
            f"[{style}]{report.mode} sync finished: [bold]{report.status}[/bold][/{style}]"
            + (f" (run {report.run_id})" if report.run_id else "")
        )
        if report.message:
            console.print(f"[{style}]{report.message}[/{style}]")

        table = Table(title="Run summary")
        table.add_column("Processed", justify="right")
        table.add_column("Saved", justify="right")
        table.add_column("Skipped", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Duration", justify="right")
        table.add_row(
            str(report.processed),
            str(report.saved),
            str(report.skipped),
            str(report.failed),
            f"{report.duration_seconds:.1f}s",
        )
        console.print(table)

        financial = report.summary.get("financialSummary")
        if financial:
            money = Table(title="Financial summary")
            money.add_column("Metric")
            money.add_column("Value", justify="right")
            for key, value in financial.items():
                money.add_row(key, f"{value:,.2f}" if isinstance(value, float) else str(value))
            console.print(money)
        elif report.summary:
            for key, value in report.summary.items():
                console.print(f"  {key}: {value}")

        if report.errors:
            console.print(f"[red]{report.error_count} error(s):[/red]")
            for error in report.errors[:10]:
                console.print(f"  [red]- id={error.id}: {error.error}[/red]")
            if report.error_count > 10:
                console.print(f"  ... and {report.error_count - 10} more")
        if report.log_path:
            console.print(f"Run log: {report.log_path}")

    if not report.success:
        raise click.exceptions.Exit(1)


def print_documents(title: str, rows: list[dict[str, Any]], columns: list[tuple[str, str]]) -> None:
    if not rows:
        console.print(f"[yellow]No {title.lower()} found.[/yellow]")
        return
    table = Table(title=title)
    for _key, header in columns:
        table.add_column(header)
    for row in rows:
        table.add_row(*(_cell(row.get(key)) for key, _header in columns))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)
