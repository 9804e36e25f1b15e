"""Order statistics command."""

from datetime import datetime

import typer
from rich.table import Table

from remitflow.remittance.application.services.stats import order_stats
from remitflow.utils.datetime import ensure_utc

from ..common import cli_session, console, status_style


def stats(
    owner: str | None = typer.Option(None, "--owner", help="Only orders of this sender"),
    start: datetime | None = typer.Option(None, "--from", help="Created on or after (UTC)"),
    end: datetime | None = typer.Option(None, "--to", help="Created on or before (UTC)"),
) -> None:
    """Show order statistics."""
    with cli_session() as db:
        result = order_stats(
            db,
            owner_id=owner,
            start=ensure_utc(start) if start else None,
            end=ensure_utc(end) if end else None,
        )

        table = Table(title=f"Orders: {result.total}")
        table.add_column("Status")
        table.add_column("Count", justify="right")
        for status, count in result.by_status.items():
            if count:
                style = status_style(status)
                table.add_row(f"[{style}]{status}[/{style}]", str(count))
        console.print(table)

        console.print(f"Total amount sent:   [bold]{result.total_amount}[/bold]")
        console.print(f"Completed amount:    [bold]{result.completed_amount}[/bold]")
        console.print(f"Avg. hours to close: [bold]{result.avg_processing_hours}[/bold]")
