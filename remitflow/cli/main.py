"""Main CLI entry point for RemitFlow."""

import typer
from rich.console import Console

from remitflow import __version__
from remitflow.utils.config import get_settings
from remitflow.utils.logging import configure_from_settings

from .commands import alerts, db, integrity, orders, stats, types

app = typer.Typer(
    name="remitflow",
    help="💸 Remittance order lifecycle: pricing, processing, SLA alerts and audit",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]RemitFlow[/bold blue] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """
    RemitFlow - remittance orders from payment proof to delivery.

    Actors are authenticated elsewhere; pass their identity with --actor/--role.
    """
    configure_from_settings(get_settings())


# Register command groups
app.add_typer(db.app, name="db", help="🗄️  Manage the order store")
app.add_typer(types.app, name="types", help="⚙️  Manage remittance types")
app.add_typer(orders.app, name="orders", help="💸 Create and process orders")
app.add_typer(alerts.app, name="alerts", help="⏰ Service-level alerts")
app.add_typer(integrity.app, name="integrity", help="🔍 Audit trail integrity")
app.command("stats", help="📊 Order statistics")(stats.stats)


if __name__ == "__main__":
    app()
