"""Remittance type management commands."""

import typer
from rich.table import Table

from remitflow.remittance.application.services.type_service import RemittanceTypeService
from remitflow.remittance.domain.enums import DeliveryMethod

from ..common import cli_session, console

app = typer.Typer(help="Manage remittance types", no_args_is_help=True)


@app.command("list")
def list_types(
    active_only: bool = typer.Option(False, "--active", help="Only types accepting orders"),
) -> None:
    """List remittance types."""
    with cli_session() as db:
        types = RemittanceTypeService(db).list_types(active_only=active_only)

        if not types:
            console.print("[yellow]No remittance types configured[/yellow]")
            return

        table = Table(title="Remittance types", show_lines=False)
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Name", style="white")
        table.add_column("Currencies")
        table.add_column("Rate", justify="right")
        table.add_column("Commission", justify="right")
        table.add_column("Limits", justify="right")
        table.add_column("SLA (warn/max days)", justify="right")
        table.add_column("Active")

        for t in types:
            limit_max = str(t.max_amount) if t.max_amount is not None else "∞"
            table.add_row(
                str(t.id),
                t.name,
                f"{t.currency_code} → {t.delivery_currency}",
                str(t.exchange_rate),
                f"{t.commission_percentage}% + {t.commission_fixed}",
                f"{t.min_amount} - {limit_max}",
                f"{t.warning_days}/{t.max_delivery_days}",
                "[green]yes[/green]" if t.is_active else "[dim]no[/dim]",
            )

        console.print(table)


@app.command("add")
def add_type(
    name: str = typer.Option(..., "--name", help="Display name"),
    currency: str = typer.Option(..., "--currency", help="Currency paid by the sender"),
    delivery_currency: str = typer.Option(..., "--delivery-currency", help="Currency delivered"),
    rate: str = typer.Option(..., "--rate", help="Delivery units per sent unit"),
    min_amount: str = typer.Option(..., "--min", help="Minimum amount sent"),
    max_amount: str | None = typer.Option(None, "--max", help="Maximum amount sent"),
    commission_percentage: str = typer.Option("0", "--commission-pct"),
    commission_fixed: str = typer.Option("0", "--commission-fixed"),
    delivery_method: DeliveryMethod = typer.Option(DeliveryMethod.CASH, "--method"),
    max_delivery_days: int = typer.Option(3, "--max-days", help="Breach threshold in days"),
    warning_days: int = typer.Option(2, "--warning-days", help="Warning threshold in days"),
    description: str | None = typer.Option(None, "--description"),
) -> None:
    """Add a remittance type."""
    with cli_session() as db:
        remittance_type = RemittanceTypeService(db).create_type(
            name=name,
            currency_code=currency,
            delivery_currency=delivery_currency,
            exchange_rate=rate,
            min_amount=min_amount,
            max_amount=max_amount,
            commission_percentage=commission_percentage,
            commission_fixed=commission_fixed,
            delivery_method=delivery_method,
            max_delivery_days=max_delivery_days,
            warning_days=warning_days,
            description=description,
        )
        console.print(
            f"[green]✓ Remittance type {remittance_type.id} created:[/green] {remittance_type.name}"
        )


@app.command("deactivate")
def deactivate_type(type_id: int = typer.Argument(..., help="Remittance type ID")) -> None:
    """Stop accepting new orders for a type."""
    with cli_session() as db:
        remittance_type = RemittanceTypeService(db).deactivate_type(type_id)
        console.print(
            f"[green]✓ Remittance type {type_id} deactivated[/green] ({remittance_type.name})"
        )
