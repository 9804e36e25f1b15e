"""Remittance order commands.

Authentication is external: the acting identity and role are passed with
``--actor`` / ``--role``.
"""

from collections.abc import Callable

import typer
from rich.panel import Panel
from rich.table import Table

from remitflow.remittance.application.services.order_service import OrderLifecycleService
from remitflow.remittance.application.services.settlement import quote
from remitflow.remittance.application.services.type_service import RemittanceTypeService
from remitflow.remittance.domain.enums import ActorRole, OrderStatus, ProofKind
from remitflow.remittance.domain.models import Order
from remitflow.remittance.domain.value_objects import (
    RecipientConfirmation,
    RecipientDetails,
)
from remitflow.utils.config import get_settings

from ..common import cli_session, console, make_actor, status_style

app = typer.Typer(help="Create and process remittance orders", no_args_is_help=True)

ExpectedOption = typer.Option(
    None,
    "--expected",
    help="Status you observed; defaults to the current status",
)


def _print_order_line(order: Order, action: str) -> None:
    status = order.status.value
    console.print(
        f"[green]✓ {action}:[/green] {order.order_number} "
        f"→ [{status_style(status)}]{status}[/{status_style(status)}]"
    )


def _transition(
    order_id: int,
    expected: OrderStatus | None,
    action: str,
    apply: Callable[[OrderLifecycleService, OrderStatus], Order],
) -> None:
    """Run one transition, using the current status when none was observed."""
    with cli_session() as db:
        service = OrderLifecycleService(db)
        observed = expected or service.get_order(order_id).status
        order = apply(service, observed)
        _print_order_line(order, action)


@app.command("quote")
def quote_order(
    type_id: int = typer.Argument(..., help="Remittance type ID"),
    amount: str = typer.Argument(..., help="Amount sent"),
) -> None:
    """Price an amount without creating an order."""
    with cli_session() as db:
        remittance_type = RemittanceTypeService(db).get_type(type_id)
        settlement = quote(
            remittance_type, amount, minor_units=get_settings().currency_minor_units
        )

        table = Table(show_header=False, box=None)
        table.add_column("Field", style="cyan")
        table.add_column("Value", justify="right")
        table.add_row("Amount sent", f"{settlement.amount_sent} {remittance_type.currency_code}")
        table.add_row("Exchange rate", str(settlement.exchange_rate))
        table.add_row(
            "Commission",
            f"{settlement.commission} {remittance_type.currency_code} "
            f"({settlement.commission_percentage}% + {settlement.commission_fixed})",
        )
        table.add_row(
            "To deliver",
            f"[bold]{settlement.amount_to_deliver} {remittance_type.delivery_currency}[/bold]",
        )
        console.print(Panel(table, title=f"Quote: {remittance_type.name}"))


@app.command("create")
def create_order(
    actor: str = typer.Option(..., "--actor", help="Sender ID"),
    type_id: int = typer.Option(..., "--type", help="Remittance type ID"),
    amount: str = typer.Option(..., "--amount", help="Amount sent"),
    recipient_name: str = typer.Option(..., "--recipient-name"),
    recipient_phone: str = typer.Option(..., "--recipient-phone"),
    recipient_id: str | None = typer.Option(None, "--recipient-id"),
    address: str | None = typer.Option(None, "--address"),
    province: str | None = typer.Option(None, "--province"),
    municipality: str | None = typer.Option(None, "--municipality"),
    notes: str | None = typer.Option(None, "--notes"),
) -> None:
    """Create a remittance order."""
    recipient = RecipientDetails(
        name=recipient_name,
        phone=recipient_phone,
        id_number=recipient_id,
        address=address,
        province=province,
        municipality=municipality,
        notes=notes,
    )
    with cli_session() as db:
        order = OrderLifecycleService(db).create_order(actor, type_id, amount, recipient)
        _print_order_line(order, f"Order {order.id} created")
        console.print(
            f"  Commission: {order.commission_total} {order.currency_sent}  "
            f"To deliver: [bold]{order.amount_to_deliver} {order.currency_delivered}[/bold]"
        )


@app.command("upload-proof")
def upload_proof(
    order_id: int = typer.Argument(..., help="Order ID"),
    proof: str = typer.Option(..., "--proof", help="Stored proof reference"),
    reference: str | None = typer.Option(None, "--reference", help="Bank/transfer reference"),
    notes: str | None = typer.Option(None, "--notes"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.SENDER, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Upload the payment proof."""
    who = make_actor(actor, role)
    _transition(
        order_id,
        expected,
        "Payment proof uploaded",
        lambda s, observed: s.upload_proof(order_id, observed, who, proof, reference, notes),
    )


@app.command("validate")
def validate_payment(
    order_id: int = typer.Argument(..., help="Order ID"),
    notes: str | None = typer.Option(None, "--notes"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.ADMIN, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Validate the payment proof."""
    who = make_actor(actor, role)
    _transition(
        order_id,
        expected,
        "Payment validated",
        lambda s, observed: s.validate_payment(order_id, observed, who, notes),
    )


@app.command("reject")
def reject_payment(
    order_id: int = typer.Argument(..., help="Order ID"),
    reason: str = typer.Option(..., "--reason"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.ADMIN, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Reject the payment proof."""
    who = make_actor(actor, role)
    _transition(
        order_id,
        expected,
        "Payment rejected",
        lambda s, observed: s.reject_payment(order_id, observed, who, reason),
    )


@app.command("start")
def start_processing(
    order_id: int = typer.Argument(..., help="Order ID"),
    notes: str | None = typer.Option(None, "--notes"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.ADMIN, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Start processing (delivery SLA starts now)."""
    who = make_actor(actor, role)
    _transition(
        order_id,
        expected,
        "Processing started",
        lambda s, observed: s.start_processing(order_id, observed, who, notes),
    )


@app.command("deliver")
def confirm_delivery(
    order_id: int = typer.Argument(..., help="Order ID"),
    proof: str = typer.Option(..., "--proof", help="Stored delivery proof reference"),
    received_by: str = typer.Option(..., "--received-by", help="Name of the person who received"),
    received_id: str = typer.Option(..., "--received-id", help="Their identity document number"),
    notes: str | None = typer.Option(None, "--notes"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.ADMIN, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Confirm delivery to the recipient."""
    who = make_actor(actor, role)
    confirmation = RecipientConfirmation(name=received_by, id_number=received_id, notes=notes)
    _transition(
        order_id,
        expected,
        "Delivery confirmed",
        lambda s, observed: s.confirm_delivery(order_id, observed, who, proof, confirmation),
    )


@app.command("complete")
def complete_order(
    order_id: int = typer.Argument(..., help="Order ID"),
    notes: str | None = typer.Option(None, "--notes"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.ADMIN, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Close a delivered order."""
    who = make_actor(actor, role)
    _transition(
        order_id,
        expected,
        "Order completed",
        lambda s, observed: s.complete(order_id, observed, who, notes),
    )


@app.command("cancel")
def cancel_order(
    order_id: int = typer.Argument(..., help="Order ID"),
    reason: str = typer.Option(..., "--reason"),
    actor: str = typer.Option(..., "--actor"),
    role: ActorRole = typer.Option(ActorRole.SENDER, "--role"),
    expected: OrderStatus | None = ExpectedOption,
) -> None:
    """Cancel an order before delivery."""
    who = make_actor(actor, role)
    _transition(
        order_id,
        expected,
        "Order cancelled",
        lambda s, observed: s.cancel(order_id, observed, who, reason),
    )


def _order_panel(service: OrderLifecycleService, order: Order) -> Panel:
    status = order.status.value
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Status", f"[{status_style(status)}]{status}[/{status_style(status)}]")
    table.add_row("Sender", order.owner_id)
    table.add_row("Amount sent", f"{order.amount_sent} {order.currency_sent}")
    table.add_row("Exchange rate", str(order.exchange_rate))
    table.add_row("Commission", f"{order.commission_total} {order.currency_sent}")
    table.add_row("To deliver", f"{order.amount_to_deliver} {order.currency_delivered}")
    table.add_row("Recipient", f"{order.recipient_name} ({order.recipient_phone})")
    if order.recipient_municipality or order.recipient_province:
        place = ", ".join(p for p in (order.recipient_municipality, order.recipient_province) if p)
        table.add_row("Destination", place)

    payment_url = service.resolve_proof_url(order.id, ProofKind.PAYMENT)
    if payment_url:
        table.add_row("Payment proof", payment_url)
    if order.rejection_reason:
        table.add_row("Rejection reason", order.rejection_reason)
    delivery_url = service.resolve_proof_url(order.id, ProofKind.DELIVERY)
    if delivery_url:
        table.add_row("Delivery proof", delivery_url)
        table.add_row("Received by", f"{order.delivered_to_name}")
    if order.cancellation_reason:
        table.add_row("Cancellation reason", order.cancellation_reason)

    for name, stamp in order.stage_timestamps():
        if stamp is not None:
            table.add_row(name.replace("_", " "), stamp.isoformat(timespec="seconds"))

    return Panel(table, title=f"Order {order.order_number} (#{order.id}, v{order.version})")


@app.command("show")
def show_order(order_id: int = typer.Argument(..., help="Order ID")) -> None:
    """Show one order."""
    with cli_session() as db:
        service = OrderLifecycleService(db)
        console.print(_order_panel(service, service.get_order(order_id)))


@app.command("list")
def list_orders(
    owner: str | None = typer.Option(None, "--owner", help="Only orders of this sender"),
    status: OrderStatus | None = typer.Option(None, "--status", help="Filter by status"),
    limit: int = typer.Option(50, "--limit", "-l", help="Maximum number of orders to show"),
) -> None:
    """List orders, newest first."""
    with cli_session() as db:
        orders = OrderLifecycleService(db).list_orders(owner_id=owner, status=status, limit=limit)
        _print_orders(orders)


def _print_orders(orders: list[Order]) -> None:
    if not orders:
        console.print("[yellow]No orders found[/yellow]")
        return

    table = Table(title=f"Orders ({len(orders)})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Number")
    table.add_column("Sender")
    table.add_column("Sent", justify="right")
    table.add_column("To deliver", justify="right")
    table.add_column("Recipient")
    table.add_column("Status")
    table.add_column("Created")

    for order in orders:
        status = order.status.value
        table.add_row(
            str(order.id),
            order.order_number,
            order.owner_id,
            f"{order.amount_sent} {order.currency_sent}",
            f"{order.amount_to_deliver} {order.currency_delivered}",
            order.recipient_name,
            f"[{status_style(status)}]{status}[/{status_style(status)}]",
            order.created_at.strftime("%Y-%m-%d %H:%M"),
        )

    console.print(table)


@app.command("audit")
def audit_trail(order_id: int = typer.Argument(..., help="Order ID")) -> None:
    """Show the audit trail of an order."""
    with cli_session() as db:
        entries = OrderLifecycleService(db).list_audit_trail(order_id)

        table = Table(title=f"Audit trail of order {order_id}")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("When")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Actor")
        table.add_column("Reason / notes")

        for entry in entries:
            previous = entry.previous_status.value if entry.previous_status else "-"
            detail = " / ".join(text for text in (entry.reason, entry.notes) if text)
            table.add_row(
                str(entry.sequence),
                entry.created_at.isoformat(timespec="seconds"),
                previous,
                entry.new_status.value,
                f"{entry.actor_id} ({entry.actor_role})",
                detail,
            )

        console.print(table)
