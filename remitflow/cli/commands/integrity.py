"""Audit trail maintenance commands."""

import typer

from remitflow.remittance.application.services.audit import AuditTrail

from ..common import cli_session, console

app = typer.Typer(help="Audit trail integrity checks", no_args_is_help=True)


@app.command("check")
def check(
    order_id: int | None = typer.Option(None, "--order", help="Check a single order"),
) -> None:
    """Replay audit trails and compare them with persisted statuses."""
    with cli_session() as db:
        trail = AuditTrail(db)
        if order_id is not None:
            status = trail.verify(order_id)
            console.print(f"[green]✓ Order {order_id} consistent[/green] (status: {status.value})")
            return

        checked = trail.verify_all()
        console.print(f"[green]✓ {checked} order(s) consistent with their audit trail[/green]")
