"""SLA alert commands."""

import asyncio

import typer
from rich.table import Table

from remitflow.remittance.application.notifier import RealtimeNotifier, SubscriptionFilter
from remitflow.remittance.application.services.alert_scheduler import AlertScheduler
from remitflow.remittance.domain.enums import EventKind
from remitflow.remittance.domain.value_objects import Alert
from remitflow.storage.database import base as database
from remitflow.utils.config import get_settings

from ..common import console, handle_errors, prepare_runtime, severity_style

app = typer.Typer(help="Service-level alerts on orders", no_args_is_help=True)


def _scheduler() -> AlertScheduler:
    prepare_runtime()
    return AlertScheduler(database.get_session, settings=get_settings())


def _print_alerts(alerts: list[Alert]) -> None:
    if not alerts:
        console.print("[green]✓ All orders within their SLA[/green]")
        return

    table = Table(title=f"SLA alerts ({len(alerts)})")
    table.add_column("Order", style="cyan")
    table.add_column("Sender")
    table.add_column("Status")
    table.add_column("Severity")
    table.add_column("Elapsed (h)", justify="right")
    table.add_column("Threshold (h)", justify="right")

    for alert in alerts:
        severity = alert.severity.value
        style = severity_style(severity)
        table.add_row(
            alert.order_number,
            alert.owner_id,
            alert.status.value,
            f"[{style}]{severity}[/{style}]",
            f"{alert.elapsed_hours:.1f}",
            f"{alert.threshold.total_seconds() / 3600:.1f}",
        )

    console.print(table)


@app.command("scan")
def scan() -> None:
    """Run one SLA scan and show the alerts it raised."""
    with handle_errors():
        _print_alerts(_scheduler().run_tick())


@app.command("watch")
def watch(
    interval: int | None = typer.Option(
        None, "--interval", help="Seconds between scans (default: REMITFLOW_ALERT_INTERVAL_SECONDS)"
    ),
    owner: str | None = typer.Option(None, "--owner", help="Only alerts on this sender's orders"),
) -> None:
    """Scan periodically and stream alerts as they are raised, until interrupted."""
    scheduler = _scheduler()
    if interval:
        scheduler.interval = interval

    notifier = RealtimeNotifier(scheduler.event_bus)
    notifier.attach()
    subscription = notifier.subscribe(
        SubscriptionFilter(owner_id=owner, kinds=frozenset({EventKind.ALERT_RAISED}))
    )

    async def _print_events() -> None:
        async for event in subscription:
            severity = event.payload["severity"]
            style = severity_style(severity)
            console.print(
                f"[{style}]{severity.upper()}[/{style}] {event.payload['order_number']} "
                f"({event.payload['status']}, {event.payload['elapsed_hours']:.1f}h "
                f"of {event.payload['threshold_hours']:.1f}h)"
            )

    async def _run() -> None:
        printer = asyncio.create_task(_print_events())
        await scheduler.start()
        try:
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()
            subscription.unsubscribe()
            await printer

    console.print(
        f"[bold blue]Watching order SLAs every {scheduler.interval}s[/bold blue] "
        "[dim](Ctrl+C to stop)[/dim]"
    )
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped[/yellow]")
    finally:
        notifier.detach()
