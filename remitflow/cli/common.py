"""Shared helpers for CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from sqlalchemy.orm import Session

from remitflow.core.events import get_global_event_bus, register_default_listeners
from remitflow.exceptions import (
    IntegrityCheckFailedError,
    RemitFlowError,
    TransitionRejectedError,
)
from remitflow.remittance.application.collaborators import LoggingDispatcher, NotificationListener
from remitflow.remittance.domain.enums import ActorRole
from remitflow.remittance.domain.value_objects import Actor
from remitflow.storage.database import base as database
from remitflow.storage.session import db_session
from remitflow.utils.config import get_settings

console = Console()

_notification_listener: NotificationListener | None = None


def ensure_db() -> None:
    """Ensure database is initialized."""
    settings = get_settings()
    database.init_db(str(settings.database_url))


def wire_event_bus() -> None:
    """Attach the audit log and notification listeners to the global bus (idempotent)."""
    global _notification_listener

    bus = get_global_event_bus()
    register_default_listeners(bus)
    if _notification_listener is None:
        _notification_listener = NotificationListener(LoggingDispatcher(), channel="log")
    _notification_listener.attach(bus)


def prepare_runtime() -> None:
    """Initialize the database and wire the event bus for one command."""
    ensure_db()
    wire_event_bus()


@contextmanager
def cli_session() -> Iterator[Session]:
    """Session for one command; RemitFlow errors become a red message and exit code 1."""
    prepare_runtime()
    with handle_errors(), db_session() as db:
        yield db


@contextmanager
def handle_errors() -> Iterator[None]:
    try:
        yield
    except TransitionRejectedError as e:
        console.print(f"[red]✗ {e.user_message}[/red]")
        console.print(f"[dim]reason: {e.reason.value}[/dim]")
        raise typer.Exit(1) from e
    except IntegrityCheckFailedError as e:
        console.print(f"[bold red]✗ {e.message}[/bold red]")
        for mismatch in e.mismatches:
            console.print(f"  [red]order {mismatch['order_id']}: {mismatch['problem']}[/red]")
        raise typer.Exit(1) from e
    except RemitFlowError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(1) from e


def make_actor(actor_id: str, role: ActorRole) -> Actor:
    try:
        return Actor(actor_id=actor_id, role=role)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1) from e


def status_style(status: str) -> str:
    """Rich color for an order status."""
    return {
        "created": "white",
        "proof_uploaded": "cyan",
        "validated": "blue",
        "rejected": "yellow",
        "processing": "magenta",
        "delivered": "green",
        "completed": "bold green",
        "cancelled": "dim",
    }.get(status, "white")


def severity_style(severity: str) -> str:
    return {"warning": "yellow", "breach": "bold red"}.get(severity, "green")
