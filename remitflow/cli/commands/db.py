"""Database management commands."""

import typer
from sqlalchemy import inspect

from remitflow.storage.database import base as database
from remitflow.utils.config import get_settings

from ..common import console

app = typer.Typer(help="Manage the order store", no_args_is_help=True)


@app.command("init")
def init(
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override REMITFLOW_DATABASE_URL"
    ),
) -> None:
    """Create the order store tables if they do not exist."""
    url = database_url or str(get_settings().database_url)
    engine = database.init_db(url)

    tables = sorted(inspect(engine).get_table_names())
    console.print(f"[green]✓ Database ready:[/green] {engine.url.render_as_string()}")
    for table in tables:
        console.print(f"  [dim]- {table}[/dim]")
