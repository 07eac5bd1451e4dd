"""Database maintenance commands."""

import typer
from sqlalchemy.exc import SQLAlchemyError

from .utils import DatabaseUrlOption, console, get_database_service

db_app = typer.Typer(help="🗄️ Database commands")


@db_app.command("init")
def init(database_url: str | None = DatabaseUrlOption) -> None:
    """Create any missing tables."""
    service = get_database_service(database_url)
    try:
        service.create_all()
    except SQLAlchemyError as e:
        console.print(f"[red]❌ Failed to create tables: {e}[/red]")
        raise typer.Exit(1) from None
    finally:
        service.dispose()
    console.print("[green]✅ Tables are ready[/green]")


@db_app.command("check")
def check(database_url: str | None = DatabaseUrlOption) -> None:
    """Exit non-zero when the database cannot be reached."""
    service = get_database_service(database_url)
    try:
        healthy = service.health_check()
    finally:
        service.dispose()

    if not healthy:
        console.print("[red]❌ Database is not reachable[/red]")
        raise typer.Exit(1)
    console.print("[green]✅ Database is reachable[/green]")
