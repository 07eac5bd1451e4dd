"""Shared utilities for CLI commands."""

import typer
from rich.console import Console

from src.finstream.core.services.database.db_session import DbSessionService

console = Console()

DatabaseUrlOption = typer.Option(
    None,
    "--database-url",
    "-d",
    help="Database URL; defaults to database.url from config.yaml",
)


def get_database_service(database_url: str | None) -> DbSessionService:
    return DbSessionService(url=database_url)
