"""User inspection and subscription administration commands."""

import typer
from rich.table import Table

from src.finstream.core.exceptions import PersistenceError
from src.finstream.entities.user import User, UserRepository

from .utils import DatabaseUrlOption, console, get_database_service

users_app = typer.Typer(help="👥 User subscription commands")


def _flag(value: bool) -> str:
    return "✅" if value else "❌"


def _user_table(users: list[User], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("External ID", style="cyan")
    table.add_column("Username", style="green")
    table.add_column("Email", style="blue")
    table.add_column("Subscribed", style="yellow")
    for user in users:
        table.add_row(
            str(user.id),
            user.external_identity_id,
            user.username,
            user.email,
            _flag(user.subscribed),
        )
    return table


@users_app.command("list")
def list_users(
    subscribed_only: bool = typer.Option(
        False, "--subscribed", help="Only show subscribed users"
    ),
    database_url: str | None = DatabaseUrlOption,
) -> None:
    """📋 List stored users."""
    service = get_database_service(database_url)
    try:
        with service.get_session() as session:
            users = UserRepository(session).list_all()
    except PersistenceError as e:
        console.print(f"[red]❌ Failed to list users: {e}[/red]")
        raise typer.Exit(1) from None
    finally:
        service.dispose()

    if subscribed_only:
        users = [u for u in users if u.subscribed]
    if not users:
        console.print("[yellow]No users found[/yellow]")
        return

    console.print(_user_table(users, "Users"))
    console.print(f"\n[dim]Showing {len(users)} users[/dim]")


@users_app.command("set-subscription")
def set_subscription(
    external_id: str = typer.Argument(..., help="Identity provider subject"),
    subscribed: bool | None = typer.Option(
        None, "--on/--off", help="Subscribe or unsubscribe the user"
    ),
    database_url: str | None = DatabaseUrlOption,
) -> None:
    """Change the subscription flag of an existing user.

    Users are only created by their first authenticated request, since their
    username and email come from the identity token.
    """
    if subscribed is None:
        console.print("[red]❌ Pass --on or --off[/red]")
        raise typer.Exit(2)

    service = get_database_service(database_url)
    try:
        with service.get_session() as session:
            repo = UserRepository(session)
            user = repo.find_by_external_id(external_id)
            if user is None:
                console.print(f"[red]❌ User '{external_id}' not found[/red]")
                raise typer.Exit(1)
            saved = repo.persist(user.model_copy(update={"subscribed": subscribed}))
    except PersistenceError as e:
        console.print(f"[red]❌ Failed to update user: {e}[/red]")
        raise typer.Exit(1) from None
    finally:
        service.dispose()

    console.print(_user_table([saved], f"Updated user {external_id}"))
