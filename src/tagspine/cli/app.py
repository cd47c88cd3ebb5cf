"""
Root Typer application for the tagspine operator CLI.

Works directly on the SQLite store the bot persists to, so moderators can
inspect and repair the directory while the bot is offline.
"""

from __future__ import annotations

import typer
from typer import Typer

from tagspine.cli.utils import console, handle_errors, open_repository, output_items
from tagspine.core.errors import NoUserTagsError
from tagspine.core.logging import configure_logging
from tagspine.core.settings import get_settings
from tagspine.directory.service import remove_platform as remove_platform_record
from tagspine.directory.store import DirectoryStore

app = Typer(
    name="tagspine",
    help="tagspine: inspect and maintain the shared tag directory.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

DatabaseOption = typer.Option(None, "--database", "-d", help="SQLite file (default: settings.database_path)")


def _version_callback(value: bool) -> None:
    if value:
        from tagspine import __version__

        typer.echo(f"tagspine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """tagspine CLI: platforms, user tags, moderation and settings."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


# ── Reads ────────────────────────────────────────────────────────────────


@app.command("platforms")
def platforms(
    database: str | None = DatabaseOption,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """List every platform with its tag count."""
    with handle_errors(), open_repository(database) as repo:
        summaries = DirectoryStore(repo.load()).list_platforms()
    output_items(summaries, as_json=as_json, title="Platforms")


@app.command("user")
def user(
    owner_id: str = typer.Argument(..., help="Owner ID to look up"),
    database: str | None = DatabaseOption,
    as_json: bool = typer.Option(False, "--json", help="Output JSON"),
) -> None:
    """Show every tag one user holds."""
    with handle_errors(), open_repository(database) as repo:
        entries = DirectoryStore(repo.load()).list_by_owner(owner_id)
        if not entries:
            raise NoUserTagsError().with_context(owner_id=owner_id)
    output_items(entries, as_json=as_json, title=f"Tags for {owner_id}")


@app.command("dump")
def dump(database: str | None = DatabaseOption) -> None:
    """Print the whole stored directory as JSON."""
    with handle_errors(), open_repository(database) as repo:
        directory = repo.load()
    console.print_json(directory.model_dump_json())


# ── Moderation ───────────────────────────────────────────────────────────


@app.command("remove-platform")
def remove_platform(
    name: str = typer.Argument(..., help="Platform to delete"),
    database: str | None = DatabaseOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete a platform and every tag on it.

    Run this only while the bot is stopped: the CLI shares no lock with a
    running bot.  The platform's chat role is left in place; delete it from
    the chat client if it exists.
    """
    if not yes:
        typer.confirm(f"Delete platform {name!r} and all its tags?", abort=True)

    with handle_errors(), open_repository(database) as repo:
        removed = remove_platform_record(repo, name)

    console.print(f"[green]Removed[/green] {removed.name} ({len(removed.users)} tags)")
    if removed.role_ref:
        console.print(f"[yellow]Role {removed.role_ref} was not deleted[/yellow]")


# ── Settings ─────────────────────────────────────────────────────────────


@app.command("config")
def config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective settings."""
    settings = get_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"TAGSPINE_{key.upper()}={value}")
        return

    from rich.table import Table

    table = Table(title="Settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(settings.model_dump().items()):
        table.add_row(key, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
