"""
CLI utility helpers: output formatting and store access.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from tagspine.core.errors import TagSpineError
from tagspine.core.settings import get_settings
from tagspine.core.storage import SqliteKeyValueStore
from tagspine.directory.repository import DirectoryRepository

console = Console()
err_console = Console(stderr=True)


# ── Store helper ─────────────────────────────────────────────────────────


@contextmanager
def open_repository(database: str | None = None) -> Iterator[DirectoryRepository]:
    """Open the SQLite-backed directory.  Defaults to ``settings.database_path``."""
    settings = get_settings()
    store = SqliteKeyValueStore(database or settings.database_path)
    try:
        yield DirectoryRepository(store, key=settings.storage_key)
    finally:
        store.close()


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print a :class:`TagSpineError` as one red line and exit 1."""
    try:
        yield
    except TagSpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from None


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_items(items: list, *, as_json: bool = False, title: str = "") -> None:
    """Render a list of models/dataclasses as a Rich table or JSON."""
    if as_json:
        console.print_json(json.dumps([_to_dict(i) for i in items], default=str))
        return

    if not items:
        console.print("[dim]No items.[/dim]")
        return

    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(str(v) for v in _to_dict(item).values()))
    console.print(table)
