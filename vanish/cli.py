from __future__ import annotations

import click
from flask import Flask
from flask.cli import with_appcontext

from vanish.db import create_schema
from vanish.repositories.paste_repository import PasteStoreError
from vanish.services.paste_service import PasteService
from vanish.store import get_paste_store


PREVIEW_CHARS = 50


@click.command("check-db")
@click.option("--limit", default=10, show_default=True, help="Number of recent pastes to list.")
@with_appcontext
def check_db_command(limit: int) -> None:
    """Report store reachability and list the most recent pastes."""
    service = PasteService(store=get_paste_store())
    try:
        health = service.check_health()
        total = service.store.count()
        recent = service.store.list_recent(limit)
    except PasteStoreError as exc:
        raise click.ClickException(f"Record store unreachable: {exc}") from exc

    click.echo(f"Connected at {health['timestamp'].isoformat()}")
    click.echo(f"Total pastes: {total}")
    for index, record in enumerate(recent, start=1):
        preview = record.content[:PREVIEW_CHARS].replace("\n", " ")
        limit_text = f"/{record.max_views}" if record.max_views is not None else ""
        click.echo(f"{index}. {record.id}  {record.title}")
        click.echo(f"   views: {record.view_count}{limit_text}  created: {record.created_at.isoformat()}")
        click.echo(f"   {preview}")


@click.command("sweep-expired")
@with_appcontext
def sweep_expired_command() -> None:
    """Delete pastes that expired without being fetched."""
    try:
        removed = PasteService(store=get_paste_store()).sweep_expired()
    except PasteStoreError as exc:
        raise click.ClickException(f"Record store unreachable: {exc}") from exc
    click.echo(f"Deleted {removed} expired paste(s).")


@click.command("init-db")
@with_appcontext
def init_db_command() -> None:
    """Create the pastes table without running migrations."""
    create_schema()
    click.echo("Database schema created.")


def register_cli(app: Flask) -> None:
    app.cli.add_command(check_db_command)
    app.cli.add_command(sweep_expired_command)
    app.cli.add_command(init_db_command)
