"""List command -- show databases from the workspace snapshot (offline)."""

from __future__ import annotations

import typer

from notioncli.cache.snapshot import is_stale
from notioncli.envelope import EnvelopeFormatter, command_errors
from notioncli.exceptions import CacheError
from notioncli.output import get_output
from notioncli.state import get_state


def list_command(ctx: typer.Context) -> None:
    """List cached databases without contacting the API.

    Example::

        notion-cli list
        notion-cli list --plain | cut -f2
    """
    state = get_state(ctx)
    formatter = EnvelopeFormatter("list")
    output = get_output()

    with command_errors(formatter):
        snapshot = state.snapshot_store.load(retries=2)
        if snapshot is None:
            raise CacheError(
                "Workspace cache is not initialized",
                context={"path": str(state.snapshot_store.path())},
                suggestions=["Run: notion-cli sync"],
            )

    if snapshot.last_sync is None or is_stale(snapshot.last_sync):
        output.warning("Workspace cache is stale; run `notion-cli sync` to refresh it")

    data = [
        {
            "id": db.id,
            "title": db.title,
            "aliases": db.aliases,
            "url": db.url,
            "last_edited_time": db.last_edited_time,
        }
        for db in snapshot.databases
    ]
    formatter.emit_success(
        data,
        human=lambda: output.print_table(
            ["Title", "ID", "Aliases"],
            [[db.title, db.id, ", ".join(db.aliases)] for db in snapshot.databases],
            title="Databases",
        ),
    )
