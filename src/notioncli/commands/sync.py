"""Sync command -- refresh the workspace snapshot from the Notion API."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import typer

from notioncli.cache.snapshot import (
    SNAPSHOT_VERSION,
    build_database_entry,
    next_recommended_sync,
)
from notioncli.envelope import EnvelopeFormatter, command_errors
from notioncli.models import WorkspaceSnapshot
from notioncli.output import get_output
from notioncli.state import CliState, get_state


async def _fetch_data_sources(state: CliState) -> list[dict[str, Any]]:
    async with state.client() as client:
        return await client.search_data_sources()


def sync_command(ctx: typer.Context) -> None:
    """Fetch every shared database and replace the workspace snapshot.

    The snapshot is rewritten in full; databases that are no longer shared
    with the integration disappear from it.

    Example::

        notion-cli sync
        notion-cli sync --json
    """
    state = get_state(ctx)
    formatter = EnvelopeFormatter("sync")
    output = get_output()

    with command_errors(formatter, endpoint="POST /search"):
        output.progress("Fetching databases...")
        payloads = asyncio.run(_fetch_data_sources(state))
        databases = [build_database_entry(p) for p in payloads if p.get("id")]
        synced_at = datetime.now(timezone.utc)
        snapshot = state.snapshot_store.save(
            WorkspaceSnapshot(
                version=SNAPSHOT_VERSION, last_sync=synced_at, databases=databases
            )
        )

    next_sync = next_recommended_sync(synced_at)
    data = {
        "databases_cached": len(snapshot.databases),
        "cache_location": str(state.snapshot_store.path()),
        "last_sync": synced_at.isoformat(),
        "next_sync": next_sync.isoformat(),
        "databases": [{"id": db.id, "title": db.title} for db in snapshot.databases],
    }

    def _human() -> None:
        output.success(f"Synced {len(snapshot.databases)} databases")
        output.info(f"Cache location: {data['cache_location']}")
        output.info(f"Next recommended sync: {data['next_sync']}")
        output.print_table(
            ["Title", "ID"],
            [[db.title, db.id] for db in snapshot.databases],
            title="Databases",
        )

    formatter.emit_success(data, human=_human)
