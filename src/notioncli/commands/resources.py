"""Resource commands -- cached reads of pages, databases, users and blocks.

Each command is a thin passthrough to a :class:`~notioncli.client.NotionClient`
read method.  Repeated reads inside the namespace TTL are answered from the
cache; ``--no-cache`` forces a network call.

``db retrieve`` also accepts a database name or alias, resolved offline
against the workspace snapshot.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from typing import Any

import typer

from notioncli.client import NotionClient
from notioncli.envelope import EnvelopeFormatter, command_errors
from notioncli.exceptions import NotFoundError
from notioncli.output import get_output
from notioncli.state import CliState, get_state


page_app = typer.Typer(no_args_is_help=True)
db_app = typer.Typer(no_args_is_help=True)
user_app = typer.Typer(no_args_is_help=True)
block_app = typer.Typer(no_args_is_help=True)

_NOTION_ID_RE = re.compile(r"^[0-9a-fA-F]{8}-?([0-9a-fA-F]{4}-?){3}[0-9a-fA-F]{12}$")


def _run(
    state: CliState,
    command: str,
    endpoint: str,
    call: Callable[[NotionClient], Awaitable[Any]],
) -> None:
    """Execute *call* with a fresh client and emit its result."""
    formatter = EnvelopeFormatter(command)

    async def _go() -> Any:
        async with state.client() as client:
            return await call(client)

    with command_errors(formatter, endpoint=endpoint):
        data = asyncio.run(_go())
    formatter.emit_success(data)


def resolve_database_id(state: CliState, query: str) -> str:
    """Return the data source id for *query*.

    A Notion id is returned unchanged.  Anything else is looked up by
    title or alias in the workspace snapshot.

    Raises:
        NotFoundError: No snapshot database matches *query*.
    """
    if _NOTION_ID_RE.match(query.strip()):
        return query.strip()

    snapshot = state.snapshot_store.load(retries=2)
    match = snapshot.find_database(query) if snapshot is not None else None
    if match is None:
        raise NotFoundError(
            f"No cached database matches {query!r}",
            context={"query": query},
            suggestions=[
                "Run: notion-cli sync",
                "Run: notion-cli list to see cached databases",
            ],
        )
    get_output().debug(f"Resolved {query!r} to {match.id} ({match.title})")
    return match.id


@page_app.command("retrieve")
def page_retrieve(
    ctx: typer.Context,
    page_id: str = typer.Argument(help="Page ID."),
) -> None:
    """Retrieve a page.

    Example::

        notion-cli page retrieve 1a2b3c4d5e6f... --json
    """
    _run(
        get_state(ctx),
        "page retrieve",
        f"GET /pages/{page_id}",
        lambda client: client.retrieve_page(page_id),
    )


@db_app.command("retrieve")
def db_retrieve(
    ctx: typer.Context,
    database: str = typer.Argument(help="Data source ID, name, or alias."),
) -> None:
    """Retrieve a database (data source) by ID or cached name.

    Example::

        notion-cli db retrieve "Tasks"
        notion-cli db retrieve "tasks db" --json
    """
    state = get_state(ctx)
    formatter = EnvelopeFormatter("db retrieve")
    with command_errors(formatter):
        data_source_id = resolve_database_id(state, database)

    _run(
        state,
        "db retrieve",
        f"GET /data_sources/{data_source_id}",
        lambda client: client.retrieve_data_source(data_source_id),
    )


@user_app.command("retrieve")
def user_retrieve(
    ctx: typer.Context,
    user_id: str = typer.Argument(help="User ID."),
) -> None:
    """Retrieve a user."""
    _run(
        get_state(ctx),
        "user retrieve",
        f"GET /users/{user_id}",
        lambda client: client.retrieve_user(user_id),
    )


@user_app.command("list")
def user_list(ctx: typer.Context) -> None:
    """List users in the workspace."""
    _run(get_state(ctx), "user list", "GET /users", lambda client: client.list_users())


@block_app.command("retrieve")
def block_retrieve(
    ctx: typer.Context,
    block_id: str = typer.Argument(help="Block ID."),
    children: bool = typer.Option(
        False, "--children", "-c", help="Retrieve the block's children instead."
    ),
) -> None:
    """Retrieve a block, or its children with ``--children``."""
    state = get_state(ctx)
    if children:
        _run(
            state,
            "block retrieve",
            f"GET /blocks/{block_id}/children",
            lambda client: client.retrieve_block_children(block_id),
        )
    else:
        _run(
            state,
            "block retrieve",
            f"GET /blocks/{block_id}",
            lambda client: client.retrieve_block(block_id),
        )
