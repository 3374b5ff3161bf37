"""Cache commands -- inspect and clear the response caches.

Provides the ``notion-cli cache`` sub-command group.  ``info`` (also
available as ``stats`` and ``status``) reports on the in-memory cache and
the workspace snapshot without changing either; ``clear`` empties the
in-memory cache and the disk tier but keeps the workspace snapshot.
"""

from __future__ import annotations

import typer

from notioncli.cache.inspector import render_report
from notioncli.envelope import EnvelopeFormatter, command_errors
from notioncli.output import print_data, success
from notioncli.state import get_state


cache_app = typer.Typer(no_args_is_help=True)


def cache_info(ctx: typer.Context) -> None:
    """Show cache statistics, workspace snapshot state and recommendations.

    Example::

        notion-cli cache info
        notion-cli cache info --json
    """
    state = get_state(ctx)
    formatter = EnvelopeFormatter(f"cache {ctx.info_name}")

    with command_errors(formatter):
        report = state.inspector().report()

    formatter.emit_success(
        report.model_dump(mode="json"),
        human=lambda: print_data(render_report(report)),
    )


cache_app.command("info")(cache_info)
cache_app.command("stats", hidden=True)(cache_info)
cache_app.command("status", hidden=True)(cache_info)


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Clear the in-memory cache and the disk response cache.

    The workspace snapshot is kept; run ``notion-cli sync`` to refresh it.
    """
    state = get_state(ctx)
    formatter = EnvelopeFormatter("cache clear")

    memory_entries = len(state.entry_cache)
    state.entry_cache.clear()
    disk_entries = state.disk_cache.clear() if state.disk_cache is not None else 0

    data = {"memory_entries_cleared": memory_entries, "disk_entries_cleared": disk_entries}
    formatter.emit_success(
        data,
        human=lambda: success(
            f"Cleared {memory_entries} in-memory and {disk_entries} disk cache entries"
        ),
    )
