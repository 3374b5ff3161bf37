"""Root Typer application for notion-cli.

Global flags are parsed by :func:`main_callback`, which installs the
process-wide :class:`~notioncli.output.OutputManager` and builds the
:class:`~notioncli.state.CliState` (caches, snapshot store, API client
factory) that every sub-command reads from ``ctx.obj``.

:func:`main` is the ``notion-cli`` console script.  Known CLI errors end
the process with their own exit code; anything unexpected leaves a crash
log under the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from notioncli import __version__
from notioncli.commands.cache import cache_app
from notioncli.commands.list import list_command
from notioncli.commands.resources import block_app, db_app, page_app, user_app
from notioncli.commands.sync import sync_command
from notioncli.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from notioncli.output import OutputFormat


app = typer.Typer(
    name="notion-cli",
    help="Caching command-line client for the Notion API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(cache_app, name="cache", help="Inspect and clear the caches.")
app.command("sync")(sync_command)
app.command("list")(list_command)
app.add_typer(page_app, name="page", help="Retrieve pages.")
app.add_typer(db_app, name="db", help="Retrieve databases (data sources).")
app.add_typer(user_app, name="user", help="Retrieve and list users.")
app.add_typer(block_app, name="block", help="Retrieve blocks and their children.")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"notion-cli {__version__}")
        raise typer.Exit()


def _output_format(json_output: bool, plain_output: bool) -> OutputFormat:
    if json_output:
        return OutputFormat.JSON
    if plain_output:
        return OutputFormat.PLAIN
    return OutputFormat.AUTO


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True,
        help="Print the notion-cli version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print results as a JSON envelope on stdout.",
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Print tab-separated text without styling.",
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only print results, warnings and errors.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Print debug lines and cache events on stderr.",
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Skip the response caches for this invocation.",
    ),
) -> None:
    """Configure output and build the per-invocation cache state.

    A :class:`~notioncli.state.CliState` passed by the caller (``obj=``
    in tests) is reused as-is, except that ``--no-cache`` still turns its
    caches off.
    """
    from notioncli.config import verbose_from_env
    from notioncli.envelope import EnvelopeFormatter
    from notioncli.exceptions import ConfigError
    from notioncli.output import OutputManager, set_output
    from notioncli.state import CliState, build_state

    set_output(
        OutputManager(
            format=_output_format(json_output, plain_output),
            no_color=no_color,
            quiet=quiet,
            verbose=verbose or verbose_from_env(),
        )
    )

    if isinstance(ctx.obj, CliState):
        if no_cache:
            ctx.obj.entry_cache.set_enabled(False)
            ctx.obj.disk_cache = None
        return

    try:
        state = build_state(no_cache=no_cache)
    except ConfigError as exc:
        formatter = EnvelopeFormatter(ctx.invoked_subcommand or "notion-cli")
        raise typer.Exit(code=formatter.emit_error(exc)) from exc
    ctx.obj = state
    ctx.call_on_close(state.close)


def _on_sigint(signum: int, frame: Any) -> None:
    sys.stderr.write("\nCancelled.\n")
    sys.exit(EXIT_INTERRUPTED)


def _write_crash_log(exc: Exception) -> str:
    """Save the traceback of *exc* and return the log path."""
    from notioncli.config import get_data_dir

    log_dir = get_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    header = f"notion-cli {__version__}\nargv: {' '.join(sys.argv)}\n\n"
    body = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log_path.write_text(header + body, encoding="utf-8")
    return str(log_path)


def main() -> None:
    """Console-script entry point."""
    from notioncli.exceptions import NotionCLIError
    from notioncli.output import error

    signal.signal(signal.SIGINT, _on_sigint)
    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except NotionCLIError as exc:
        error(exc.message)
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
