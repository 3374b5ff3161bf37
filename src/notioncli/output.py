"""Terminal output for notion-cli.

Data and diagnostics never share a stream:

* **stdout** carries command results only (JSON envelopes, tables, the
  human rendering of an API payload), so ``notion-cli ... --json | jq``
  always sees a single JSON document.
* **stderr** carries everything else: progress, warnings, errors,
  suggestions, ``--verbose`` debug lines and structured cache events.

Rich styling is used only when stdout is an interactive terminal and
colour has not been turned off (``--no-color``, ``NO_COLOR``, ``TERM=dumb``).

:class:`OutputManager` is created once per invocation by the root callback
in :mod:`notioncli.app` and installed with :func:`set_output`; library code
reaches it through :func:`get_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """Output formats selectable from the command line.

    ``AUTO`` becomes ``RICH`` on a colour-capable TTY and ``PLAIN``
    everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# (rich markup, plain prefix) per diagnostic level
_LEVELS: dict[str, tuple[str, str]] = {
    "info": ("{}", ""),
    "success": ("[green]{}[/green]", ""),
    "warning": ("[yellow]Warning:[/yellow] {}", "Warning: "),
    "error": ("[bold red]Error:[/bold red] {}", "Error: "),
    "suggest": ("[dim]→ {}[/dim]", "→ "),
    "debug": ("[dim]\\[debug] {}[/dim]", "[debug] "),
    "progress": ("[dim]{}[/dim]", ""),
}


class OutputManager:
    """Owns the output streams and the user's formatting preferences.

    Args:
        format: Requested format; ``AUTO`` is resolved at construction.
        no_color: Turn off colour and markup.
        quiet: Drop info, success, suggestion and progress lines.
        verbose: Show debug lines and cache events.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            rich_ok = _is_tty() and not self._no_color
            format = OutputFormat.RICH if rich_ok else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_json(self) -> bool:
        return self._format == OutputFormat.JSON

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # --- stdout ---

    def print_data(self, text: str) -> None:
        """Write *text* to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_error_data(self, text: str) -> None:
        """Write a machine-readable error document to stderr, even when quiet."""
        print(text, file=sys.stderr, flush=True)

    def format_response(self, data: Any) -> None:
        """Render an API payload on stdout in the active format.

        JSON mode prints the payload indented.  Plain mode prints
        ``key<TAB>value`` lines for an object and one tab-separated line per
        item for a list; a Notion list object (``{"object": "list"}``) is
        rendered through its ``results``.  Rich mode pretty-prints JSON.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps(data, indent=2))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_dumps(data, indent=2), "json", word_wrap=True))
        else:
            self._stdout.print(str(data))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows under *headers*.

        JSON mode emits a list of objects keyed by header; plain mode emits
        a header line followed by tab-separated rows; rich mode draws a
        :class:`~rich.table.Table` with *title*.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(_dumps([dict(zip(headers, row)) for row in rows], indent=2))
            return
        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return

        table = Table(title=title, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        self._diagnostic("info", message, quiet_ok=False)

    def success(self, message: str) -> None:
        self._diagnostic("success", message, quiet_ok=False)

    def suggest(self, message: str) -> None:
        self._diagnostic("suggest", message, quiet_ok=False)

    def warning(self, message: str) -> None:
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        self._diagnostic("error", message)

    def debug(self, message: str) -> None:
        """Print *message* only with ``--verbose``."""
        if self._verbose:
            self._diagnostic("debug", message)

    def progress(self, message: str) -> None:
        """Print a progress note when a human is watching (stdout is a TTY)."""
        if _is_tty():
            self._diagnostic("progress", message, quiet_ok=False)

    def event(self, payload: dict[str, Any]) -> None:
        """Write *payload* as a single JSON line on stderr in verbose mode.

        Cache events go through here so that they can be filtered with
        ``grep '^{'`` without disturbing JSON on stdout.
        """
        if self._verbose:
            print(_dumps(payload), file=sys.stderr, flush=True)

    def _diagnostic(self, level: str, message: str, quiet_ok: bool = True) -> None:
        if self._quiet and not quiet_ok:
            return
        markup, prefix = _LEVELS[level]
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup.format(message))


def _dumps(data: Any, indent: Optional[int] = None) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return _dumps(value)
    return "" if value is None else str(value)


def _plain_lines(data: Any) -> list[str]:
    if isinstance(data, dict) and data.get("object") == "list":
        data = data.get("results", [])
    if isinstance(data, dict):
        return [f"{key}\t{_cell(value)}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(_cell(v) for v in item.values()) if isinstance(item, dict) else _cell(item)
            for item in data
        ]
    return [_cell(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


# --- Global instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager; tests call this between runs."""
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
