"""JSON success and error envelopes for machine-readable output.

With ``--json`` every command writes exactly one envelope: a success
envelope on stdout, or an error envelope on stderr::

    {"success": true, "data": {...},
     "metadata": {"timestamp": "...", "command": "cache info",
                  "execution_time_ms": 12, "version": "0.1.0"}}

    {"success": false,
     "error": {"code": "NOT_FOUND", "message": "...",
               "context": {...}, "suggestions": [...]},
     "metadata": {...}}

In the human formats the same information goes through
:class:`~notioncli.output.OutputManager`: data on stdout, ``Error:`` plus
suggestions on stderr.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import typer

from notioncli import __version__
from notioncli.exceptions import NotionCLIError, wrap_error
from notioncli.output import get_output

_DEFAULT_SUGGESTIONS: dict[str, list[str]] = {
    "UNAUTHORIZED": [
        "Verify your NOTION_TOKEN is set correctly",
        "Check the token at https://www.notion.so/my-integrations",
    ],
    "NOT_FOUND": [
        "Verify the resource ID is correct",
        "Ensure your integration has access to the resource",
        "Try running: notion-cli sync",
    ],
    "RATE_LIMITED": [
        "Wait and retry; requests are retried automatically with backoff",
    ],
    "VALIDATION_ERROR": [
        "Check command syntax: notion-cli [command] --help",
    ],
}


class EnvelopeFormatter:
    """Builds and emits envelopes for one command invocation.

    Args:
        command: Full command name, e.g. ``"page retrieve"``.
        version: CLI version recorded in the metadata.
        clock: Monotonic clock in seconds, used for ``execution_time_ms``.
    """

    def __init__(
        self,
        command: str,
        version: str = __version__,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._command = command
        self._version = version
        self._clock = clock
        self._started = clock()

    @property
    def command(self) -> str:
        return self._command

    def metadata(self, **extra: Any) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "command": self._command,
            "execution_time_ms": int((self._clock() - self._started) * 1000),
            "version": self._version,
        }
        meta.update(extra)
        return meta

    def wrap_success(self, data: Any, **extra_metadata: Any) -> dict[str, Any]:
        return {"success": True, "data": data, "metadata": self.metadata(**extra_metadata)}

    def wrap_error(self, exc: BaseException) -> dict[str, Any]:
        """Build an error envelope; non-CLI errors are wrapped first."""
        err = wrap_error(exc)
        details = err.to_dict()
        if not details["suggestions"]:
            details["suggestions"] = list(_DEFAULT_SUGGESTIONS.get(err.code, []))
        return {"success": False, "error": details, "metadata": self.metadata()}

    def emit_success(self, data: Any, human: Optional[Callable[[], None]] = None) -> None:
        """Write *data* to stdout.

        In JSON mode the data is wrapped in a success envelope.  Otherwise
        *human* renders it, falling back to
        :meth:`~notioncli.output.OutputManager.format_response`.
        """
        output = get_output()
        if output.is_json:
            output.print_data(json.dumps(self.wrap_success(data), indent=2, default=str))
        elif human is not None:
            human()
        else:
            output.format_response(data)

    def emit_error(self, exc: BaseException) -> int:
        """Report *exc* on stderr and return the exit code to use."""
        output = get_output()
        err = wrap_error(exc)
        envelope = self.wrap_error(err)
        if output.is_json:
            output.print_error_data(json.dumps(envelope, indent=2, default=str))
        else:
            output.error(envelope["error"]["message"])
            for suggestion in envelope["error"]["suggestions"]:
                output.suggest(suggestion)
        return err.exit_code


@contextmanager
def command_errors(formatter: EnvelopeFormatter, endpoint: Optional[str] = None) -> Iterator[None]:
    """Turn CLI and HTTP errors raised inside the block into a clean exit.

    The error is reported through *formatter* and ``typer.Exit`` is raised
    with the error's exit code.  Any other exception propagates to the
    crash handler in :func:`notioncli.app.main`.
    """
    try:
        yield
    except (NotionCLIError, httpx.HTTPError) as exc:
        err = wrap_error(exc, endpoint)
        code = formatter.emit_error(err)
        raise typer.Exit(code=code) from exc
