"""Exception hierarchy for notion-cli.

All exceptions inherit from :class:`NotionCLIError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`notioncli.exit_codes`
and a semantic ``code`` string used in JSON error envelopes.  Commands catch
``NotionCLIError``, render it through :mod:`notioncli.envelope` and exit with
its code, while unexpected exceptions produce a crash log and exit with
:data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    NotionCLIError (exit 1)
    +-- InvalidUsageError       (exit 2)
    +-- ConfigError             (exit 1)
    +-- CacheError              (exit 1)
    |   +-- SnapshotCorruptError
    |   +-- SnapshotIOError
    +-- UpstreamFetchError      (exit 1)
        +-- AuthError           (exit 3)
        +-- NotFoundError       (exit 4)
        +-- RateLimitedError    (exit 5)
        +-- ServerError         (exit 5)
        +-- ConnectionError_    (exit 6)

Cache misses, expirations and a disabled cache are control flow, not
errors, and never raise.  A missing workspace snapshot is reported as
``None`` by :meth:`~notioncli.cache.snapshot.WorkspaceSnapshotStore.load`.
"""

from __future__ import annotations

from typing import Any, Optional

from notioncli.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class NotionCLIError(Exception):
    """Base exception for all notion-cli errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
        context: Extra key/value details (endpoint, resource id, path).
        suggestions: Next steps shown to the user.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    code: str = "CLI_ERROR"

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        context: Optional[dict[str, Any]] = None,
        suggestions: Optional[list[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.context: dict[str, Any] = dict(context or {})
        self.suggestions: list[str] = list(suggestions or [])

    def to_dict(self) -> dict[str, Any]:
        """Return the ``error`` object of a JSON error envelope."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "suggestions": self.suggestions,
        }


class InvalidUsageError(NotionCLIError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE
    code = "VALIDATION_ERROR"


class ConfigError(NotionCLIError):
    """Raised for configuration problems (bad env values, missing token)."""

    code = "CONFIG_ERROR"


class CacheError(NotionCLIError):
    """Base class for failures of the persisted cache layer."""

    code = "CACHE_ERROR"


class SnapshotCorruptError(CacheError):
    """The workspace snapshot exists but cannot be parsed or has the wrong version.

    ``transient`` is ``True`` when the failure was a parse error that a
    concurrent rename could explain; the caller may retry before treating
    the file as corrupt.
    """

    code = "SNAPSHOT_CORRUPT"

    def __init__(self, message: str, transient: bool = False, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.transient = transient


class SnapshotIOError(CacheError):
    """Reading or writing the workspace snapshot failed at the filesystem level."""

    code = "SNAPSHOT_IO_ERROR"


class UpstreamFetchError(NotionCLIError):
    """A remote API call failed.

    Args:
        message: Human-readable description.
        endpoint: The API endpoint (or logical operation) that failed.
        status_code: HTTP status, when the failure came from a response.
    """

    code = "API_ERROR"

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        status_code: int | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.endpoint = endpoint
        self.status_code = status_code
        if endpoint is not None:
            self.context.setdefault("endpoint", endpoint)
        if status_code is not None:
            self.context.setdefault("status_code", status_code)


class AuthError(UpstreamFetchError):
    """The API rejected the token (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE
    code = "UNAUTHORIZED"


class NotFoundError(UpstreamFetchError):
    """The API returned HTTP 404 (resource missing or not shared)."""

    exit_code = EXIT_NOT_FOUND
    code = "NOT_FOUND"


class RateLimitedError(UpstreamFetchError):
    """The API kept answering HTTP 429 after all retries."""

    exit_code = EXIT_SERVER_ERROR
    code = "RATE_LIMITED"


class ServerError(UpstreamFetchError):
    """The API returned an HTTP 5xx error, or an unexpected 4xx."""

    exit_code = EXIT_SERVER_ERROR
    code = "SERVER_ERROR"


class ConnectionError_(UpstreamFetchError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
    code = "NETWORK_ERROR"


def wrap_error(exc: BaseException, endpoint: str | None = None) -> NotionCLIError:
    """Return *exc* as a :class:`NotionCLIError`, adding *endpoint* context.

    Errors that already belong to the hierarchy keep their type and gain an
    ``endpoint`` entry if they had none.  Anything else becomes a generic
    ``NotionCLIError`` with the original type recorded.
    """
    if isinstance(exc, NotionCLIError):
        if endpoint is not None:
            exc.context.setdefault("endpoint", endpoint)
        return exc

    context: dict[str, Any] = {"error_type": type(exc).__name__}
    if endpoint is not None:
        context["endpoint"] = endpoint
    wrapped = NotionCLIError(str(exc) or type(exc).__name__, context=context)
    wrapped.__cause__ = exc
    return wrapped
