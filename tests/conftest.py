"""Shared test fixtures for notion-cli.

Provides isolated cache directories, a controllable clock, output state
management, pre-built CLI state with a mocked Notion API, and a CLI runner.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from notioncli.cache.disk import ResponseDiskCache
from notioncli.cache.entry_cache import EntryCache
from notioncli.cache.snapshot import WorkspaceSnapshotStore
from notioncli.client import NotionClient
from notioncli.models import CachePolicy
from notioncli.output import OutputFormat, OutputManager, reset_output, set_output
from notioncli.state import CliState


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate cache and data directories to a temporary directory.

    Sets XDG_CACHE_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch the real user cache, and clears every
    notion-cli environment variable.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("notioncli.config._is_xdg_platform", lambda: True)

    for var in [
        "NOTION_TOKEN",
        "NOTION_CLI_CACHE_ENABLED",
        "NOTION_CLI_CACHE_DS_TTL",
        "NOTION_CLI_CACHE_PAGE_TTL",
        "NOTION_CLI_CACHE_USER_TTL",
        "NOTION_CLI_CACHE_BLOCK_TTL",
        "NOTION_CLI_CACHE_MAX_SIZE",
        "NOTION_CLI_DISK_CACHE_ENABLED",
        "NOTION_CLI_VERBOSE",
        "NOTION_CLI_DEBUG",
        "DEBUG",
        "NO_COLOR",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, ms: int) -> None:
        self.now += ms / 1000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a verbose OutputManager so cache events reach stderr."""
    output = OutputManager(format=OutputFormat.PLAIN, verbose=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Mock Notion API
# ---------------------------------------------------------------------------


class FakeNotionAPI:
    """Route table for :class:`httpx.MockTransport`.

    ``routes`` maps ``"METHOD /path"`` (relative to ``/v1``) to either a JSON
    payload or a callable ``(request) -> httpx.Response``.  Every request is
    recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.calls: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path.startswith("/v1"):
            path = path[len("/v1"):]
        route = self.routes.get(f"{request.method} {path}")
        if route is None:
            return httpx.Response(404, json={"object": "error", "code": "object_not_found",
                                             "message": f"No route for {path}"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.calls
            if r.method == method and r.url.path.endswith(path)
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def notion_api() -> FakeNotionAPI:
    return FakeNotionAPI()


@pytest.fixture
def make_state(
    isolated_config: Path, notion_api: FakeNotionAPI
) -> Callable[..., CliState]:
    """Factory for a :class:`CliState` whose client talks to ``notion_api``."""
    created: list[CliState] = []

    def _make(policy: CachePolicy | None = None, disk: bool = False) -> CliState:
        policy = policy or CachePolicy()
        disk_cache = ResponseDiskCache(isolated_config / "cache" / "notion-cli") if disk else None
        state = CliState(
            entry_cache=EntryCache(policy),
            snapshot_store=WorkspaceSnapshotStore(
                isolated_config / "cache" / "notion-cli" / "databases.json"
            ),
            disk_cache=disk_cache,
            client_factory=lambda s: NotionClient(
                "secret_test",
                cache=s.entry_cache,
                disk_cache=s.disk_cache,
                max_retries=0,
                transport=notion_api.transport,
            ),
        )
        created.append(state)
        return state

    yield _make
    for state in created:
        state.close()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
