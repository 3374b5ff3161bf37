"""Per-process state shared by every command.

The root callback builds one :class:`CliState` and stores it on
``ctx.obj``.  Commands take their caches, snapshot store and API client from
it rather than from module globals, so tests can pass a pre-built state
through ``CliRunner.invoke(app, ..., obj=state)``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Optional

import typer

from notioncli.cache.disk import ResponseDiskCache
from notioncli.cache.entry_cache import EntryCache
from notioncli.cache.inspector import CacheInspector
from notioncli.cache.snapshot import WorkspaceSnapshotStore
from notioncli.client import NotionClient
from notioncli.config import get_cache_dir, resolve_token
from notioncli.models import CachePolicy

ClientFactory = Callable[["CliState"], NotionClient]


def _default_client_factory(state: CliState) -> NotionClient:
    return NotionClient(
        resolve_token(),
        cache=state.entry_cache,
        disk_cache=state.disk_cache,
    )


@dataclass
class CliState:
    """Caches, snapshot store and client factory for one invocation."""

    entry_cache: EntryCache
    snapshot_store: WorkspaceSnapshotStore
    disk_cache: Optional[ResponseDiskCache] = None
    client_factory: ClientFactory = field(default=_default_client_factory)

    def client(self) -> NotionClient:
        """Return a new, not yet entered, :class:`NotionClient`."""
        return self.client_factory(self)

    def inspector(self) -> CacheInspector:
        return CacheInspector(self.entry_cache, self.snapshot_store, self.disk_cache)

    def close(self) -> None:
        if self.disk_cache is not None:
            self.disk_cache.close()


def build_state(
    no_cache: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> CliState:
    """Build the default state from the environment.

    ``--no-cache`` disables the in-memory cache and skips the disk tier.

    Raises:
        ConfigError: A cache environment variable is invalid.
    """
    policy = CachePolicy.from_env(environ)
    entry_cache = EntryCache(policy)
    if no_cache:
        entry_cache.set_enabled(False)

    disk_cache: Optional[ResponseDiskCache] = None
    if policy.enabled and policy.disk_enabled and not no_cache:
        disk_cache = ResponseDiskCache(get_cache_dir())

    return CliState(
        entry_cache=entry_cache,
        snapshot_store=WorkspaceSnapshotStore(),
        disk_cache=disk_cache,
    )


def get_state(ctx: typer.Context) -> CliState:
    """Return the :class:`CliState` stored on the root context."""
    state = ctx.find_root().obj
    if not isinstance(state, CliState):
        raise RuntimeError("CliState is not initialised; invoke through notion-cli")
    return state
