"""Caching layer for notion-cli.

Four cooperating pieces, none of which talks to the network:

* :class:`EntryCache` -- in-memory, TTL- and size-bounded cache of API
  responses with hit/miss/set/eviction counters.
* :class:`ResponseDiskCache` -- optional :mod:`diskcache` tier that keeps
  responses across invocations.
* :class:`WorkspaceSnapshotStore` -- versioned JSON snapshot of the
  workspace's databases, refreshed by ``notion-cli sync``.
* :class:`CacheInspector` -- read-only report over the other pieces.

TTLs and capacity come from :class:`~notioncli.models.CachePolicy`.
"""

from notioncli.cache.disk import ResponseDiskCache
from notioncli.cache.entry_cache import CacheEntry, EntryCache
from notioncli.cache.fetch import cached_fetch, make_key
from notioncli.cache.inspector import CacheInspector, render_report
from notioncli.cache.snapshot import (
    SNAPSHOT_VERSION,
    STALE_THRESHOLD_HOURS,
    WorkspaceSnapshotStore,
    build_database_entry,
    generate_aliases,
    is_stale,
)

__all__ = [
    "CacheEntry",
    "CacheInspector",
    "EntryCache",
    "ResponseDiskCache",
    "SNAPSHOT_VERSION",
    "STALE_THRESHOLD_HOURS",
    "WorkspaceSnapshotStore",
    "build_database_entry",
    "cached_fetch",
    "generate_aliases",
    "is_stale",
    "make_key",
    "render_report",
]
