"""Read-only report over the cache tiers and the workspace snapshot.

:class:`CacheInspector` composes
:class:`~notioncli.cache.entry_cache.EntryCache` counters, the
:class:`~notioncli.cache.disk.ResponseDiskCache` entry count and the
:class:`~notioncli.cache.snapshot.WorkspaceSnapshotStore` metadata into a
single :class:`~notioncli.models.CacheReport`.  It never mutates a
source; errors raised while loading the snapshot propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from notioncli.cache.disk import ResponseDiskCache
from notioncli.cache.entry_cache import EntryCache
from notioncli.cache.snapshot import (
    STALE_THRESHOLD_HOURS,
    WorkspaceSnapshotStore,
    is_stale,
    next_recommended_sync,
    snapshot_age_hours,
)
from notioncli.models import (
    CacheReport,
    DiskReport,
    InMemoryReport,
    InMemoryStats,
    Namespace,
    Recommendations,
    WorkspaceReport,
)

ACTION_INITIALIZE = "Run sync to initialize cache"
ACTION_REFRESH = "Cache is stale, run sync to refresh"
ACTION_FRESH = "Cache is fresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheInspector:
    """Builds :class:`~notioncli.models.CacheReport` objects.

    Args:
        entry_cache: The process's in-memory cache.
        snapshot_store: The workspace snapshot store.
        disk_cache: The response disk tier, or ``None`` when it is off.
        now: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        entry_cache: EntryCache,
        snapshot_store: WorkspaceSnapshotStore,
        disk_cache: Optional[ResponseDiskCache] = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._entry_cache = entry_cache
        self._snapshot_store = snapshot_store
        self._disk_cache = disk_cache
        self._now = now

    def report(self) -> CacheReport:
        """Return the current cache report.

        Raises:
            SnapshotCorruptError: Passed through from the snapshot store.
            SnapshotIOError: Passed through from the snapshot store.
        """
        stats = self._entry_cache.get_stats()
        policy = self._entry_cache.policy
        in_memory = InMemoryReport(
            enabled=self._entry_cache.is_enabled(),
            stats=InMemoryStats(
                size=stats.size,
                hits=stats.hits,
                misses=stats.misses,
                sets=stats.sets,
                evictions=stats.evictions,
                hit_rate=round(stats.hit_rate * 100, 2),
            ),
            ttls_ms={ns.value: policy.ttl_for(ns) for ns in Namespace},
            max_size=policy.max_size,
        )
        if self._disk_cache is None:
            disk = DiskReport(enabled=False)
        else:
            disk = DiskReport(**self._disk_cache.stats())

        snapshot = self._snapshot_store.load()
        workspace: Optional[WorkspaceReport] = None
        next_sync: Optional[datetime] = None

        if snapshot is None:
            action = ACTION_INITIALIZE
        else:
            now = self._now()
            last_sync = snapshot.last_sync
            age_hours: Optional[float] = None
            # A snapshot without last_sync was never stamped by a save: stale.
            stale = True
            if last_sync is not None:
                age_hours = snapshot_age_hours(last_sync, now)
                stale = is_stale(last_sync, now)
                next_sync = next_recommended_sync(last_sync)
            workspace = WorkspaceReport(
                databases_cached=len(snapshot.databases),
                last_sync=last_sync,
                cache_age_ms=int(age_hours * 3_600_000) if age_hours is not None else None,
                cache_age_hours=round(age_hours, 2) if age_hours is not None else None,
                is_stale=stale,
                stale_threshold_hours=STALE_THRESHOLD_HOURS,
                cache_version=snapshot.version,
                cache_location=str(self._snapshot_store.path()),
            )
            action = ACTION_REFRESH if stale else ACTION_FRESH

        return CacheReport(
            in_memory=in_memory,
            disk=disk,
            workspace=workspace,
            recommendations=Recommendations(
                sync_interval_hours=STALE_THRESHOLD_HOURS,
                next_sync=next_sync,
                action_needed=action,
            ),
        )


def render_report(report: CacheReport) -> str:
    """Render *report* as the multi-line text shown by ``cache info``."""
    mem = report.in_memory
    ttls = mem.ttls_ms
    lines = [
        "Cache Configuration",
        "=" * 60,
        "",
        "In-Memory Cache:",
        f"  Enabled: {'Yes' if mem.enabled else 'No'}",
        f"  Size: {mem.stats.size} / {mem.max_size}",
        f"  Hits: {mem.stats.hits}",
        f"  Misses: {mem.stats.misses}",
        f"  Hit Rate: {mem.stats.hit_rate:.1f}%",
        f"  Evictions: {mem.stats.evictions}",
        "",
        "  TTLs (milliseconds):",
        f"    Data Sources: {ttls['data_source']} ({ttls['data_source'] / 60000:.0f} min)",
        f"    Pages: {ttls['page']} ({ttls['page'] / 1000:.0f} sec)",
        f"    Users: {ttls['user']} ({ttls['user'] / 60000:.0f} min)",
        f"    Blocks: {ttls['block']} ({ttls['block'] / 1000:.0f} sec)",
        "",
    ]

    disk = report.disk
    lines += ["Disk Cache:", f"  Enabled: {'Yes' if disk.enabled else 'No'}"]
    if disk.size is not None:
        lines.append(f"  Entries: {disk.size}")
    if disk.directory is not None:
        lines.append(f"  Location: {disk.directory}")
    lines += ["", "Workspace Cache:"]

    ws = report.workspace
    if ws is not None:
        last_sync = ws.last_sync.isoformat() if ws.last_sync else "never"
        lines += [
            f"  Databases: {ws.databases_cached}",
            f"  Last Sync: {last_sync}",
            f"  Age: {ws.cache_age_hours if ws.cache_age_hours is not None else 'unknown'} hours",
            f"  Status: {'STALE' if ws.is_stale else 'Fresh'}",
            f"  Version: {ws.cache_version}",
            f"  Location: {ws.cache_location}",
        ]
    else:
        lines += [
            "  Status: Not initialized",
            "  Action: Run sync",
        ]

    rec = report.recommendations
    lines += ["", "Recommendations:", f"  Sync Interval: Every {rec.sync_interval_hours} hours"]
    if rec.next_sync is not None:
        lines.append(f"  Next Sync: {rec.next_sync.isoformat()}")
    lines.append(f"  Action: {rec.action_needed}")
    return "\n".join(lines)
