"""Canonical Pydantic models shared across notion-cli modules.

The models fall into three groups:

**Configuration** -- :class:`Namespace` and :class:`CachePolicy`, the
validated TTL / capacity settings the in-memory cache is built from.

**Workspace snapshot** -- :class:`CachedDatabase` and
:class:`WorkspaceSnapshot`, the versioned document persisted by
:class:`~notioncli.cache.snapshot.WorkspaceSnapshotStore`.

**Reporting** -- :class:`CacheStats` and the :class:`CacheReport` tree
produced by :class:`~notioncli.cache.inspector.CacheInspector`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
import os
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from notioncli.exceptions import ConfigError


ENV_PREFIX = "NOTION_CLI_"


# --- Cache configuration ---


class Namespace(str, enum.Enum):
    """Resource category of a cached API response; selects the TTL."""

    DATA_SOURCE = "data_source"
    PAGE = "page"
    USER = "user"
    BLOCK = "block"


class NamespaceTTLs(BaseModel):
    """Per-namespace time-to-live values in milliseconds."""

    data_source: int = Field(default=600_000, gt=0)
    page: int = Field(default=60_000, gt=0)
    user: int = Field(default=3_600_000, gt=0)
    block: int = Field(default=30_000, gt=0)


# Environment variable suffix for every NamespaceTTLs field.
_TTL_ENV_VARS = {
    "data_source": "CACHE_DS_TTL",
    "page": "CACHE_PAGE_TTL",
    "user": "CACHE_USER_TTL",
    "block": "CACHE_BLOCK_TTL",
}


class CachePolicy(BaseModel):
    """Validated settings for the in-memory entry cache and the disk tier.

    Built once at startup, usually through :meth:`from_env`, and handed to
    :class:`~notioncli.cache.entry_cache.EntryCache`.  The cache never reads
    the environment itself.

    Example::

        policy = CachePolicy(max_size=50, ttl_ms=NamespaceTTLs(page=5_000))
        policy.ttl_for(Namespace.PAGE)  # 5000
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    ttl_ms: NamespaceTTLs = Field(default_factory=NamespaceTTLs)
    max_size: int = Field(default=1000, gt=0)
    disk_enabled: bool = True

    def ttl_for(self, namespace: Namespace | str) -> int:
        """Return the TTL in milliseconds for *namespace*."""
        return getattr(self.ttl_ms, Namespace(namespace).value)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> CachePolicy:
        """Build a policy from ``NOTION_CLI_*`` environment variables.

        Recognised variables: ``NOTION_CLI_CACHE_ENABLED``,
        ``NOTION_CLI_CACHE_DS_TTL``, ``NOTION_CLI_CACHE_PAGE_TTL``,
        ``NOTION_CLI_CACHE_USER_TTL``, ``NOTION_CLI_CACHE_BLOCK_TTL``,
        ``NOTION_CLI_CACHE_MAX_SIZE`` and ``NOTION_CLI_DISK_CACHE_ENABLED``.
        Unset variables keep their defaults.

        Raises:
            ConfigError: If a numeric variable is not a positive integer.
        """
        env = os.environ if environ is None else environ

        ttls: dict[str, int] = {}
        for field, suffix in _TTL_ENV_VARS.items():
            value = _env_int(env, ENV_PREFIX + suffix)
            if value is not None:
                ttls[field] = value

        data: dict[str, Any] = {
            "enabled": env.get(ENV_PREFIX + "CACHE_ENABLED", "").lower() != "false",
            "disk_enabled": env.get(ENV_PREFIX + "DISK_CACHE_ENABLED", "").lower() != "false",
            "ttl_ms": ttls,
        }
        max_size = _env_int(env, ENV_PREFIX + "CACHE_MAX_SIZE")
        if max_size is not None:
            data["max_size"] = max_size

        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid cache configuration: {exc}") from exc


def _env_int(env: Mapping[str, str], name: str) -> Optional[int]:
    """Parse a positive integer environment variable, ``None`` when unset."""
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigError(
            f"{name} must be an integer, got: {raw!r}",
            context={"variable": name},
        ) from None
    if value <= 0:
        raise ConfigError(
            f"{name} must be a positive integer, got: {value}",
            context={"variable": name},
        )
    return value


class CacheStats(BaseModel):
    """Process-lifetime counters of an entry cache."""

    size: int = 0
    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """``hits / (hits + misses)``, or ``0.0`` before any lookup."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


# --- Workspace snapshot ---


class CachedDatabase(BaseModel):
    """Lightweight database descriptor kept in the workspace snapshot."""

    id: str
    title: str = "Untitled"
    title_normalized: str = ""
    aliases: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    last_edited_time: Optional[str] = None
    properties: dict[str, Any] = Field(default_factory=dict)


class WorkspaceSnapshot(BaseModel):
    """Versioned, full-replace listing of the workspace's databases.

    ``last_sync`` is ``None`` only before the snapshot is first saved; the
    store stamps it on save.
    """

    version: int
    last_sync: Optional[datetime] = None
    databases: list[CachedDatabase] = Field(default_factory=list)

    def find_database(self, query: str) -> Optional[CachedDatabase]:
        """Resolve an id, title, or alias to a database descriptor.

        Matching order: exact id (dashes ignored), normalized title, alias.
        Returns ``None`` when nothing matches.
        """
        needle = query.strip()
        compact = needle.replace("-", "").lower()
        for db in self.databases:
            if db.id.replace("-", "").lower() == compact:
                return db

        normalized = needle.lower()
        for db in self.databases:
            if db.title_normalized == normalized:
                return db
        for db in self.databases:
            if normalized in db.aliases:
                return db
        return None


# --- Reporting ---


class InMemoryStats(BaseModel):
    """Counters as reported by ``cache info``; ``hit_rate`` is a percentage."""

    size: int
    hits: int
    misses: int
    sets: int
    evictions: int
    hit_rate: float


class InMemoryReport(BaseModel):
    """In-memory entry cache section of a :class:`CacheReport`."""

    enabled: bool
    stats: InMemoryStats
    ttls_ms: dict[str, int]
    max_size: int


class DiskReport(BaseModel):
    """Response disk tier section of a :class:`CacheReport`.

    ``size`` and ``directory`` are ``None`` when the tier is not in use.
    """

    enabled: bool
    size: Optional[int] = None
    directory: Optional[str] = None


class WorkspaceReport(BaseModel):
    """Workspace snapshot section of a :class:`CacheReport`."""

    databases_cached: int
    last_sync: Optional[datetime]
    cache_age_ms: Optional[int]
    cache_age_hours: Optional[float]
    is_stale: bool
    stale_threshold_hours: int
    cache_version: int
    cache_location: str


class Recommendations(BaseModel):
    """Derived next steps of a :class:`CacheReport`."""

    sync_interval_hours: int
    next_sync: Optional[datetime]
    action_needed: str


class CacheReport(BaseModel):
    """Full read-only view of cache state, see ``notion-cli cache info``."""

    in_memory: InMemoryReport
    disk: DiskReport
    workspace: Optional[WorkspaceReport]
    recommendations: Recommendations
