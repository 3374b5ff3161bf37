"""In-memory, TTL-bounded and size-bounded cache for API responses.

:class:`EntryCache` keeps one :class:`CacheEntry` per key in an ordered
mapping.  Every entry is stamped with its insertion time and expires after
the TTL of its :class:`~notioncli.models.Namespace`.  When a new key would
push the cache past ``max_size``, exactly one entry is evicted: the one
with the earliest insertion time.

Eviction is oldest-inserted-first, not least-recently-used.  A CLI process
lives for a single command, so access order and insertion order rarely
diverge; lookups do not reorder entries.

All operations are synchronous and the cache is owned by a single
:class:`~notioncli.state.CliState`, so no locking is needed.

Verbose mode (``--verbose``) emits one JSON line per cache event on stderr.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from notioncli.models import CachePolicy, CacheStats, Namespace
from notioncli.output import get_output


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and its lifetime, in clock seconds."""

    key: str
    value: Any
    namespace: Namespace
    inserted_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class EntryCache:
    """Process-local key/value cache with per-namespace TTLs.

    Args:
        policy: TTLs, capacity and the enablement flag.  Read once here;
            later environment changes have no effect.
        clock: Returns the current time in seconds.  Defaults to
            :func:`time.monotonic`; tests inject a fake clock.

    Example::

        cache = EntryCache(CachePolicy(max_size=2))
        cache.set("page:abc", {"id": "abc"}, Namespace.PAGE)
        cache.get("page:abc")   # {"id": "abc"}
        cache.get("page:nope")  # None
    """

    def __init__(
        self,
        policy: Optional[CachePolicy] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._policy = policy or CachePolicy()
        self._clock = clock
        self._enabled = self._policy.enabled
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._evictions = 0

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    @property
    def max_size(self) -> int:
        return self._policy.max_size

    def is_enabled(self) -> bool:
        """Whether lookups and writes go through the cache at all."""
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """Turn caching on or off, e.g. for ``--no-cache``.

        Disabling keeps existing entries and counters untouched.
        """
        self._enabled = enabled

    def get(self, key: str) -> Any:
        """Return the cached value for *key*, or ``None`` when absent.

        A missing or expired key counts as a miss; an expired entry is
        removed and also counts as an eviction.  When the cache is
        disabled, ``None`` is returned and no counter changes.
        """
        if not self._enabled:
            return None

        entry = self._entries.get(key)
        now = self._clock()

        if entry is None:
            self._misses += 1
            self._log("cache_miss", key)
            return None

        if entry.is_expired(now):
            del self._entries[key]
            self._misses += 1
            self._evictions += 1
            self._log("cache_evict", key, namespace=entry.namespace.value, reason="expired")
            self._log("cache_miss", key, namespace=entry.namespace.value)
            return None

        self._hits += 1
        self._log(
            "cache_hit",
            key,
            namespace=entry.namespace.value,
            age_ms=int((now - entry.inserted_at) * 1000),
            ttl_ms=self._policy.ttl_for(entry.namespace),
        )
        return entry.value

    def set(
        self,
        key: str,
        value: Any,
        namespace: Namespace | str,
        ttl_ms: Optional[int] = None,
    ) -> None:
        """Insert or overwrite *key* with the TTL of *namespace*.

        *ttl_ms* can only shorten the namespace TTL; it is used when a value
        promoted from the disk tier has less time left.  Overwriting restamps
        the insertion time, so the key becomes the newest entry.  Inserting a
        new key into a full cache first evicts the oldest entry.  No-op while
        the cache is disabled.
        """
        if not self._enabled:
            return

        namespace = Namespace(namespace)
        policy_ttl = self._policy.ttl_for(namespace)
        ttl_ms = policy_ttl if ttl_ms is None else min(ttl_ms, policy_ttl)

        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._policy.max_size:
            self._evict_oldest()

        now = self._clock()
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            namespace=namespace,
            inserted_at=now,
            expires_at=now + ttl_ms / 1000,
        )
        self._sets += 1
        self._log("cache_set", key, namespace=namespace.value, ttl_ms=ttl_ms)

    def invalidate(self, key: str) -> None:
        """Remove *key* if present.  Counters are not affected."""
        if self._entries.pop(key, None) is not None:
            self._log("cache_invalidate", key)

    def clear(self) -> None:
        """Remove every entry.  Cumulative counters are kept."""
        had_entries = bool(self._entries)
        self._entries.clear()
        if had_entries:
            self._log("cache_clear", None, namespace="all")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get_stats(self) -> CacheStats:
        """Return a snapshot of the counters; ``size`` is the stored entry count."""
        return CacheStats(
            size=len(self._entries),
            hits=self._hits,
            misses=self._misses,
            sets=self._sets,
            evictions=self._evictions,
        )

    def get_hit_rate(self) -> float:
        return self.get_stats().hit_rate

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _evict_oldest(self) -> None:
        """Drop the entry with the earliest insertion time (first in order)."""
        oldest_key, oldest = next(iter(self._entries.items()))
        del self._entries[oldest_key]
        self._evictions += 1
        self._log("cache_evict", oldest_key, namespace=oldest.namespace.value, reason="capacity")

    def _log(self, event: str, key: Optional[str], **fields: Any) -> None:
        output = get_output()
        if not output.is_verbose:
            return
        payload: dict[str, Any] = {"level": "debug", "event": event}
        if key is not None:
            payload["namespace"] = key.split(":", 1)[0]
            payload["key"] = key
        payload.update(fields)
        payload["cache_size"] = len(self._entries)
        payload["timestamp"] = datetime.now(timezone.utc).isoformat()
        output.event(payload)
