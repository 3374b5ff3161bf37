"""Disk-based second tier for cached API responses.

Uses :mod:`diskcache` to keep responses across CLI invocations under
``<cache_dir>/responses``.  The tier sits below
:class:`~notioncli.cache.entry_cache.EntryCache`: it is only consulted on an
in-memory miss, and a hit is promoted back into memory, for the time the
entry has left on disk, by :func:`~notioncli.cache.fetch.cached_fetch`.

Entries are stored under the same keys as the in-memory cache and expire
with the namespace TTL.  The tier is best effort: filesystem or database
errors are reported as debug diagnostics and treated as misses, so a
broken disk cache never fails a command.
"""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Any, Optional

import diskcache

from notioncli.output import get_output


class ResponseDiskCache:
    """Disk-backed cache for API response payloads.

    Args:
        cache_dir: Root directory for the cache.  A ``responses/``
            subdirectory is created inside it.
        enabled: When ``False`` no directory is created and every call is
            a no-op.  A location that cannot be opened also leaves the
            tier disabled.

    Example::

        disk = ResponseDiskCache("/tmp/notion-cache")
        disk.set("page:abc", {"id": "abc"}, ttl_ms=60_000)
        disk.get("page:abc")
    """

    def __init__(self, cache_dir: str | Path, enabled: bool = True) -> None:
        self._directory = Path(cache_dir) / "responses"
        self._cache: Optional[diskcache.Cache] = None
        if enabled:
            try:
                self._cache = diskcache.Cache(str(self._directory))
            except (OSError, sqlite3.Error) as exc:
                get_output().debug(f"Disk cache disabled, cannot open {self._directory}: {exc}")

    @property
    def enabled(self) -> bool:
        return self._cache is not None

    def get(self, key: str) -> Any:
        """Return the stored payload for *key*, or ``None`` on a miss or error."""
        return self.get_with_ttl(key)[0]

    def get_with_ttl(self, key: str) -> tuple[Any, Optional[int]]:
        """Return ``(payload, remaining_ms)`` for *key*.

        ``remaining_ms`` is ``None`` for an entry stored without expiry.
        A miss or read error returns ``(None, None)``.
        """
        if self._cache is None:
            return None, None
        try:
            value, expire_at = self._cache.get(key, expire_time=True)
        except (OSError, sqlite3.Error) as exc:
            get_output().debug(f"Disk cache read failed for {key}: {exc}")
            return None, None
        if value is None or expire_at is None:
            return value, None
        return value, max(0, int((expire_at - time.time()) * 1000))

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """Store *value* under *key*, expiring after *ttl_ms* milliseconds."""
        if self._cache is None:
            return
        try:
            self._cache.set(key, value, expire=ttl_ms / 1000)
        except (OSError, sqlite3.Error) as exc:
            get_output().debug(f"Disk cache write failed for {key}: {exc}")

    def clear(self) -> int:
        """Remove all entries and return how many were removed."""
        if self._cache is None:
            return 0
        try:
            return self._cache.clear()
        except (OSError, sqlite3.Error) as exc:
            get_output().debug(f"Disk cache clear failed: {exc}")
            return 0

    def stats(self) -> dict[str, Any]:
        """Return ``enabled``, ``size`` and ``directory`` for ``cache info``.

        ``size`` is ``None`` when the tier is disabled or cannot be counted.
        """
        size: Optional[int] = None
        if self._cache is not None:
            try:
                size = len(self._cache)
            except (OSError, sqlite3.Error) as exc:
                get_output().debug(f"Disk cache size unavailable: {exc}")
        return {"enabled": self.enabled, "size": size, "directory": str(self._directory)}

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
