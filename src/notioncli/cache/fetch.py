"""Cache-aside helpers shared by the API client.

:func:`make_key` builds the deterministic keys used by both cache tiers and
:func:`cached_fetch` implements the lookup order::

    EntryCache  ->  ResponseDiskCache  ->  await fetch()

A value found on disk is promoted into memory for no longer than it has
left on disk, so the two tiers never extend each other; a fetched value is written
to both tiers.  Errors raised by *fetch* propagate untouched: retrying is
the client's job, not the cache's.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

from notioncli.cache.disk import ResponseDiskCache
from notioncli.cache.entry_cache import EntryCache
from notioncli.models import CachePolicy, Namespace

T = TypeVar("T")


def make_key(namespace: Namespace | str, *identifiers: Any) -> str:
    """Return ``"<namespace>:<id>[:<id>...]"``.

    Dict identifiers (query parameters) are serialised with sorted keys so
    the key does not depend on parameter order.  Empty dicts are skipped.

    Example::

        >>> make_key(Namespace.BLOCK, "abc", "children", {"page_size": 100})
        'block:abc:children:{"page_size": 100}'
    """
    parts = [Namespace(namespace).value]
    for ident in identifiers:
        if isinstance(ident, dict):
            if ident:
                parts.append(json.dumps(ident, sort_keys=True))
        else:
            parts.append(str(ident))
    return ":".join(parts)


async def cached_fetch(
    cache: Optional[EntryCache],
    namespace: Namespace,
    key: str,
    fetch: Callable[[], Awaitable[T]],
    disk: Optional[ResponseDiskCache] = None,
    skip_cache: bool = False,
) -> T:
    """Return the value for *key*, fetching and caching it on a miss.

    Args:
        cache: The in-memory cache, or ``None`` to skip it.
        namespace: Namespace of the resource; selects the TTL.
        key: Cache key, normally built with :func:`make_key`.
        fetch: Coroutine factory performing the remote call.
        disk: Optional persistent tier consulted after a memory miss.
        skip_cache: Bypass both tiers for this call (reads and writes).
    """
    use_memory = cache is not None and cache.is_enabled() and not skip_cache
    use_disk = disk is not None and disk.enabled and not skip_cache

    if use_memory:
        value = cache.get(key)
        if value is not None:
            return value

    if use_disk:
        value, remaining_ms = disk.get_with_ttl(key)
        if value is not None:
            if use_memory:
                cache.set(key, value, namespace, ttl_ms=remaining_ms)
            return value

    value = await fetch()

    if use_memory:
        cache.set(key, value, namespace)
    if use_disk:
        policy = cache.policy if cache is not None else CachePolicy()
        disk.set(key, value, policy.ttl_for(namespace))
    return value
