"""Durable, versioned snapshot of the workspace's databases.

The snapshot is written only by ``notion-cli sync`` and read by any
command that prefers offline data (``list``, name resolution in
``db retrieve``, ``cache info``).  It is a single JSON document at
``<cache_dir>/databases.json``::

    {
      "version": 1,
      "last_sync": "2026-10-15T09:30:00+00:00",
      "databases": [{"id": "...", "title": "Tasks", "aliases": [...], ...}]
    }

Every save replaces the file in full through
:func:`~notioncli.config.atomic_write`; there is no partial merge and no
cross-process locking, so concurrent syncs are last-writer-wins.

Staleness is advisory.  A snapshot older than :data:`STALE_THRESHOLD_HOURS`
is still returned by :meth:`WorkspaceSnapshotStore.load`; callers only use
:func:`is_stale` to recommend a refresh.
"""

from __future__ import annotations

import json
import re
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from notioncli.config import atomic_write, get_cache_dir
from notioncli.exceptions import SnapshotCorruptError, SnapshotIOError
from notioncli.models import CachedDatabase, WorkspaceSnapshot
from notioncli.output import get_output

SNAPSHOT_VERSION = 1
"""On-disk schema version; files with any other version are rejected."""

STALE_THRESHOLD_HOURS = 24
"""Age after which a snapshot is reported as stale."""

SNAPSHOT_FILENAME = "databases.json"

_ALIAS_SUFFIX_RE = re.compile(r"\s+(database|db|table|list|tracker|log)$", re.IGNORECASE)


# --- Staleness ---


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def snapshot_age_hours(last_sync: datetime, now: Optional[datetime] = None) -> float:
    """Return ``(now - last_sync)`` in hours."""
    now = _as_aware(now or _utcnow())
    return (now - _as_aware(last_sync)).total_seconds() / 3600


def is_stale(last_sync: datetime, now: Optional[datetime] = None) -> bool:
    """Return True when *last_sync* is more than 24 hours before *now*."""
    return snapshot_age_hours(last_sync, now) > STALE_THRESHOLD_HOURS


def next_recommended_sync(last_sync: datetime) -> datetime:
    return _as_aware(last_sync) + timedelta(hours=STALE_THRESHOLD_HOURS)


# --- Database descriptors ---


def generate_aliases(title: str) -> list[str]:
    """Build search aliases for a database title.

    Example::

        >>> generate_aliases("Tasks Database")
        ['tasks database', 'tasks', 'tasks db', 'task']
    """
    aliases: dict[str, None] = {}
    normalized = title.lower().strip()
    aliases[normalized] = None

    base = _ALIAS_SUFFIX_RE.sub("", normalized)
    if base != normalized:
        aliases[base] = None
        aliases[f"{base} db"] = None
        aliases[f"{base} database"] = None

    if base.endswith("s"):
        aliases[base[:-1]] = None
    else:
        aliases[f"{base}s"] = None

    words = base.split()
    if len(words) > 1:
        acronym = "".join(w[0] for w in words)
        if len(acronym) >= 2:
            aliases[acronym] = None

    return list(aliases)


def _plain_title(payload: dict[str, Any]) -> str:
    title = payload.get("title") or []
    if isinstance(title, list) and title:
        text = "".join(part.get("plain_text", "") for part in title if isinstance(part, dict))
        if text.strip():
            return text
    return "Untitled"


def build_database_entry(payload: dict[str, Any]) -> CachedDatabase:
    """Build a snapshot descriptor from a data-source API payload."""
    title = _plain_title(payload)
    return CachedDatabase(
        id=payload["id"],
        title=title,
        title_normalized=title.lower().strip(),
        aliases=generate_aliases(title),
        url=payload.get("url"),
        last_edited_time=payload.get("last_edited_time"),
        properties=payload.get("properties") or {},
    )


# --- Store ---


class WorkspaceSnapshotStore:
    """Sole reader and writer of the workspace snapshot file.

    Args:
        path: Explicit snapshot file location.  Defaults to
            ``get_cache_dir() / "databases.json"``, resolved lazily.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path is not None else None

    def path(self) -> Path:
        """Return the snapshot file location for the running user."""
        if self._path is None:
            self._path = get_cache_dir() / SNAPSHOT_FILENAME
        return self._path

    def load(self, retries: int = 0, retry_delay: float = 0.05) -> Optional[WorkspaceSnapshot]:
        """Read the snapshot from disk.

        A parse failure may come from reading while another process renames
        a new file into place, so it is retried up to *retries* times before
        being reported.  A version mismatch is never retried.

        Returns:
            The snapshot, or ``None`` when the file does not exist.

        Raises:
            SnapshotCorruptError: The file is not valid JSON, does not match
                the schema, or has a different ``version``.
            SnapshotIOError: The file exists but cannot be read.
        """
        attempt = 0
        while True:
            try:
                return self._read()
            except SnapshotCorruptError as exc:
                if not exc.transient or attempt >= retries:
                    raise
                attempt += 1
                get_output().debug(
                    f"Snapshot parse failed, retrying ({attempt}/{retries}): {exc}"
                )
                time.sleep(retry_delay)

    def save(self, snapshot: WorkspaceSnapshot) -> WorkspaceSnapshot:
        """Atomically replace the snapshot file with *snapshot*.

        ``last_sync`` is stamped with the current UTC time when unset.

        Returns:
            The snapshot exactly as written.

        Raises:
            SnapshotIOError: The file could not be written.
        """
        if snapshot.last_sync is None:
            snapshot = snapshot.model_copy(update={"last_sync": _utcnow()})

        data = snapshot.model_dump(mode="json")
        try:
            path = self.path()
            atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
        except OSError as exc:
            location = str(self._path) if self._path is not None else SNAPSHOT_FILENAME
            raise SnapshotIOError(
                f"Failed to save workspace snapshot to {location}: {exc}",
                context={"path": location},
            ) from exc

        get_output().debug(f"Saved workspace snapshot ({len(snapshot.databases)} databases) to {path}")
        return snapshot

    def _read(self) -> Optional[WorkspaceSnapshot]:
        path = self.path()
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as exc:
            raise SnapshotCorruptError(
                f"Workspace snapshot at {path} is not valid UTF-8: {exc}",
                transient=True,
                context={"path": str(path)},
                suggestions=["Run sync to rebuild the workspace cache"],
            ) from exc
        except OSError as exc:
            raise SnapshotIOError(
                f"Failed to read workspace snapshot at {path}: {exc}",
                context={"path": str(path)},
            ) from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SnapshotCorruptError(
                f"Workspace snapshot at {path} is not valid JSON: {exc}",
                transient=True,
                context={"path": str(path)},
                suggestions=["Run sync to rebuild the workspace cache"],
            ) from exc

        version = data.get("version") if isinstance(data, dict) else None
        # bool is an int subclass; `true` must not pass as version 1
        if type(version) is not int or version != SNAPSHOT_VERSION:
            raise SnapshotCorruptError(
                f"Workspace snapshot at {path} has version {version!r}, "
                f"expected {SNAPSHOT_VERSION}",
                context={"path": str(path), "version": version},
                suggestions=["Run sync to rebuild the workspace cache"],
            )

        try:
            return WorkspaceSnapshot.model_validate(data)
        except ValidationError as exc:
            raise SnapshotCorruptError(
                f"Workspace snapshot at {path} does not match the expected schema: {exc}",
                context={"path": str(path)},
                suggestions=["Run sync to rebuild the workspace cache"],
            ) from exc
