"""Tests for the ResponseDiskCache module."""

from __future__ import annotations

import sqlite3
import time

import pytest

from notioncli.cache.disk import ResponseDiskCache


@pytest.fixture()
def cache(tmp_path, quiet_output):
    """Create an enabled ResponseDiskCache pointing at tmp_path."""
    c = ResponseDiskCache(tmp_path)
    yield c
    c.close()


@pytest.fixture()
def disabled_cache(tmp_path):
    """Create a disabled ResponseDiskCache."""
    c = ResponseDiskCache(tmp_path, enabled=False)
    yield c
    c.close()


def _payload() -> dict:
    return {"object": "page", "id": "abc", "properties": {}}


# ------------------------------------------------------------------ #
# Core get/set behaviour
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_set_and_get(self, cache: ResponseDiskCache) -> None:
        """Cache stores and retrieves a payload."""
        cache.set("page:abc", _payload(), ttl_ms=60_000)
        assert cache.get("page:abc") == _payload()

    def test_cache_miss_returns_none(self, cache: ResponseDiskCache) -> None:
        """A key that was never stored returns None."""
        assert cache.get("page:missing") is None

    def test_survives_reopen(self, tmp_path, quiet_output) -> None:
        """Entries persist across instances (i.e. across CLI runs)."""
        first = ResponseDiskCache(tmp_path)
        first.set("user:u1", {"id": "u1"}, ttl_ms=60_000)
        first.close()

        second = ResponseDiskCache(tmp_path)
        try:
            assert second.get("user:u1") == {"id": "u1"}
        finally:
            second.close()


# ------------------------------------------------------------------ #
# TTL expiry
# ------------------------------------------------------------------ #


class TestTTL:
    def test_ttl_expiry(self, cache: ResponseDiskCache) -> None:
        """Entries expire after ttl_ms."""
        cache.set("block:b1", {"id": "b1"}, ttl_ms=500)
        assert cache.get("block:b1") is not None
        time.sleep(0.8)
        assert cache.get("block:b1") is None


# ------------------------------------------------------------------ #
# Disabled cache
# ------------------------------------------------------------------ #


class TestDisabled:
    def test_disabled_get_returns_none(self, disabled_cache: ResponseDiskCache) -> None:
        assert disabled_cache.get("page:abc") is None

    def test_disabled_set_is_noop(self, disabled_cache: ResponseDiskCache) -> None:
        disabled_cache.set("page:abc", _payload(), ttl_ms=60_000)
        assert disabled_cache.get("page:abc") is None

    def test_disabled_creates_no_directory(self, disabled_cache: ResponseDiskCache, tmp_path) -> None:
        assert not (tmp_path / "responses").exists()

    def test_disabled_stats(self, disabled_cache: ResponseDiskCache, tmp_path) -> None:
        assert disabled_cache.stats() == {
            "enabled": False,
            "size": None,
            "directory": str(tmp_path / "responses"),
        }

    def test_disabled_clear_returns_zero(self, disabled_cache: ResponseDiskCache) -> None:
        assert disabled_cache.clear() == 0


# ------------------------------------------------------------------ #
# Clear
# ------------------------------------------------------------------ #


class TestClear:
    def test_clear_returns_removed_count(self, cache: ResponseDiskCache) -> None:
        cache.set("page:a", 1, ttl_ms=60_000)
        cache.set("page:b", 2, ttl_ms=60_000)
        assert cache.clear() == 2
        assert cache.get("page:a") is None


# ------------------------------------------------------------------ #
# Stats
# ------------------------------------------------------------------ #


class TestStats:
    def test_stats_after_inserts(self, cache: ResponseDiskCache, tmp_path) -> None:
        cache.set("page:a", 1, ttl_ms=60_000)
        cache.set("page:b", 2, ttl_ms=60_000)
        s = cache.stats()
        assert s["enabled"] is True
        assert s["size"] == 2
        assert s["directory"] == str(tmp_path / "responses")


class TestRemainingTTL:
    def test_remaining_ms_counts_down_from_ttl(self, cache: ResponseDiskCache) -> None:
        cache.set("page:a", {"id": "a"}, ttl_ms=60_000)
        value, remaining_ms = cache.get_with_ttl("page:a")
        assert value == {"id": "a"}
        assert 55_000 < remaining_ms <= 60_000

    def test_entry_without_expiry_has_no_remaining(self, cache: ResponseDiskCache) -> None:
        cache._cache.set("page:a", {"id": "a"})
        assert cache.get_with_ttl("page:a") == ({"id": "a"}, None)

    def test_miss(self, cache: ResponseDiskCache) -> None:
        assert cache.get_with_ttl("page:missing") == (None, None)


# ------------------------------------------------------------------ #
# Failure handling
# ------------------------------------------------------------------ #


class TestFailures:
    def test_read_error_is_a_miss(self, cache: ResponseDiskCache, monkeypatch) -> None:
        def _boom(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        monkeypatch.setattr(cache._cache, "get", _boom)
        assert cache.get("page:a") is None

    def test_write_error_is_swallowed(self, cache: ResponseDiskCache, monkeypatch) -> None:
        def _boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(cache._cache, "set", _boom)
        cache.set("page:a", 1, ttl_ms=60_000)

    def test_clear_error_returns_zero(self, cache: ResponseDiskCache, monkeypatch) -> None:
        def _boom(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")

        cache.set("page:a", 1, ttl_ms=60_000)
        monkeypatch.setattr(cache._cache, "clear", _boom)
        assert cache.clear() == 0

    def test_unopenable_directory_disables_tier(self, tmp_path, quiet_output) -> None:
        # A regular file where the responses directory should be.
        (tmp_path / "responses").write_text("not a directory")
        c = ResponseDiskCache(tmp_path)
        assert c.enabled is False
        c.set("page:a", 1, ttl_ms=60_000)
        assert c.get("page:a") is None
        assert c.clear() == 0
        assert c.stats()["size"] is None
        c.close()


# ------------------------------------------------------------------ #
# Close
# ------------------------------------------------------------------ #


class TestClose:
    def test_double_close(self, tmp_path) -> None:
        c = ResponseDiskCache(tmp_path)
        c.close()
        c.close()
