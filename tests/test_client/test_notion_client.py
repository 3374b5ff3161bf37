"""Tests for the asynchronous Notion API client."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from notioncli.cache.entry_cache import EntryCache
from notioncli.client import NotionClient
from notioncli.client.notion_client import NOTION_VERSION
from notioncli.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    RateLimitedError,
    ServerError,
)
from notioncli.models import CachePolicy
from notioncli.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client(handler, cache: EntryCache | None = None, max_retries: int = 0) -> NotionClient:
    return NotionClient(
        "secret_test",
        cache=cache,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


def _call(client: NotionClient, method: str, *args: Any) -> Any:
    async def _go():
        async with client:
            return await getattr(client, method)(*args)

    return asyncio.run(_go())


@pytest.fixture(autouse=True)
def _clean_output():
    """Reset the global output manager between tests."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record backoff delays instead of sleeping."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("notioncli.client.notion_client.asyncio.sleep", _sleep)
    return delays


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


class TestContextManager:
    def test_enter_and_exit(self) -> None:
        client = _client(lambda r: httpx.Response(200, json={}))

        async def _go():
            assert client._client is None
            async with client:
                assert client._client is not None
            assert client._client is None

        asyncio.run(_go())


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    def test_headers_and_url(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"object": "page", "id": "p1"})

        result = _call(_client(handler), "retrieve_page", "p1")

        assert result == {"object": "page", "id": "p1"}
        req = seen[0]
        assert req.method == "GET"
        assert str(req.url) == "https://api.notion.com/v1/pages/p1"
        assert req.headers["Authorization"] == "Bearer secret_test"
        assert req.headers["Notion-Version"] == NOTION_VERSION

    @pytest.mark.parametrize(
        "method, args, path",
        [
            ("retrieve_data_source", ("ds1",), "/v1/data_sources/ds1"),
            ("retrieve_user", ("u1",), "/v1/users/u1"),
            ("list_users", (), "/v1/users"),
            ("retrieve_block", ("b1",), "/v1/blocks/b1"),
            ("retrieve_block_children", ("b1",), "/v1/blocks/b1/children"),
        ],
    )
    def test_read_endpoints(self, method: str, args: tuple, path: str) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json={"ok": True})

        assert _call(_client(handler), method, *args) == {"ok": True}
        assert seen == [path]


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    def test_repeat_read_served_from_cache(self, clock) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(200, json={"id": "u1"})

        cache = EntryCache(CachePolicy(), clock=clock)
        client = _client(handler, cache=cache)

        async def _go():
            async with client:
                await client.retrieve_user("u1")
                await client.retrieve_user("u1")

        asyncio.run(_go())
        assert calls["n"] == 1
        assert "user:u1" in cache

    def test_block_and_children_cached_separately(self, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"path": request.url.path})

        cache = EntryCache(CachePolicy(), clock=clock)
        client = _client(handler, cache=cache)

        async def _go():
            async with client:
                block = await client.retrieve_block("b1")
                children = await client.retrieve_block_children("b1")
                return block, children

        block, children = asyncio.run(_go())
        assert block["path"] == "/v1/blocks/b1"
        assert children["path"] == "/v1/blocks/b1/children"
        assert "block:b1" in cache
        assert "block:b1:children" in cache

    def test_errors_are_not_cached(self, clock) -> None:
        responses = iter([
            httpx.Response(404, json={"code": "object_not_found", "message": "Not found"}),
            httpx.Response(200, json={"id": "p1"}),
        ])
        cache = EntryCache(CachePolicy(), clock=clock)
        client = _client(lambda r: next(responses), cache=cache)

        async def _go():
            async with client:
                with pytest.raises(NotFoundError):
                    await client.retrieve_page("p1")
                return await client.retrieve_page("p1")

        assert asyncio.run(_go()) == {"id": "p1"}


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.parametrize(
        "status, exc_type, exit_code",
        [
            (401, AuthError, 3),
            (403, AuthError, 3),
            (404, NotFoundError, 4),
            (400, ServerError, 5),
            (429, RateLimitedError, 5),
            (500, ServerError, 5),
            (503, ServerError, 5),
        ],
    )
    def test_status_mapping(self, status: int, exc_type: type, exit_code: int) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, json={"code": "x", "message": "boom"})

        with pytest.raises(exc_type) as exc_info:
            _call(_client(handler), "retrieve_page", "p1")

        err = exc_info.value
        assert err.exit_code == exit_code
        assert err.status_code == status
        assert err.endpoint == "GET /pages/p1"
        assert err.context["endpoint"] == "GET /pages/p1"
        assert "boom" in err.message

    def test_non_json_error_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad gateway</html>")

        with pytest.raises(ServerError) as exc_info:
            _call(_client(handler), "retrieve_page", "p1")
        assert "Bad gateway" in exc_info.value.message


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------


class TestRetry:
    def test_retries_server_errors_then_succeeds(self, _no_sleep: list[float]) -> None:
        responses = iter([
            httpx.Response(503, json={}),
            httpx.Response(502, json={}),
            httpx.Response(200, json={"id": "p1"}),
        ])
        result = _call(_client(lambda r: next(responses), max_retries=3), "retrieve_page", "p1")
        assert result == {"id": "p1"}
        assert _no_sleep == [1.0, 2.0]

    def test_retry_after_header_honoured(self, _no_sleep: list[float]) -> None:
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "7"}, json={}),
            httpx.Response(200, json={"id": "p1"}),
        ])
        _call(_client(lambda r: next(responses), max_retries=1), "retrieve_page", "p1")
        assert _no_sleep == [7.0]

    def test_gives_up_after_max_retries(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(500, json={"message": "down"})

        with pytest.raises(ServerError):
            _call(_client(handler, max_retries=2), "retrieve_page", "p1")
        assert calls["n"] == 3

    def test_client_errors_not_retried(self) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(404, json={})

        with pytest.raises(NotFoundError):
            _call(_client(handler, max_retries=3), "retrieve_page", "p1")
        assert calls["n"] == 1

    def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ConnectionError_) as exc_info:
            _call(_client(handler, max_retries=1), "retrieve_page", "p1")
        assert exc_info.value.exit_code == 6
        assert exc_info.value.endpoint == "GET /pages/p1"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearchDataSources:
    def test_pages_through_results(self) -> None:
        bodies: list[dict] = []
        pages = iter([
            {"results": [{"id": "ds1"}, {"id": "ds2"}], "has_more": True, "next_cursor": "c1"},
            {"results": [{"id": "ds3"}], "has_more": False, "next_cursor": None},
        ])

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert request.url.path == "/v1/search"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=next(pages))

        results = _call(_client(handler), "search_data_sources")

        assert [r["id"] for r in results] == ["ds1", "ds2", "ds3"]
        assert bodies[0]["page_size"] == 100
        assert bodies[0]["filter"] == {"property": "object", "value": "data_source"}
        assert "start_cursor" not in bodies[0]
        assert bodies[1]["start_cursor"] == "c1"

    def test_search_is_not_cached(self, clock) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(200, json={"results": [], "has_more": False})

        cache = EntryCache(CachePolicy(), clock=clock)
        client = _client(handler, cache=cache)

        async def _go():
            async with client:
                await client.search_data_sources()
                await client.search_data_sources()

        asyncio.run(_go())
        assert calls["n"] == 2
        assert len(cache) == 0
