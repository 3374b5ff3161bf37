"""Asynchronous Notion API client with cache-aside reads.

:class:`NotionClient` wraps :class:`httpx.AsyncClient` and adds bearer-token
auth, the ``Notion-Version`` header, retry with exponential backoff, and
mapping of HTTP failures onto the
:class:`~notioncli.exceptions.UpstreamFetchError` family (each error carries
the endpoint that failed).

Read methods for pages, data sources, users and blocks go through
:func:`~notioncli.cache.fetch.cached_fetch`, so a repeated read within the
namespace TTL is served from memory (or from the disk tier) without a
network call.  :meth:`NotionClient.search_data_sources` is never cached; it
feeds ``notion-cli sync``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from notioncli.cache.disk import ResponseDiskCache
from notioncli.cache.entry_cache import EntryCache
from notioncli.cache.fetch import cached_fetch, make_key
from notioncli.exceptions import (
    AuthError,
    ConnectionError_,
    NotFoundError,
    RateLimitedError,
    ServerError,
    UpstreamFetchError,
)
from notioncli.models import Namespace
from notioncli.output import get_output

DEFAULT_BASE_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2025-09-03"
SEARCH_PAGE_SIZE = 100


class NotionClient:
    """Asynchronous client for the Notion REST API.

    Must be used as an async context manager.

    Args:
        token: Integration token sent as ``Authorization: Bearer``.
        cache: In-memory cache for read methods; ``None`` disables caching.
        disk_cache: Optional persistent tier below *cache*.
        base_url: API root, overridable for tests.
        timeout: Per-request timeout in seconds.
        max_retries: Retries for 429, 5xx and network errors.
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``).

    Example::

        async with NotionClient(token, cache=cache) as client:
            page = await client.retrieve_page("1a2b3c")
    """

    def __init__(
        self,
        token: str,
        cache: Optional[EntryCache] = None,
        disk_cache: Optional[ResponseDiskCache] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token = token
        self._cache = cache
        self._disk_cache = disk_cache
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> NotionClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            },
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Cached reads
    # ------------------------------------------------------------------ #

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._cached_get(Namespace.PAGE, f"/pages/{page_id}", page_id)

    async def retrieve_data_source(self, data_source_id: str) -> dict[str, Any]:
        return await self._cached_get(
            Namespace.DATA_SOURCE, f"/data_sources/{data_source_id}", data_source_id
        )

    async def retrieve_user(self, user_id: str) -> dict[str, Any]:
        return await self._cached_get(Namespace.USER, f"/users/{user_id}", user_id)

    async def list_users(self) -> dict[str, Any]:
        return await self._cached_get(Namespace.USER, "/users", "list")

    async def retrieve_block(self, block_id: str) -> dict[str, Any]:
        return await self._cached_get(Namespace.BLOCK, f"/blocks/{block_id}", block_id)

    async def retrieve_block_children(self, block_id: str) -> dict[str, Any]:
        return await self._cached_get(
            Namespace.BLOCK,
            f"/blocks/{block_id}/children",
            block_id,
            "children",
        )

    # ------------------------------------------------------------------ #
    # Uncached
    # ------------------------------------------------------------------ #

    async def search_data_sources(self) -> list[dict[str, Any]]:
        """Return every data source shared with the integration.

        Follows ``next_cursor`` until ``has_more`` is false.
        """
        results: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            body: dict[str, Any] = {
                "filter": {"property": "object", "value": "data_source"},
                "page_size": SEARCH_PAGE_SIZE,
            }
            if cursor:
                body["start_cursor"] = cursor
            response = await self.request("POST", "/search", json_body=body)
            payload = response.json()
            results.extend(payload.get("results", []))
            cursor = payload.get("next_cursor")
            if not payload.get("has_more") or not cursor:
                return results

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> httpx.Response:
        """Send a request with retry and error mapping.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            RateLimitedError: On 429 after all retries.
            ServerError: On 5xx after all retries, or any other 4xx.
            ConnectionError_: On network / timeout errors after all retries.
        """
        response = await self._execute_with_retry(method, path, params, json_body)
        self._map_response_error(response, f"{method} {path}")
        return response

    async def _cached_get(
        self,
        namespace: Namespace,
        path: str,
        *identifiers: Any,
    ) -> dict[str, Any]:
        async def _fetch() -> dict[str, Any]:
            response = await self.request("GET", path)
            return response.json()

        return await cached_fetch(
            self._cache,
            namespace,
            make_key(namespace, *identifiers),
            _fetch,
            disk=self._disk_cache,
        )

    async def _execute_with_retry(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]],
        json_body: Any,
    ) -> httpx.Response:
        """Execute the HTTP request with exponential-backoff retry.

        Retries on 429, 5xx and connection / timeout errors up to
        ``max_retries`` times.  A ``Retry-After`` header on 429 overrides
        the computed delay.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        output = get_output()
        endpoint = f"{method} {path}"

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.request(
                    method, path, params=params, json=json_body
                )
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < self._max_retries:
                    delay = 2 ** attempt
                    output.debug(
                        f"Connection error: {exc}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{self._max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {self._max_retries + 1} attempts: {exc}",
                    endpoint=endpoint,
                ) from exc

            retryable = response.status_code == 429 or response.status_code >= 500
            if retryable and attempt < self._max_retries:
                delay = _retry_delay(response, attempt)
                output.debug(
                    f"HTTP {response.status_code} from {endpoint}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{self._max_retries})"
                )
                await asyncio.sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries", endpoint=endpoint)  # pragma: no cover

    def _map_response_error(self, response: httpx.Response, endpoint: str) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("code") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

        exc_type: type[UpstreamFetchError]
        if status in (401, 403):
            exc_type = AuthError
        elif status == 404:
            exc_type = NotFoundError
        elif status == 429:
            exc_type = RateLimitedError
        else:
            exc_type = ServerError
        raise exc_type(full_msg, endpoint=endpoint, status_code=status)


def _retry_delay(response: httpx.Response, attempt: int) -> float:
    retry_after = response.headers.get("retry-after")
    if retry_after:
        try:
            return float(retry_after)
        except ValueError:
            pass
    return float(2 ** attempt)
