"""HTTP client for the Notion REST API.

:class:`NotionClient` wraps :class:`httpx.AsyncClient` with bearer-token
auth, retry with exponential backoff, typed error mapping, and cache-aside
reads through :mod:`notioncli.cache`.

Example::

    from notioncli.client import NotionClient

    async with NotionClient(token, cache=cache) as client:
        user = await client.retrieve_user("abc")
"""

from notioncli.client.notion_client import NotionClient

__all__ = ["NotionClient"]
