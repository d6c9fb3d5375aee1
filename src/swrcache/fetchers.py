"""Fetch functions backed by httpx."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from swrcache.errors import FetchError


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"


def json_fetcher(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> Callable[[], Awaitable[Any]]:
    """Build a fetch function that GETs url and returns the decoded JSON body.

    Non-success responses raise FetchError carrying the status code.
    """

    async def fetch() -> Any:
        response = await client.get(url, params=params, headers=headers)
        if not response.is_success:
            raise FetchError(_error_message(response), status_code=response.status_code)
        return response.json()

    return fetch


__all__ = ["json_fetcher"]
