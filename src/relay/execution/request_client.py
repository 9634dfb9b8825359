"""HTTP request client handed to action callbacks.

Every ``perform`` / ``value`` / autocomplete callback receives a
:class:`RequestClient` built from the destination's request extensions.
Options from each extension are layered on top of the defaults in
registration order.

Manifesto:
    - **No hidden retries:** A failed call fails the step; retrying is the
      caller's decision.
    - **Always a timeout:** Defaults come from :class:`RelaySettings`.
    - **Errors carry the response:** Status >= 400 raises
      ``httpx.HTTPStatusError`` whose ``.response`` is the full response.
    - **Responses are observable:** An ``on_response`` option sees every
      response, error statuses included, before it is raised.

Architecture:
    ::

        create_request_client(*options)
            defaults (timeout, user-agent, follow redirects)
              ◀── merge(option_1) ◀── merge(option_2) ...
            headers merge key by key, everything else is replaced

        await request(url, method="POST", json={...})
            httpx.AsyncClient (one per call) ─▶ raise_for_status()

Examples:
    >>> request = create_request_client({"prefix_url": "https://api.example.com/v1"})
    >>> response = await request("users", method="POST", json={"name": "Ada"})
    >>> response.status_code
    201

Tags:
    http, httpx, request-client, relay
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypedDict

import httpx

from relay.core.logging import get_logger
from relay.core.settings import RelaySettings, get_settings

logger = get_logger(__name__)


class RequestOptions(TypedDict, total=False):
    """Options a request extension may return."""

    headers: dict[str, str]
    prefix_url: str
    timeout: float
    params: dict[str, Any]
    auth: Any
    follow_redirects: bool
    transport: httpx.AsyncBaseTransport
    on_response: Callable[[httpx.Response], None]


def default_options(settings: RelaySettings | None = None) -> RequestOptions:
    settings = settings or get_settings()
    return {
        "headers": {"user-agent": settings.user_agent},
        "timeout": settings.request_timeout,
        "follow_redirects": True,
    }


def merge_options(*options: RequestOptions | None) -> RequestOptions:
    """Layer option dicts left to right. Header names are case-insensitive."""
    merged: dict[str, Any] = {}
    for opts in options:
        if not opts:
            continue
        for key, value in opts.items():
            if key == "headers":
                headers = dict(merged.get("headers", {}))
                headers.update({name.lower(): v for name, v in (value or {}).items()})
                merged["headers"] = headers
            else:
                merged[key] = value
    return merged  # type: ignore[return-value]


def _join_url(prefix_url: str | None, url: str) -> str:
    if not prefix_url or url.startswith(("http://", "https://")):
        return url
    return f"{prefix_url.rstrip('/')}/{url.lstrip('/')}"


class RequestClient:
    """Awaitable HTTP client bound to a fixed set of options."""

    def __init__(self, options: RequestOptions) -> None:
        self.options = options

    def extend(self, *options: RequestOptions | None) -> RequestClient:
        """Return a new client with ``options`` layered on top of this one."""
        return RequestClient(merge_options(self.options, *options))

    async def __call__(
        self,
        url: str,
        *,
        method: str = "GET",
        json: Any = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        throw_http_errors: bool = True,
    ) -> httpx.Response:
        opts = self.options
        full_url = _join_url(opts.get("prefix_url"), url)
        merged_headers = merge_options({"headers": opts.get("headers", {})}, {"headers": headers or {}})["headers"]
        merged_params = {**opts.get("params", {}), **(params or {})}

        async with httpx.AsyncClient(
            timeout=opts.get("timeout"),
            follow_redirects=opts.get("follow_redirects", True),
            auth=opts.get("auth"),
            transport=opts.get("transport"),
        ) as client:
            response = await client.request(
                method.upper(),
                full_url,
                json=json,
                data=data,
                headers=merged_headers,
                params=merged_params or None,
            )

        logger.debug("http.response", method=method.upper(), url=full_url, status=response.status_code)

        observe = opts.get("on_response")
        if observe is not None:
            observe(response)

        if throw_http_errors:
            response.raise_for_status()
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self(url, method="GET", **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self(url, method="POST", **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self(url, method="PUT", **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self(url, method="PATCH", **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self(url, method="DELETE", **kwargs)


def create_request_client(*options: RequestOptions | None, settings: RelaySettings | None = None) -> RequestClient:
    """Build a client from the defaults plus ``options`` in order."""
    return RequestClient(merge_options(default_options(settings), *options))


__all__ = [
    "RequestClient",
    "RequestOptions",
    "create_request_client",
    "default_options",
    "merge_options",
]
