"""
Per-URL selection between direct and proxied connections.
"""
from typing import Mapping, Optional, TypeVar

import httpx
from httpx._utils import URLPattern


T = TypeVar("T")


def match_proxy_route(routes: Mapping[str, Optional[T]], url: httpx.URL) -> Optional[T]:
    """
    Value of the most specific pattern in `routes` that matches `url`.

    Patterns use httpx mount syntax ("https://", "all://*example.com") and
    are ranked the way httpx ranks its mounts. None when nothing matches.
    """
    ranked = sorted(((URLPattern(key), value) for key, value in routes.items()), key=lambda item: item[0])
    for pattern, value in ranked:
        if pattern.matches(url):
            return value
    return None


class ProxyRoutingTransport(httpx.AsyncBaseTransport):
    """
    Innermost transport that picks a connection pool per request URL.

    Requests whose URL matches a proxied route go through that route's
    transport; everything else, NO_PROXY exclusions included, uses the
    direct transport.

    Example:
        transport = ProxyRoutingTransport(
            httpx.AsyncHTTPTransport(),
            {"https://": httpx.AsyncHTTPTransport(proxy="http://proxy:3128"),
             "all://*internal.example": None},
        )
    """

    def __init__(
        self,
        direct: httpx.AsyncBaseTransport,
        routes: Mapping[str, Optional[httpx.AsyncBaseTransport]],
    ) -> None:
        self._direct = direct
        self._routes = dict(routes)

    def transport_for_url(self, url: httpx.URL) -> httpx.AsyncBaseTransport:
        """Transport that will carry a request to `url`."""
        return match_proxy_route(self._routes, url) or self._direct

    @property
    def direct(self) -> httpx.AsyncBaseTransport:
        return self._direct

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.transport_for_url(request.url).handle_async_request(request)

    async def aclose(self) -> None:
        await self._direct.aclose()
        for transport in {id(t): t for t in self._routes.values() if t is not None}.values():
            await transport.aclose()
