"""
services/fetch_service.py – Retrieve the raw session list from the lobby server.

The lobby server is often unreachable from browsers and some networks, so
the request goes direct first and then through a list of public proxies,
one at a time, until one answers with JSON. The last proxy that worked is
tried first next time; that preference lives in a caller-owned RouteMemory
so independent pipelines never share it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import httpx

from models.enums import FetchEvent
from services import config
from services.exceptions import AllRoutesFailedError, FetchError

log = logging.getLogger(__name__)

# ── Types ────────────────────────────────────────────────────────────────────

StatusCallback = Callable[[FetchEvent, Optional[str]], None]

# Characters left as-is by JavaScript's encodeURIComponent().
_URI_COMPONENT_SAFE: str = "-_.!~*'()"

CACHE_BUSTER_PARAM: str = "_cb"


@dataclass(frozen=True)
class Route:
    """
    One way of reaching the lobby server.

    Attributes
    ----------
    name   : Label used in logs and status events.
    prefix : Proxy prefix the encoded target URL is appended to; None means
             the target is requested directly.
    """

    name: str
    prefix: Optional[str] = None

    def url_for(self, target_url: str) -> str:
        if self.prefix is None:
            return target_url
        return self.prefix + quote(target_url, safe=_URI_COMPONENT_SAFE)


DIRECT_ROUTE = Route("direct")


def proxy_routes(prefixes: Optional[Sequence[str]] = None) -> List[Route]:
    """Routes for *prefixes* (default: services.config.CORS_PROXIES)."""
    if prefixes is None:
        prefixes = config.CORS_PROXIES
    return [Route(prefix, prefix) for prefix in prefixes]


class RouteMemory:
    """
    Remembers the most recent route that delivered a response.

    Owned by the caller and passed into each fetch. It only reorders the
    fallback routes; it never causes a route to be skipped.
    """

    def __init__(self) -> None:
        self.last_successful: Optional[Route] = None

    def remember(self, route: Route) -> None:
        self.last_successful = route

    def reset(self) -> None:
        self.last_successful = None

    def order(self, fallbacks: Sequence[Route]) -> List[Route]:
        """Return *fallbacks* with the remembered route (if among them) first."""
        last = self.last_successful
        if last is None or last not in fallbacks:
            return list(fallbacks)
        return [last] + [route for route in fallbacks if route != last]


# ── Public API ───────────────────────────────────────────────────────────────


def add_cache_buster(url: str, now_ms: Optional[int] = None) -> str:
    """Append ``_cb=<epoch ms>`` so intermediaries cannot serve a stale list."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{CACHE_BUSTER_PARAM}={now_ms}"


async def fetch_raw_records(
    *,
    specific_route: Union[Route, str, None] = None,
    target_endpoint: Optional[str] = None,
    bust_cache: bool = True,
    on_status: Optional[StatusCallback] = None,
    fallbacks: Optional[Sequence[Route]] = None,
    route_memory: Optional[RouteMemory] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    Fetch the decoded JSON body of the lobby server listing.

    Parameters
    ----------
    specific_route  : Use only this route (a Route or a proxy prefix);
                      its failure propagates without trying others.
    target_endpoint : Lobby URL; defaults to services.config.DEFAULT_API_URL.
    bust_cache      : Append a cache-busting query parameter.
    on_status       : Observer called with (FetchEvent, route name or None).
    fallbacks       : Proxy routes; defaults to proxy_routes().
    route_memory    : Route preference to read and update.
    client          : Shared AsyncClient; a private one is opened otherwise.

    Returns
    -------
    The decoded JSON response.

    Raises
    ------
    FetchError           when *specific_route* fails.
    AllRoutesFailedError when the direct route and every fallback fail.
    """
    target = target_endpoint or config.DEFAULT_API_URL
    if bust_cache:
        target = add_cache_buster(target)

    if client is None:
        async with httpx.AsyncClient(follow_redirects=True) as owned:
            return await _fetch_with_client(
                owned, target, specific_route, on_status, fallbacks, route_memory
            )
    return await _fetch_with_client(
        client, target, specific_route, on_status, fallbacks, route_memory
    )


# ── Private helpers ───────────────────────────────────────────────────────────


async def _fetch_with_client(
    client: httpx.AsyncClient,
    target: str,
    specific_route: Union[Route, str, None],
    on_status: Optional[StatusCallback],
    fallbacks: Optional[Sequence[Route]],
    route_memory: Optional[RouteMemory],
) -> Any:
    notify = on_status or _ignore_status

    if specific_route is not None:
        route = specific_route if isinstance(specific_route, Route) else Route(specific_route, specific_route)
        return await _fetch_via(client, route, target)

    memory = route_memory if route_memory is not None else RouteMemory()
    attempts: List[Tuple[str, Exception]] = []

    notify(FetchEvent.ATTEMPTING_PRIMARY, DIRECT_ROUTE.name)
    try:
        data = await _fetch_via(client, DIRECT_ROUTE, target)
    except FetchError as exc:
        log.warning("Direct fetch failed, trying proxies: %s", exc)
        attempts.append((DIRECT_ROUTE.name, exc))
        notify(FetchEvent.PRIMARY_FAILED, DIRECT_ROUTE.name)
    else:
        memory.remember(DIRECT_ROUTE)
        notify(FetchEvent.PRIMARY_SUCCEEDED, DIRECT_ROUTE.name)
        return data

    routes = proxy_routes() if fallbacks is None else list(fallbacks)
    for route in memory.order(routes):
        notify(FetchEvent.ATTEMPTING_FALLBACK, route.name)
        try:
            data = await _fetch_via(client, route, target)
        except FetchError as exc:
            log.warning("Proxy %s failed: %s", route.name, exc)
            attempts.append((route.name, exc))
            notify(FetchEvent.FALLBACK_FAILED, route.name)
            continue
        log.info("Fetched lobby list via proxy %s", route.name)
        memory.remember(route)
        notify(FetchEvent.FALLBACK_SUCCEEDED, route.name)
        return data

    notify(FetchEvent.ALL_FAILED, None)
    raise AllRoutesFailedError(attempts)


async def _fetch_via(client: httpx.AsyncClient, route: Route, target: str) -> Any:
    """Request *target* through *route* and decode the JSON body."""
    url = route.url_for(target)
    log.debug("Fetching %s via %s", url, route.name)
    try:
        response = await client.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"{route.name} returned HTTP {exc.response.status_code}."
        ) from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Network error via {route.name}: {exc}") from exc

    try:
        return response.json()
    except ValueError as exc:
        raise FetchError(f"{route.name} returned a body that is not JSON.") from exc


def _ignore_status(event: FetchEvent, route_name: Optional[str]) -> None:
    pass
