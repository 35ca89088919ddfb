"""
services/lobby_service.py – Top-level fetch → normalize → enrich pipeline.

Pipeline
--------
  1. Validate options (synchronously, before any request is made).
  2. Fetch the raw listing (direct route, then proxies).
  3. Normalize and sort sessions.
  4. Optionally attach map metadata (concurrent lookups).
  5. Optionally attach physical map data.
  6. Index unique players and mods.

Either the whole pipeline succeeds or the call raises; enrichment failures
only leave fields empty.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Union

import httpx

from models.enums import PhysicalDataMode
from models.results import EnrichmentFlags, FetchResult
from models.session import MapPhysicalData
from services.assembly_service import assemble_data_cache, assemble_sessions
from services.enrichment_service import (
    EnrichmentCache,
    PhysicalTable,
    apply_physical_data,
    enrich_sessions_with_maps,
    load_builtin_physical_data,
    resolve_physical_table,
)
from services.exceptions import ConfigurationError
from services.fetch_service import Route, RouteMemory, StatusCallback, fetch_raw_records

log = logging.getLogger(__name__)


@dataclass
class FetchOptions:
    """
    Per-call options for fetch_and_assemble().

    Attributes
    ----------
    specific_route           : Only use this route (Route or proxy prefix).
    target_endpoint          : Lobby URL override.
    bust_cache               : Append a cache-busting query parameter.
    on_status                : Fetch lifecycle observer.
    enrich_maps              : Query the map metadata service.
    enrich_physical_map_data : Attach physical map data.
    physical_map_data        : Caller table keyed by map file.
    physical_map_data_mode   : 'replace' or 'merge'; required with a table.
    """

    specific_route: Union[Route, str, None] = None
    target_endpoint: Optional[str] = None
    bust_cache: bool = True
    on_status: Optional[StatusCallback] = None
    enrich_maps: bool = False
    enrich_physical_map_data: bool = False
    physical_map_data: Optional[PhysicalTable] = None
    physical_map_data_mode: Union[PhysicalDataMode, str, None] = None


def validate_options(options: FetchOptions) -> None:
    """
    Reject inconsistent options.

    Raises
    ------
    ConfigurationError when a physical map table is supplied without a
    valid merge mode.
    """
    if options.physical_map_data is None:
        return
    if options.physical_map_data_mode is None:
        raise ConfigurationError(
            "physical_map_data requires physical_map_data_mode ('replace' or 'merge')."
        )
    try:
        PhysicalDataMode(options.physical_map_data_mode)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown physical map data mode: {options.physical_map_data_mode!r}"
        ) from exc


# ── Public API ───────────────────────────────────────────────────────────────


async def fetch_and_assemble(
    options: Optional[FetchOptions] = None,
    *,
    route_memory: Optional[RouteMemory] = None,
    cache: Optional[EnrichmentCache] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchResult:
    """
    Fetch the lobby listing and return normalized, indexed sessions.

    Parameters
    ----------
    options      : FetchOptions; defaults apply when omitted.
    route_memory : Route preference carried between calls.
    cache        : Enrichment memo carried between calls.
    client       : Shared AsyncClient; a private one is opened otherwise.

    Raises
    ------
    ConfigurationError   on inconsistent options (no request is made).
    FetchError           when a requested specific route fails.
    AllRoutesFailedError when every route fails.
    """
    options = options or FetchOptions()
    validate_options(options)
    cache = cache if cache is not None else EnrichmentCache()

    physical_table: Optional[Dict[str, MapPhysicalData]] = None
    if options.enrich_physical_map_data:
        if cache.builtin_physical is None:
            cache.builtin_physical = load_builtin_physical_data()
        physical_table = resolve_physical_table(
            options.physical_map_data, options.physical_map_data_mode, cache.builtin_physical
        )

    if client is None:
        async with httpx.AsyncClient(follow_redirects=True) as owned:
            return await _run_pipeline(options, route_memory, cache, owned, physical_table)
    return await _run_pipeline(options, route_memory, cache, client, physical_table)


class LobbyClient:
    """
    Long-lived entry point that keeps route preference and enrichment memo
    across refreshes.

    Instantiate once per consumer (e.g. per tenant), then await
    fetch_and_assemble() as often as needed.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self.route_memory = RouteMemory()
        self.cache = EnrichmentCache()
        self._client = client

    async def fetch_and_assemble(self, options: Optional[FetchOptions] = None) -> FetchResult:
        return await fetch_and_assemble(
            options,
            route_memory=self.route_memory,
            cache=self.cache,
            client=self._client,
        )

    def reset(self) -> None:
        """Forget the preferred route and all memoized lookups."""
        self.route_memory.reset()
        self.cache.clear()


# ── Pipeline ──────────────────────────────────────────────────────────────────


async def _run_pipeline(
    options: FetchOptions,
    route_memory: Optional[RouteMemory],
    cache: EnrichmentCache,
    client: httpx.AsyncClient,
    physical_table: Optional[Dict[str, MapPhysicalData]],
) -> FetchResult:
    raw = await fetch_raw_records(
        specific_route=options.specific_route,
        target_endpoint=options.target_endpoint,
        bust_cache=options.bust_cache,
        on_status=options.on_status,
        route_memory=route_memory,
        client=client,
    )

    sessions = assemble_sessions(raw)

    if options.enrich_maps:
        sessions = await enrich_sessions_with_maps(sessions, client=client, cache=cache)

    if physical_table is not None:
        sessions = apply_physical_data(sessions, physical_table)

    return FetchResult(
        sessions=sessions,
        timestamp=datetime.now(timezone.utc).isoformat(),
        raw_response=raw,
        data_cache=assemble_data_cache(sessions),
        enrichment=EnrichmentFlags(
            maps=options.enrich_maps,
            physical_map_data=physical_table is not None,
        ),
    )
