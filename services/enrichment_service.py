"""
services/enrichment_service.py – Optional map enrichment for parsed sessions.

Two sources
-----------
1. Map metadata service – queried per (map file, primary mod) for the map's
   display name, description, preview image, team names and mod names.
   Any failure leaves the session without metadata; it never fails a fetch.
2. Physical map table – static per-map facts (capacity, resources) from a
   built-in JSON table and/or a caller-supplied table, combined in REPLACE or
   MERGE mode.

Sessions are immutable; every function here returns enriched copies.
Lookups are memoized in an EnrichmentCache owned by the caller.
"""

import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import httpx

from models.enums import PhysicalDataMode
from models.session import MapMetadata, MapPhysicalData, Session
from services import config
from services.exceptions import ConfigurationError, EnrichmentError

log = logging.getLogger(__name__)

MapKey = Tuple[str, str]
PhysicalTable = Mapping[str, Union[MapPhysicalData, Mapping[str, Any]]]

# Source keys for MapPhysicalData fields; anything else goes to ``extra``.
_PHYSICAL_FIELDS = {
    "maxPlayers": "max_players",
    "max_players": "max_players",
    "pools": "pools",
    "looseScrap": "loose_scrap",
    "loose_scrap": "loose_scrap",
}


class EnrichmentCache:
    """
    Memo for enrichment lookups.

    Only successful metadata lookups are stored, so a failed map is retried
    on the next fetch. Writes are idempotent overwrites; concurrent fills of
    the same key just repeat the request.
    """

    def __init__(self) -> None:
        self._maps: Dict[MapKey, MapMetadata] = {}
        self.builtin_physical: Optional[Dict[str, MapPhysicalData]] = None

    def get(self, key: MapKey) -> Optional[MapMetadata]:
        return self._maps.get(key)

    def put(self, key: MapKey, metadata: MapMetadata) -> None:
        self._maps[key] = metadata

    def clear(self) -> None:
        self._maps.clear()
        self.builtin_physical = None

    def __contains__(self, key: object) -> bool:
        return key in self._maps

    def __len__(self) -> int:
        return len(self._maps)


# ── Map metadata service ─────────────────────────────────────────────────────


async def fetch_map_metadata(
    map_file: str,
    mod_id: str,
    *,
    client: httpx.AsyncClient,
    cache: Optional[EnrichmentCache] = None,
    url_template: Optional[str] = None,
) -> Optional[MapMetadata]:
    """
    Look up display metadata for *map_file* under *mod_id*.

    Returns None (and logs a warning) on any network or parse failure.
    """
    key = (map_file, mod_id)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    try:
        metadata = await _request_map_metadata(
            client, map_file, mod_id, url_template or config.MAP_DATA_URL
        )
    except EnrichmentError as exc:
        log.warning("Map metadata unavailable for %s (mod %s): %s", map_file, mod_id, exc)
        return None

    if cache is not None:
        cache.put(key, metadata)
    return metadata


async def _request_map_metadata(
    client: httpx.AsyncClient, map_file: str, mod_id: str, url_template: str
) -> MapMetadata:
    url = url_template.format(
        map=quote(str(map_file), safe=""), mod=quote(str(mod_id), safe="")
    )
    try:
        response = await client.get(url)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        raise EnrichmentError(
            f"Map data service returned HTTP {exc.response.status_code}."
        ) from exc
    except httpx.RequestError as exc:
        raise EnrichmentError(f"Network error fetching map data: {exc}") from exc
    except httpx.InvalidURL as exc:
        raise EnrichmentError(f"Cannot build map data URL: {exc}") from exc
    except ValueError as exc:
        raise EnrichmentError("Map data service returned invalid JSON.") from exc
    return parse_map_metadata(data)


def parse_map_metadata(data: Any) -> MapMetadata:
    """
    Parse a map data response.

    Expected shape::

        {"title": str, "description": str, "image": str,
         "teamNames": [str, str], "mods": {id: name | {"name": name}}}

    ``name`` is accepted in place of ``title``.
    """
    if not isinstance(data, Mapping):
        raise EnrichmentError(f"Unexpected map data payload: {type(data).__name__}")

    team_names = data.get("teamNames")
    if isinstance(team_names, (list, tuple)) and len(team_names) == 2:
        teams: Optional[Tuple[str, str]] = (str(team_names[0]), str(team_names[1]))
    else:
        teams = None

    mod_names: Dict[str, str] = {}
    mods = data.get("mods")
    if isinstance(mods, Mapping):
        for mod_id, value in mods.items():
            name = value.get("name") if isinstance(value, Mapping) else value
            if name:
                mod_names[str(mod_id)] = str(name)

    return MapMetadata(
        name=data.get("title") or data.get("name") or None,
        description=data.get("description") or None,
        image=data.get("image") or None,
        team_names=teams,
        mod_names=mod_names,
    )


def apply_map_metadata(session: Session, metadata: MapMetadata) -> Session:
    """Copy of *session* carrying *metadata*; unnamed mods pick up names."""
    mods = tuple(
        mod if mod.name else replace(mod, name=metadata.mod_names.get(mod.id))
        for mod in session.mods
    )
    return replace(session, map=metadata, mods=mods)


async def enrich_sessions_with_maps(
    sessions: Sequence[Session],
    *,
    client: httpx.AsyncClient,
    cache: Optional[EnrichmentCache] = None,
    url_template: Optional[str] = None,
) -> List[Session]:
    """
    Attach map metadata to every session that names a map.

    Each distinct (map, primary mod) pair is requested once; the requests
    run concurrently. Order of *sessions* is preserved.
    """
    keys: List[MapKey] = []
    for session in sessions:
        if session.map_file:
            key = (session.map_file, session.primary_mod)
            if key not in keys:
                keys.append(key)

    results = await asyncio.gather(
        *(
            fetch_map_metadata(
                map_file, mod_id, client=client, cache=cache, url_template=url_template
            )
            for map_file, mod_id in keys
        )
    )
    found = dict(zip(keys, results))

    enriched: List[Session] = []
    for session in sessions:
        metadata = found.get((session.map_file, session.primary_mod)) if session.map_file else None
        enriched.append(apply_map_metadata(session, metadata) if metadata else session)
    return enriched


# ── Physical map table ───────────────────────────────────────────────────────


def physical_entry(map_file: str, entry: Union[MapPhysicalData, Mapping[str, Any]]) -> MapPhysicalData:
    """Coerce one table entry into MapPhysicalData."""
    if isinstance(entry, MapPhysicalData):
        return entry
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"Physical map data for '{map_file}' must be an object.")

    fields: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in entry.items():
        target = _PHYSICAL_FIELDS.get(key)
        if target is None:
            extra[key] = value
        else:
            fields[target] = value
    return MapPhysicalData(map_file=map_file, extra=extra, **fields)


def load_builtin_physical_data(path: Optional[str] = None) -> Dict[str, MapPhysicalData]:
    """
    Load the built-in physical map table from a JSON file.

    The path defaults to services.config.MAP_PHYSICAL_DATA_PATH; with no path
    configured the built-in table is empty.

    Raises
    ------
    ConfigurationError if the configured file cannot be read or parsed.
    """
    path = path or config.MAP_PHYSICAL_DATA_PATH
    if not path:
        return {}
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read physical map data '{path}': {exc}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"Physical map data '{path}' is not valid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Physical map data '{path}' must be a JSON object.")
    return {key: physical_entry(key, value) for key, value in data.items()}


def resolve_physical_table(
    caller_table: Optional[PhysicalTable],
    mode: Union[PhysicalDataMode, str, None],
    builtin: Optional[Mapping[str, MapPhysicalData]] = None,
) -> Dict[str, MapPhysicalData]:
    """
    Combine the built-in table with a caller-supplied one.

    REPLACE ignores the built-in table; MERGE uses it as the base and lets
    caller entries override by map file. With no caller table the built-in
    table is used as-is.

    Raises
    ------
    ConfigurationError when a caller table is given without a valid mode.
    """
    base = dict(builtin or {})
    if caller_table is None:
        return base

    if mode is None:
        raise ConfigurationError(
            "physical_map_data was supplied without physical_map_data_mode "
            "('replace' or 'merge')."
        )
    try:
        mode = PhysicalDataMode(mode)
    except ValueError as exc:
        raise ConfigurationError(f"Unknown physical map data mode: {mode!r}") from exc

    caller = {key: physical_entry(key, value) for key, value in caller_table.items()}
    if mode is PhysicalDataMode.REPLACE:
        return caller
    base.update(caller)
    return base


def apply_physical_data(
    sessions: Sequence[Session], table: Mapping[str, MapPhysicalData]
) -> List[Session]:
    """Copies of *sessions* with ``map_physical`` set where the table has the map."""
    enriched: List[Session] = []
    for session in sessions:
        entry = _lookup_physical(table, session.map_file)
        enriched.append(replace(session, map_physical=entry) if entry else session)
    return enriched


def _lookup_physical(
    table: Mapping[str, MapPhysicalData], map_file: Optional[str]
) -> Optional[MapPhysicalData]:
    if not map_file:
        return None
    return table.get(map_file) or table.get(map_file.lower())
