"""
services/assembly_service.py – Turn the raw lobby response into ordered sessions.
"""

import logging
from typing import Any, Iterable, List, Mapping, Sequence, Union

from models.results import CachedPlayer, DataCache
from models.session import ModEntry, Session
from services import config
from services.parse_service import parse_session

log = logging.getLogger(__name__)

RawCollection = Union[Mapping[str, Any], Sequence[Mapping[str, Any]], None]


def raw_session_list(raw_collection: RawCollection) -> List[Mapping[str, Any]]:
    """Accept either the server response object or a bare list of records."""
    if raw_collection is None:
        return []
    if isinstance(raw_collection, Mapping):
        return list(raw_collection.get(config.RESPONSE_KEY) or [])
    if isinstance(raw_collection, (list, tuple)):
        return list(raw_collection)
    log.warning("Unexpected lobby payload type %s; treating as empty", type(raw_collection).__name__)
    return []


def assemble_sessions(raw_collection: RawCollection) -> List[Session]:
    """
    Normalize every raw record and sort by session id.

    The server returns sessions in no particular order; sorting keeps the
    list stable across refreshes. Sessions without an id sort first; ties
    fall back to guid, then name.
    """
    sessions = [parse_session(raw) for raw in raw_session_list(raw_collection)]
    sessions.sort(key=lambda s: (s.id or "", s.guid or "", s.name))
    log.info("Assembled %d session(s)", len(sessions))
    return sessions


def assemble_data_cache(sessions: Iterable[Session]) -> DataCache:
    """
    Index unique players (by platform id) and mods (by mod id).

    The first occurrence of a key wins; later duplicates are ignored.
    Players without a Steam or GOG id are not indexed.
    """
    cache = DataCache()
    for session in sessions:
        for player in session.players:
            player_id = player.platform_id
            if player_id and player_id not in cache.players:
                cache.players[player_id] = CachedPlayer(
                    id=player_id,
                    steam_id=player.steam_id,
                    gog_id=player.gog_id,
                    platform=player.platform,
                    profile_url=player.profile_url,
                )

        for mod in session.mods:
            if mod.id not in cache.mods:
                cache.mods[mod.id] = ModEntry(
                    id=mod.id, name=mod.name, workshop_url=mod.workshop_url
                )
    return cache
