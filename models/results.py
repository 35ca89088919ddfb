"""
models/results.py – Aggregates returned by the top-level fetch pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.enums import Platform
from models.session import ModEntry, Session


@dataclass(frozen=True)
class CachedPlayer:
    """Display-relevant subset of a Player, keyed by platform id."""

    id: str
    steam_id: Optional[str] = None
    gog_id: Optional[str] = None
    platform: Optional[Platform] = None
    profile_url: Optional[str] = None


@dataclass
class DataCache:
    """
    De-duplicated players and mods across every session of one fetch.

    Rebuilt from scratch on every fetch; the first occurrence of a key wins.
    """

    players: Dict[str, CachedPlayer] = field(default_factory=dict)
    mods: Dict[str, ModEntry] = field(default_factory=dict)


@dataclass(frozen=True)
class EnrichmentFlags:
    maps: bool = False
    physical_map_data: bool = False


@dataclass
class FetchResult:
    """
    Result of services.lobby_service.fetch_and_assemble().

    Attributes
    ----------
    sessions     : Normalized sessions, ordered by id.
    timestamp    : ISO-8601 UTC time the result was assembled.
    raw_response : Decoded JSON body as returned by the server.
    data_cache   : Player / mod indexes.
    enrichment   : Which optional enrichment passes ran.
    """

    sessions: List[Session]
    timestamp: str
    raw_response: Any
    data_cache: DataCache
    enrichment: EnrichmentFlags = field(default_factory=EnrichmentFlags)

    @property
    def player_index(self) -> Dict[str, CachedPlayer]:
        return self.data_cache.players

    @property
    def mod_index(self) -> Dict[str, ModEntry]:
        return self.data_cache.mods
