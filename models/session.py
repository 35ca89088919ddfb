"""
models/session.py – Immutable data model for a normalized lobby session.

A Session is built once by services/parse_service.parse_session() and never
mutated afterwards; enrichment produces copies via dataclasses.replace().
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from models.enums import (
    GameMode,
    GameType,
    Phase,
    PhaseDetail,
    Respawn,
)
from models.player import Player


@dataclass(frozen=True)
class GameClassification:
    """
    Decoded ``gt`` / ``gtd`` pair.

    Attributes
    ----------
    game_type         : Game family.
    game_mode         : Resolved mode; UNKNOWN when no sub-type was sent.
    is_team_game      : Two-team (or co-op) roster layout.
    respawn           : Respawn policy (deathmatch family only).
    vehicle_only      : Deathmatch / race restricted to vehicles.
    raw_game_type     : ``gt`` as received.
    raw_game_sub_type : ``gtd`` as received.
    """

    game_type: GameType = GameType.UNKNOWN
    game_mode: GameMode = GameMode.UNKNOWN
    is_team_game: bool = False
    respawn: Respawn = Respawn.ONE
    vehicle_only: bool = False
    raw_game_type: Optional[int] = None
    raw_game_sub_type: Optional[int] = None

    @property
    def game_type_name(self) -> str:
        return self.game_type.display_name

    @property
    def game_mode_name(self) -> str:
        return self.game_mode.display_name


@dataclass(frozen=True)
class PhaseInfo:
    phase: Phase
    detail: PhaseDetail
    raw_code: Optional[int]
    has_open_slots: bool


@dataclass(frozen=True)
class NatInfo:
    id: Optional[int]
    name: str
    can_direct_connect: bool
    is_symmetric: bool


@dataclass(frozen=True)
class TimeLimit:
    unlimited: bool
    minutes: Optional[int]
    maxed_out: bool


@dataclass(frozen=True)
class ModEntry:
    """
    One workshop mod referenced by a session.

    Attributes
    ----------
    id           : Workshop item id; ``"0"`` is the stock game.
    name         : Display name when known.
    workshop_url : Storefront link; None for stock.
    """

    id: str
    name: Optional[str] = None
    workshop_url: Optional[str] = None


@dataclass(frozen=True)
class MapMetadata:
    """Display metadata returned by the map-data service."""

    name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    team_names: Optional[Tuple[str, str]] = None
    mod_names: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class MapPhysicalData:
    """Static per-map facts (capacity and resource counts)."""

    map_file: str
    max_players: Optional[int] = None
    pools: Optional[int] = None
    loose_scrap: Optional[int] = None
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Session:
    """
    One multiplayer game session as listed by the lobby server.

    Invariants
    ----------
    * ``commanders`` and ``hidden_players`` only name players in ``players``.
    * ``primary_mod`` is always set (``"0"`` when no mod is listed).
    * ``guid`` is 16 lowercase hex characters, or None when ``id`` is None.
    """

    # ── Identity ────────────────────────────────────────────────────────────
    id: Optional[str]
    guid: Optional[str]
    name: str
    version: Optional[str] = None

    # ── Game ────────────────────────────────────────────────────────────────
    classification: GameClassification = field(default_factory=GameClassification)

    # ── Map ─────────────────────────────────────────────────────────────────
    map_file: Optional[str] = None
    map_url: Optional[str] = None
    map: Optional[MapMetadata] = None
    map_physical: Optional[MapPhysicalData] = None

    # ── Roster ──────────────────────────────────────────────────────────────
    players: Tuple[Player, ...] = ()
    max_players: Optional[int] = None
    commanders: Tuple[str, ...] = ()
    hidden_players: Tuple[str, ...] = ()

    # ── Mods ────────────────────────────────────────────────────────────────
    mods: Tuple[ModEntry, ...] = ()
    primary_mod: str = "0"
    mod_hash: Optional[str] = None
    is_stock: bool = True

    # ── State ───────────────────────────────────────────────────────────────
    state: PhaseInfo = field(
        default_factory=lambda: PhaseInfo(Phase.UNKNOWN, PhaseDetail.UNKNOWN, None, False)
    )
    is_locked: bool = False
    has_password: bool = False
    motd: Optional[str] = None

    # ── Network ─────────────────────────────────────────────────────────────
    nat: Optional[NatInfo] = None
    steam_join_url: Optional[str] = None
    tps: Optional[int] = None
    max_ping: Optional[int] = None
    worst_ping_observed: Optional[int] = None

    # ── Time ────────────────────────────────────────────────────────────────
    game_time_minutes: Optional[int] = None
    time_limit: TimeLimit = field(default_factory=lambda: TimeLimit(False, None, False))
    time_elapsed_minutes: Optional[int] = None
    time_limit_minutes: Optional[int] = None
    kill_limit: Optional[int] = None

    # Untouched source record, for debugging.
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # ── Convenience views ───────────────────────────────────────────────────

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def game_type(self) -> GameType:
        return self.classification.game_type

    @property
    def game_mode(self) -> GameMode:
        return self.classification.game_mode

    @property
    def is_team_game(self) -> bool:
        return self.classification.is_team_game

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def phase_detail(self) -> PhaseDetail:
        return self.state.detail

    @property
    def has_open_slots(self) -> bool:
        return self.state.has_open_slots

    @property
    def time_elapsed_display(self) -> str:
        """Elapsed minutes as text; the saturated counter renders as ``>255``."""
        if self.time_limit.maxed_out:
            return ">255"
        if self.time_elapsed_minutes is None:
            return ""
        return str(self.time_elapsed_minutes)

    def __str__(self) -> str:
        return (
            f"{self.name or '<unnamed>'}  "
            f"[{self.game_mode.display_name}]  "
            f"{self.player_count}/{self.max_players if self.max_players is not None else '?'}"
        )
