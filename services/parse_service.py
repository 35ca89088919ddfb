"""
services/parse_service.py – Normalize raw lobby records into Session / Player.

Raw field keys
--------------
Session : g (GUID token), n (name), v (version), m (map file), mu (map URL),
          gt / gtd (game type / packed sub-type), gtm (game time), pm (max
          players), mm (mod ids), d (mod hash), t (NAT type), l (locked),
          k (password), h (MOTD), si (server info mode), tps, pg (worst
          ping), pgm (max ping), ti (time limit), ki (kill limit), pl (players)
Player  : i (platform id), n (name), t (team slot), k / d / s (stats)

Raw records are never mutated; every call builds fresh objects.
"""

from typing import Any, List, Mapping, Optional, Sequence, Tuple

from models.enums import GameMode, Platform
from models.player import Player
from models.session import ModEntry, Session
from services.decoding_service import (
    decode_base64_name,
    decode_fixed_width_id,
    format_guid,
    mask_high_bits,
)
from services.interpret_service import (
    interpret_game_type_and_mode,
    interpret_mod_ids,
    interpret_nat,
    interpret_phase,
    interpret_time_limit,
    is_strategy_mode,
)
from services.link_service import (
    STOCK_MOD_ID,
    build_gog_profile_url,
    build_steam_join_url,
    build_steam_profile_url,
    build_workshop_url,
)

# ── Configuration ────────────────────────────────────────────────────────────

NO_SLOT: int = 255
TEAM_SIZE: int = 5
TEAM1_LEADER_SLOT: int = 1
TEAM2_LEADER_SLOT: int = 6
MAX_TEAM_SLOT: int = 10

STEAM_PREFIX: str = "S"
GOG_PREFIX: str = "G"

STOCK_MOD_NAME: str = "Stock"


# ── Players ──────────────────────────────────────────────────────────────────


def parse_player(
    raw: Mapping[str, Any],
    index: int = 0,
    is_team_game: bool = False,
    is_mpi: bool = False,
    game_mode: Optional[GameMode] = None,
) -> Player:
    """
    Build a Player from one ``pl`` entry.

    Parameters
    ----------
    raw          : Raw player mapping.
    index        : Position in the roster; 0 is the host.
    is_team_game : Session uses a two-team layout.
    is_mpi       : Session is co-op MPI (every human on team 1).
    game_mode    : Session mode, used for commander detection.
    """
    raw_id: Optional[str] = raw.get("i")
    steam_id = gog_id = gog_raw_id = profile_url = None
    platform: Optional[Platform] = None

    if raw_id:
        prefix, value = raw_id[0], raw_id[1:]
        if prefix == STEAM_PREFIX:
            steam_id = value
            platform = Platform.STEAM
            profile_url = build_steam_profile_url(steam_id)
        elif prefix == GOG_PREFIX:
            gog_raw_id = value
            gog_id = mask_high_bits(value)
            platform = Platform.GOG
            profile_url = build_gog_profile_url(gog_id)

    slot: Optional[int] = raw.get("t")
    is_hidden = slot is None or slot == NO_SLOT

    team, team_index, is_leader = _resolve_team(slot, is_hidden, is_team_game, is_mpi)

    return Player(
        name=decode_base64_name(raw.get("n")),
        raw_id=raw_id,
        steam_id=steam_id,
        gog_id=gog_id,
        gog_raw_id=gog_raw_id,
        platform=platform,
        profile_url=profile_url,
        kills=raw.get("k"),
        deaths=raw.get("d"),
        score=raw.get("s"),
        team_slot=slot,
        team=team,
        team_index=team_index,
        is_team_leader=is_leader,
        is_commander=is_leader and game_mode is not None and is_strategy_mode(game_mode),
        is_host=index == 0,
        is_hidden=is_hidden,
    )


def _resolve_team(
    slot: Optional[int], is_hidden: bool, is_team_game: bool, is_mpi: bool
) -> Tuple[Optional[int], Optional[int], bool]:
    """Return (team, team_index, is_team_leader) for a slot number."""
    if is_hidden:
        return None, None, False

    if is_mpi:
        return 1, slot - 1, slot == TEAM1_LEADER_SLOT

    if is_team_game:
        if TEAM1_LEADER_SLOT <= slot < TEAM2_LEADER_SLOT:
            return 1, slot - TEAM1_LEADER_SLOT, slot == TEAM1_LEADER_SLOT
        if TEAM2_LEADER_SLOT <= slot <= MAX_TEAM_SLOT:
            return 2, slot - TEAM2_LEADER_SLOT, slot == TEAM2_LEADER_SLOT

    return None, None, False


# ── Mods ─────────────────────────────────────────────────────────────────────


def enrich_mods(mod_ids: Sequence[str]) -> Tuple[ModEntry, ...]:
    """Wrap mod ids with workshop links; only stock gets a name up front."""
    return tuple(
        ModEntry(
            id=mod_id,
            name=STOCK_MOD_NAME if mod_id == STOCK_MOD_ID else None,
            workshop_url=build_workshop_url(mod_id),
        )
        for mod_id in mod_ids
    )


def is_stock_mod_list(mod_ids: Sequence[str]) -> bool:
    return len(mod_ids) == 0 or (len(mod_ids) == 1 and mod_ids[0] == STOCK_MOD_ID)


# ── Sessions ─────────────────────────────────────────────────────────────────


def parse_session(raw: Mapping[str, Any]) -> Session:
    """
    Build a Session from one raw lobby record.

    The game classification is resolved first because player team and
    commander resolution depend on it; the phase is resolved after the
    roster so that player stats can correct a stale "waiting" state.
    """
    classification = interpret_game_type_and_mode(raw.get("gt"), raw.get("gtd"))
    is_mpi = classification.game_mode is GameMode.MPI

    players: List[Player] = [
        parse_player(p, i, classification.is_team_game, is_mpi, classification.game_mode)
        for i, p in enumerate(raw.get("pl") or [])
    ]

    state = interpret_phase(raw.get("si"), players)
    time_limit = interpret_time_limit(raw.get("gtm"))
    mod_ids = interpret_mod_ids(raw.get("mm"))

    return Session(
        id=raw.get("g"),
        guid=format_guid(decode_fixed_width_id(raw.get("g"))),
        name=decode_base64_name(raw.get("n")),
        version=raw.get("v"),
        classification=classification,
        map_file=raw.get("m"),
        map_url=raw.get("mu") or None,
        players=tuple(players),
        max_players=raw.get("pm"),
        commanders=tuple(p.name for p in players if p.is_commander),
        hidden_players=tuple(p.name for p in players if p.is_hidden),
        mods=enrich_mods(mod_ids),
        primary_mod=mod_ids[0] if mod_ids else STOCK_MOD_ID,
        mod_hash=raw.get("d"),
        is_stock=is_stock_mod_list(mod_ids),
        state=state,
        is_locked=raw.get("l") == 1,
        has_password=raw.get("k") == 1,
        motd=raw.get("h") or None,
        nat=interpret_nat(raw.get("t")),
        steam_join_url=build_steam_join_url(raw),
        tps=raw.get("tps"),
        max_ping=raw.get("pgm"),
        worst_ping_observed=raw.get("pg"),
        game_time_minutes=raw.get("gtm"),
        time_limit=time_limit,
        time_elapsed_minutes=None if time_limit.maxed_out else raw.get("gtm"),
        time_limit_minutes=raw.get("ti") or None,
        kill_limit=raw.get("ki") or None,
        raw=dict(raw),
    )
