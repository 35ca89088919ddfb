"""
services/interpret_service.py – Turn single coded fields into typed facts.

Each function here looks at one (or two) raw fields of a lobby record and
returns a record from models.session. They are pure and never raise on
unexpected codes; unknown values map onto the UNKNOWN members of the enums.
"""

from typing import Any, Iterable, List, Mapping, Optional, Union

from models.enums import (
    GameMode,
    GameType,
    NatType,
    Phase,
    PhaseDetail,
    Respawn,
    ServerInfoMode,
)
from models.player import Player
from models.session import GameClassification, NatInfo, PhaseInfo, TimeLimit

# ── Configuration ────────────────────────────────────────────────────────────

# gtd is packed as: detailed * GAMEMODE_MAX + mode_base
GAMEMODE_MAX: int = 14

# mode_base values used by the strategy family.
MODE_BASE_FFA_STRATEGY: int = 11
MODE_BASE_TEAM_STRATEGY: int = 12
MODE_BASE_MPI: int = 13

# Bits of the "detailed" part of a deathmatch gtd.
RESPAWN_SAME_RACE_BIT: int = 0x100
RESPAWN_ANY_RACE_BIT: int = 0x200
DETAIL_MODE_MASK: int = 0xFF

# Sentinel for a saturated game-time counter (gtm).
TIME_SATURATED: int = 255

MOD_SEPARATOR: str = ";"

# Deathmatch detail value -> (solo mode, team mode, vehicle only)
_DEATHMATCH_MODES = {
    0: (GameMode.DEATHMATCH, GameMode.TEAM_DEATHMATCH, False),
    1: (GameMode.KING_OF_THE_HILL, GameMode.TEAM_KING_OF_THE_HILL, False),
    2: (GameMode.CAPTURE_THE_FLAG, GameMode.TEAM_CAPTURE_THE_FLAG, False),
    3: (GameMode.LOOT, GameMode.TEAM_LOOT, False),
    5: (GameMode.RACE, GameMode.TEAM_RACE, False),
    6: (GameMode.RACE, GameMode.TEAM_RACE, True),
    7: (GameMode.DEATHMATCH, GameMode.TEAM_DEATHMATCH, True),
}

# Modes in which a team leader acts as commander.
STRATEGY_MODES = frozenset({GameMode.TEAM_STRATEGY, GameMode.STRATEGY, GameMode.MPI})

PlayerLike = Union[Player, Mapping[str, Any]]


# ── Session state ────────────────────────────────────────────────────────────


def _has_in_game_stats(player: PlayerLike) -> bool:
    if isinstance(player, Player):
        return player.has_stats
    return bool(player.get("s") or player.get("k") or player.get("d"))


def interpret_phase(code: Optional[int], players: Iterable[PlayerLike] = ()) -> PhaseInfo:
    """
    Map the ``si`` field onto a phase, using the roster to correct lag.

    The lobby server is slow to leave the waiting states, so a "waiting"
    session in which anybody already has a score, kill or death is reported
    as in-game / playing.

    Parameters
    ----------
    code    : ServerInfoMode value as received.
    players : Normalized players or raw player mappings.
    """
    try:
        mode: Optional[ServerInfoMode] = ServerInfoMode(code)
    except (ValueError, TypeError):
        mode = None

    if mode in (ServerInfoMode.OPEN_WAITING, ServerInfoMode.CLOSED_WAITING):
        if any(_has_in_game_stats(p) for p in players):
            phase, detail = Phase.IN_GAME, PhaseDetail.PLAYING
        elif mode is ServerInfoMode.OPEN_WAITING:
            phase, detail = Phase.PRE_GAME, PhaseDetail.WAITING
        else:
            phase, detail = Phase.PRE_GAME, PhaseDetail.FULL
    elif mode is ServerInfoMode.OPEN_PLAYING:
        phase, detail = Phase.IN_GAME, PhaseDetail.PLAYING
    elif mode is ServerInfoMode.CLOSED_PLAYING:
        phase, detail = Phase.IN_GAME, PhaseDetail.FULL
    elif mode is ServerInfoMode.EXITING:
        phase, detail = Phase.POST_GAME, PhaseDetail.EXITING
    else:
        phase, detail = Phase.UNKNOWN, PhaseDetail.UNKNOWN

    return PhaseInfo(
        phase=phase,
        detail=detail,
        raw_code=code,
        has_open_slots=mode in (ServerInfoMode.OPEN_WAITING, ServerInfoMode.OPEN_PLAYING),
    )


# ── Network ──────────────────────────────────────────────────────────────────


def interpret_nat(code: Optional[int]) -> NatInfo:
    """Describe the ``t`` field (NAT type) of a session host."""
    try:
        nat: Optional[NatType] = NatType(code)
    except (ValueError, TypeError):
        nat = None

    return NatInfo(
        id=code,
        name=nat.display_name if nat is not None else f"Unknown ({code})",
        can_direct_connect=nat in (NatType.NONE, NatType.SUPPORTS_UPNP),
        is_symmetric=nat is NatType.SYMMETRIC,
    )


# ── Game type / mode ─────────────────────────────────────────────────────────


def interpret_game_type_and_mode(
    game_type: Optional[int], packed_sub_type: Optional[int]
) -> GameClassification:
    """
    Decode ``gt`` and the packed ``gtd`` field.

    Deathmatch packs ``detailed * 14 + mode_base``: an even mode_base in
    2..10 marks a team game, bits 8 / 9 of *detailed* select the respawn
    policy and its low byte selects the sub-mode. Strategy only uses
    mode_base (11 FFA, 12 team, 13 MPI).
    """
    if game_type == 1:
        return _interpret_deathmatch(packed_sub_type)
    if game_type == 2:
        return _interpret_strategy(packed_sub_type)
    return GameClassification(
        game_type=GameType.ALL if game_type == 0 else GameType.UNKNOWN,
        raw_game_type=game_type,
        raw_game_sub_type=packed_sub_type,
    )


def _interpret_deathmatch(packed: Optional[int]) -> GameClassification:
    if packed is None:
        return GameClassification(
            game_type=GameType.DEATHMATCH, raw_game_type=1, raw_game_sub_type=None
        )

    mode_base = packed % GAMEMODE_MAX
    detailed = packed // GAMEMODE_MAX

    if detailed & RESPAWN_SAME_RACE_BIT:
        respawn = Respawn.RACE
    elif detailed & RESPAWN_ANY_RACE_BIT:
        respawn = Respawn.ANY
    else:
        respawn = Respawn.ONE

    is_team_game = mode_base % 2 == 0 and 2 <= mode_base <= 10

    entry = _DEATHMATCH_MODES.get(detailed & DETAIL_MODE_MASK)
    if entry is None:
        mode, vehicle_only = GameMode.DEATHMATCH, False
    else:
        solo, team, vehicle_only = entry
        mode = team if is_team_game else solo

    return GameClassification(
        game_type=GameType.DEATHMATCH,
        game_mode=mode,
        is_team_game=is_team_game,
        respawn=respawn,
        vehicle_only=vehicle_only,
        raw_game_type=1,
        raw_game_sub_type=packed,
    )


def _interpret_strategy(packed: Optional[int]) -> GameClassification:
    if packed is None:
        return GameClassification(
            game_type=GameType.STRATEGY, raw_game_type=2, raw_game_sub_type=None
        )

    mode_base = packed % GAMEMODE_MAX
    if mode_base == MODE_BASE_FFA_STRATEGY:
        mode, is_team_game = GameMode.FFA_STRATEGY, False
    elif mode_base == MODE_BASE_TEAM_STRATEGY:
        mode, is_team_game = GameMode.TEAM_STRATEGY, True
    elif mode_base == MODE_BASE_MPI:
        # Co-op: one human team against the AI.
        mode, is_team_game = GameMode.MPI, True
    else:
        mode, is_team_game = GameMode.STRATEGY, False

    return GameClassification(
        game_type=GameType.STRATEGY,
        game_mode=mode,
        is_team_game=is_team_game,
        raw_game_type=2,
        raw_game_sub_type=packed,
    )


def is_strategy_mode(mode: GameMode) -> bool:
    """True for the modes whose team leaders are commanders."""
    return mode in STRATEGY_MODES


# ── Mods / time ──────────────────────────────────────────────────────────────


def interpret_mod_ids(delimited: Optional[str]) -> List[str]:
    """Split the ``mm`` field into mod ids, keeping order and duplicates."""
    if not delimited:
        return []
    return [token for token in delimited.split(MOD_SEPARATOR) if token]


def interpret_time_limit(code: Optional[int]) -> TimeLimit:
    """Describe the ``gtm`` field; 255 means the counter is saturated."""
    if code == TIME_SATURATED:
        return TimeLimit(unlimited=True, minutes=None, maxed_out=True)
    return TimeLimit(unlimited=False, minutes=code, maxed_out=False)
