"""
models/player.py – Immutable data model for one player in a lobby session.
"""

from dataclasses import dataclass
from typing import Optional

from models.enums import Platform


@dataclass(frozen=True)
class Player:
    """
    One roster entry, owned by its Session.

    Attributes
    ----------
    name           : Decoded display name.
    raw_id         : Identity string as received (platform prefix + id).
    steam_id       : Steam 64-bit id (``S`` prefix), else None.
    gog_id         : Masked GOG Galaxy id (``G`` prefix), else None.
    gog_raw_id     : Galaxy id before masking, kept for diagnostics.
    platform       : Platform of the id, None for unknown prefixes.
    profile_url    : Storefront profile link, None when platform is unknown.
    kills / deaths / score
                   : Stats as reported; None when the field is absent.
    team_slot      : Raw slot number (1-10, or 255 for "no slot").
    team           : 1 or 2 once resolved, else None.
    team_index     : Position inside the team (0-based), else None.
    is_team_leader : Slot 1 (team 1) or slot 6 (team 2).
    is_commander   : Team leader in a strategy-oriented mode.
    is_host        : Roster position 0.
    is_hidden      : Slot absent or 255 (spectator / glitched entry).
    """

    name: str
    raw_id: Optional[str] = None
    steam_id: Optional[str] = None
    gog_id: Optional[str] = None
    gog_raw_id: Optional[str] = None
    platform: Optional[Platform] = None
    profile_url: Optional[str] = None

    kills: Optional[int] = None
    deaths: Optional[int] = None
    score: Optional[int] = None

    team_slot: Optional[int] = None
    team: Optional[int] = None
    team_index: Optional[int] = None
    is_team_leader: bool = False
    is_commander: bool = False

    is_host: bool = False
    is_hidden: bool = False

    @property
    def platform_id(self) -> Optional[str]:
        """The populated platform id (Steam or GOG), if any."""
        return self.steam_id or self.gog_id

    @property
    def has_stats(self) -> bool:
        """True once any of kills / deaths / score is non-zero."""
        return bool(self.kills or self.deaths or self.score)

    def __str__(self) -> str:
        parts = [self.name or "<unnamed>"]
        if self.team is not None:
            parts.append(f"[T{self.team}]")
        if self.is_commander:
            parts.append("(cmd)")
        return " ".join(parts)
