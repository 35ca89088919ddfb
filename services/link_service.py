"""
services/link_service.py – Profile, workshop and direct-join URL builders.

The direct-join URL launches the game through the Steam browser protocol
with a ``-connect-mp`` argument whose payload is the hex of an ASCII
argument string. It must match what the game itself produces byte for byte.
"""

from typing import Any, Mapping, Optional, Sequence

from services.decoding_service import decode_base64_name
from services.interpret_service import MOD_SEPARATOR, interpret_mod_ids

# ── Configuration ────────────────────────────────────────────────────────────

# 624970 = Battlezone Combat Commander app id.
STEAM_APP_ID: str = "624970"
STEAM_JOIN_BASE: str = f"steam://rungame/{STEAM_APP_ID}/76561198955218468/-connect-mp%20"

STEAM_PROFILE_URL: str = "https://steamcommunity.com/profiles/{id}/"
GOG_PROFILE_URL: str = "https://www.gog.com/u/{id}"
WORKSHOP_URL: str = "https://steamcommunity.com/sharedfiles/filedetails/?id={id}"

STOCK_MOD_ID: str = "0"


# ── Profiles / workshop ──────────────────────────────────────────────────────


def build_steam_profile_url(steam_id: Optional[str]) -> Optional[str]:
    if not steam_id:
        return None
    return STEAM_PROFILE_URL.format(id=steam_id)


def build_gog_profile_url(gog_id: Optional[str]) -> Optional[str]:
    if not gog_id:
        return None
    return GOG_PROFILE_URL.format(id=gog_id)


def build_workshop_url(mod_id: Optional[str]) -> Optional[str]:
    """Workshop page for *mod_id*; None for the stock game or an empty id."""
    if not mod_id or mod_id == STOCK_MOD_ID:
        return None
    return WORKSHOP_URL.format(id=mod_id)


# ── Direct join ──────────────────────────────────────────────────────────────


def string_to_hex(text: str) -> str:
    """Hex-encode each character as (at least) two lowercase digits."""
    return "".join(f"{ord(ch):02x}" for ch in text)


def build_join_args(name: str, mod_ids: Sequence[str], nat_address: str) -> str:
    """
    Build the ``-connect-mp`` argument string.

    Format: ``N,<len>,<name>,<len>,<mods>,<nat>,0,`` where each length is
    the decimal length of the field that follows it.
    """
    mod_list = MOD_SEPARATOR.join(mod_ids)
    return ",".join(
        ["N", str(len(name)), name, str(len(mod_list)), mod_list, nat_address, "0"]
    ) + ","


def build_steam_join_url(raw: Mapping[str, Any]) -> Optional[str]:
    """
    Direct-join URL for a raw session record.

    Returns None when the session is locked (``l``), password protected
    (``k``), or lists no mod id (``mm``).
    """
    if raw.get("l") == 1 or raw.get("k") == 1:
        return None

    mod_ids = interpret_mod_ids(raw.get("mm"))
    if not mod_ids:
        return None

    args = build_join_args(
        decode_base64_name(raw.get("n")),
        mod_ids,
        raw.get("g") or "",
    )
    return STEAM_JOIN_BASE + string_to_hex(args)
