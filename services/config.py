"""
services/config.py – Process-level configuration, overridable via environment.

Values are read once at import time; per-call overrides travel in
services.lobby_service.FetchOptions instead.
"""

import os
from typing import List, Optional

# ── Configuration ────────────────────────────────────────────────────────────

# Rebellion lobby server listing every active Battlezone 2 session.
DEFAULT_API_URL: str = os.environ.get(
    "BZ2LOBBY_API_URL",
    "http://battlezone99mp.webdev.rebellion.co.uk/lobbyServer",
)

# Proxy prefixes tried in order when the direct request fails. The target URL
# is percent-encoded and appended to the prefix.
_DEFAULT_PROXIES = (
    "https://corsproxy.io/?",
    "https://api.codetabs.com/v1/proxy?quest=",
    "https://api.allorigins.win/raw?url=",
)


def _proxy_list(value: Optional[str]) -> List[str]:
    if not value:
        return list(_DEFAULT_PROXIES)
    return [p.strip() for p in value.split(",") if p.strip()]


CORS_PROXIES: List[str] = _proxy_list(os.environ.get("BZ2LOBBY_PROXIES"))

# Map metadata endpoint; {map} and {mod} are substituted per request.
MAP_DATA_URL: str = os.environ.get(
    "BZ2LOBBY_MAP_DATA_URL",
    "https://gamelistassets.iondriver.com/bzcc/getdata.php?map={map}&mod={mod}",
)

# Optional JSON file holding the built-in physical map table.
MAP_PHYSICAL_DATA_PATH: Optional[str] = os.environ.get("BZ2LOBBY_MAP_PHYSICAL_DATA") or None

# Key of the session array in the lobby server response.
RESPONSE_KEY: str = "GET"
