"""
models/enums.py – Closed enumerations for every coded field in a lobby record.

Each interpreter in services/interpret_service.py maps a raw integer onto one
of these members, so an unrecognised code always lands on an explicit
UNKNOWN member rather than a free-form string.
"""

from enum import Enum, IntEnum


class GameType(Enum):
    """The ``gt`` field."""

    ALL = "All"
    DEATHMATCH = "Deathmatch"
    STRATEGY = "Strategy"
    UNKNOWN = "Unknown"

    @property
    def display_name(self) -> str:
        return self.value


class GameMode(Enum):
    """Resolved game mode, derived from ``gt`` + ``gtd``."""

    DEATHMATCH = "Deathmatch"
    TEAM_DEATHMATCH = "Team Deathmatch"
    KING_OF_THE_HILL = "King of the Hill"
    TEAM_KING_OF_THE_HILL = "Team King of the Hill"
    CAPTURE_THE_FLAG = "Capture the Flag"
    TEAM_CAPTURE_THE_FLAG = "Team Capture the Flag"
    LOOT = "Loot"
    TEAM_LOOT = "Team Loot"
    RACE = "Race"
    TEAM_RACE = "Team Race"
    FFA_STRATEGY = "Free for All"
    TEAM_STRATEGY = "Team Strategy"
    STRATEGY = "Strategy"
    MPI = "MPI"
    UNKNOWN = "Unknown"

    @property
    def display_name(self) -> str:
        return self.value


class Respawn(Enum):
    """Deathmatch respawn policy."""

    ONE = "One"     # single life
    RACE = "Race"   # respawn as the same race
    ANY = "Any"     # respawn as any race


class Phase(Enum):
    PRE_GAME = "pre-game"
    IN_GAME = "in-game"
    POST_GAME = "post-game"
    UNKNOWN = "unknown"


class PhaseDetail(Enum):
    WAITING = "waiting"
    FULL = "full"
    PLAYING = "playing"
    EXITING = "exiting"
    UNKNOWN = "unknown"


class ServerInfoMode(IntEnum):
    """The ``si`` field."""

    UNKNOWN = 0
    OPEN_WAITING = 1     # pre-game, open slots
    CLOSED_WAITING = 2   # pre-game, full
    OPEN_PLAYING = 3     # in-game, open slots
    CLOSED_PLAYING = 4   # in-game, full
    EXITING = 5          # post-game


class NatType(IntEnum):
    """The ``t`` field (RakNet NAT type)."""

    NONE = 0                   # works with anyone
    FULL_CONE = 1
    ADDRESS_RESTRICTED = 2
    PORT_RESTRICTED = 3
    SYMMETRIC = 4              # different port for every destination
    UNKNOWN = 5
    DETECTION_IN_PROGRESS = 6
    SUPPORTS_UPNP = 7          # equivalent to NONE

    @property
    def display_name(self) -> str:
        return _NAT_NAMES[self]


_NAT_NAMES = {
    NatType.NONE: "None",
    NatType.FULL_CONE: "Full Cone",
    NatType.ADDRESS_RESTRICTED: "Address Restricted",
    NatType.PORT_RESTRICTED: "Port Restricted",
    NatType.SYMMETRIC: "Symmetric",
    NatType.UNKNOWN: "Unknown",
    NatType.DETECTION_IN_PROGRESS: "Detecting...",
    NatType.SUPPORTS_UPNP: "UPnP",
}


class Platform(Enum):
    STEAM = "Steam"
    GOG = "GOG"


class PhysicalDataMode(Enum):
    """How a caller-supplied physical map table combines with the built-in one."""

    REPLACE = "replace"
    MERGE = "merge"


class FetchEvent(Enum):
    """Lifecycle events reported to a fetch status observer."""

    ATTEMPTING_PRIMARY = "attempting-primary"
    PRIMARY_SUCCEEDED = "primary-succeeded"
    PRIMARY_FAILED = "primary-failed"
    ATTEMPTING_FALLBACK = "attempting-fallback"
    FALLBACK_SUCCEEDED = "fallback-succeeded"
    FALLBACK_FAILED = "fallback-failed"
    ALL_FAILED = "all-failed"
