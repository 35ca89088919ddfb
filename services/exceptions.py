"""
services/exceptions.py – Structured custom exception hierarchy for bz2lobby.

All service-level errors derive from LobbyError so callers can catch broadly
or specifically depending on context.
"""

from typing import List, Tuple


class LobbyError(Exception):
    """Base class for all bz2lobby exceptions."""


class FetchError(LobbyError):
    """Raised when a single route cannot deliver the session list."""


class AllRoutesFailedError(FetchError):
    """
    Raised when the direct route and every proxy route have failed.

    Attributes
    ----------
    attempts : (route name, error) for each route, in the order tried.
    """

    def __init__(self, attempts: List[Tuple[str, Exception]]) -> None:
        self.attempts = attempts
        tried = ", ".join(name for name, _ in attempts) or "none"
        super().__init__(
            f"All fetch attempts failed (tried: {tried}). "
            "The lobby server may be down or every proxy is blocked."
        )


class ConfigurationError(LobbyError):
    """Raised on inconsistent caller options, before any network activity."""


class EnrichmentError(LobbyError):
    """Raised when map metadata cannot be fetched or parsed."""
