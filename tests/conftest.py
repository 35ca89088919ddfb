import base64
from typing import Any, Dict

import pytest


def _encode_name(text: str) -> str:
    return base64.b64encode(text.encode("cp1252")).decode("ascii")


@pytest.fixture
def encode_name():
    """base64 of cp1252 text, as the lobby server sends names."""
    return _encode_name


@pytest.fixture
def make_raw_session():
    def _make(**overrides: Any) -> Dict[str, Any]:
        raw: Dict[str, Any] = {
            "g": "AB",
            "n": _encode_name("Test"),
            "v": "2.0.190",
            "m": "isdf01",
            "gt": 1,
            "gtd": 0,
            "gtm": 12,
            "pm": 8,
            "mm": "0",
            "d": "hash",
            "t": 0,
            "l": 0,
            "k": 0,
            "si": 1,
            "tps": 20,
            "pg": 80,
            "pgm": 750,
            "pl": [],
        }
        raw.update(overrides)
        return raw

    return _make
