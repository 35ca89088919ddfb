"""
services/decoding_service.py – Scalar codecs for the lobby server's wire fields.

Two encodings show up in a lobby record:

* Text fields (session and player names) are base64 of single-byte
  Windows-1252 text with a NUL terminator, not UTF-8.
* The session identity (``g``) is a RakNet GUID packed into a custom
  64-symbol alphabet, 6 bits per character, least significant first.

None of these functions raise on malformed input: text falls back to the
original value and identities decode unknown characters as zero bits.
"""

import base64
import binascii
import logging
from typing import Optional, Union

log = logging.getLogger(__name__)

# ── Windows-1252 ─────────────────────────────────────────────────────────────

# Code points for bytes 0x80-0x9F. The five bytes cp1252 leaves undefined
# (0x81, 0x8D, 0x8F, 0x90, 0x9D) map to themselves.
CP1252_HIGH_TABLE = (
    0x20AC, 0x0081, 0x201A, 0x0192, 0x201E, 0x2026, 0x2020, 0x2021,
    0x02C6, 0x2030, 0x0160, 0x2039, 0x0152, 0x008D, 0x017D, 0x008F,
    0x0090, 0x2018, 0x2019, 0x201C, 0x201D, 0x2022, 0x2013, 0x2014,
    0x02DC, 0x2122, 0x0161, 0x203A, 0x0153, 0x009D, 0x017E, 0x0178,
)

# ── RakNet GUID alphabet ─────────────────────────────────────────────────────

RAKNET_ALPHABET: str = "@123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz-_"
_RAKNET_INDEX = {ch: i for i, ch in enumerate(RAKNET_ALPHABET)}

BITS_PER_SYMBOL: int = 6
UINT64_MASK: int = 0xFFFFFFFFFFFFFFFF
GALAXY_ID_MASK: int = 0x00FFFFFFFFFFFFFF


# ── Text ─────────────────────────────────────────────────────────────────────


def decode_legacy_text(data: Union[bytes, bytearray]) -> str:
    """
    Decode Windows-1252 bytes up to the first NUL and strip whitespace.

    Returns *data* unchanged (with a warning) if it cannot be read as bytes.
    """
    try:
        chars = []
        for byte in bytes(data):
            if byte == 0:
                break
            if 0x80 <= byte <= 0x9F:
                chars.append(chr(CP1252_HIGH_TABLE[byte - 0x80]))
            else:
                chars.append(chr(byte))
    except (TypeError, ValueError) as exc:
        log.warning("Failed to decode legacy text %r: %s", data, exc)
        return data  # type: ignore[return-value]
    return "".join(chars).strip()


def decode_base64_name(value: Optional[str]) -> str:
    """
    Decode a base64 name field (``n``) into display text.

    Empty / missing values give ``""``. Input that is not valid base64 is
    returned as-is so the caller still has something to show.
    """
    if not value:
        return ""
    try:
        text = value.strip()
        raw = base64.b64decode(text + "=" * (-len(text) % 4), validate=True)
    except (binascii.Error, ValueError, AttributeError) as exc:
        log.warning("Failed to decode base64 name %r: %s", value, exc)
        return value
    return decode_legacy_text(raw)


# ── GUID ─────────────────────────────────────────────────────────────────────


def decode_fixed_width_id(token: Optional[str]) -> Optional[int]:
    """
    Unpack a RakNet GUID token into its 64-bit integer.

    Character *i* contributes its alphabet index at bit ``6 * i``.
    Characters outside the alphabet are skipped. Returns None for an empty
    or missing token.
    """
    if not token:
        return None
    result = 0
    for i, ch in enumerate(token):
        index = _RAKNET_INDEX.get(ch)
        if index is not None:
            result |= index << (BITS_PER_SYMBOL * i)
    return result & UINT64_MASK


def encode_fixed_width_id(value: int, width: int = 11) -> str:
    """Inverse of decode_fixed_width_id() for a fixed token width."""
    if value < 0:
        raise ValueError(f"GUID must be unsigned, got {value}")
    return "".join(
        RAKNET_ALPHABET[(value >> (BITS_PER_SYMBOL * i)) & 0x3F] for i in range(width)
    )


def format_guid(value: Optional[int]) -> Optional[str]:
    """Render a decoded GUID as 16 lowercase hex digits."""
    if value is None:
        return None
    return f"{value:016x}"


# ── Platform ids ─────────────────────────────────────────────────────────────


def mask_high_bits(raw_id: str) -> str:
    """
    Clear the top 8 bits of a GOG Galaxy id and return it in decimal.

    The lobby server sends Galaxy ids with account-type bits set above
    bit 55; profile links need the bare user id. Anything that is not an
    unsigned 64-bit decimal is returned unchanged.
    """
    try:
        value = int(str(raw_id).strip(), 10)
    except (TypeError, ValueError):
        return raw_id
    if not 0 <= value <= UINT64_MASK:
        return raw_id
    return str(value & GALAXY_ID_MASK)
