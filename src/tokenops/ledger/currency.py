"""XRPL currency code helpers.

Three-letter codes travel as-is.  Longer codes use the 160-bit form:
ASCII bytes hex-encoded and right-padded with zeros to 40 hex chars.
"""

from __future__ import annotations

import binascii
import re

_HEX_CURRENCY = re.compile(r"^[0-9A-F]{40}$")


def currency_to_hex(code: str) -> str:
    """Encode an ASCII currency code as a 40-char upper-case hex string."""
    return code.encode("ascii").hex().upper().ljust(40, "0")


def is_hex_currency(code: str) -> bool:
    return bool(_HEX_CURRENCY.match(code))


def hex_currency_to_ascii(code: str) -> str | None:
    """Decode a 40-char hex currency; ``None`` if *code* is not one."""
    if not is_hex_currency(code):
        return None
    trimmed = code.rstrip("0")
    if len(trimmed) % 2:
        trimmed += "0"
    try:
        return binascii.unhexlify(trimmed).decode("ascii")
    except (binascii.Error, UnicodeDecodeError):
        return None


def normalize_currency(code: str) -> str:
    """Return the on-ledger form of an issued currency code.

    Raises:
        ValueError: For ``XRP``, which is native and cannot be issued.
    """
    up = code.strip().upper()
    if up == "XRP":
        raise ValueError("XRP is the native asset; issuance is for IOUs")
    if len(up) == 3 or is_hex_currency(up):
        return up
    return currency_to_hex(up)


def display_currency(code: str) -> str:
    """Human-readable form of an on-ledger currency code."""
    decoded = hex_currency_to_ascii(code)
    return decoded if decoded is not None else code
