"""
Phone classification for client lookups.

Operators type whatever the caller gives them: a five-digit internal client
code, a seven-digit fixed line, or a mobile number with or without the
national ``0`` / country calling code.  ``classify_phone`` turns that into a
``PhoneFormat`` so a single resolution strategy can pick the lookup.

===========  =======  ==========================================
Format       Length   Lookup
===========  =======  ==========================================
SHORT_ID     5        ``id_cliente`` integer field
FIXED_LINE   7        document id in the fixed-line collection
MOBILE       >= 8     ``telefono`` field, then id, then last 9
===========  =======  ==========================================
"""

from __future__ import annotations

from dataclasses import dataclass

from .enums import PhoneFormat

LEGACY_ID_DIGITS = 9


def clean_phone(raw: str) -> str:
    return "".join(raw.split()).removeprefix("+")


def classify_phone(raw: str) -> PhoneFormat:
    digits = clean_phone(raw or "")
    if not digits.isdigit():
        return PhoneFormat.INVALID
    if len(digits) == 5:
        return PhoneFormat.SHORT_ID
    if len(digits) == 7:
        return PhoneFormat.FIXED_LINE
    if len(digits) >= 8:
        return PhoneFormat.MOBILE
    return PhoneFormat.INVALID


def normalize_mobile(digits: str, country_code: str) -> str:
    """Replace a national leading ``0`` with the country calling code."""
    if digits.startswith("0"):
        return country_code + digits[1:]
    return digits


@dataclass(frozen=True)
class MobileCandidates:
    """``normalized`` serves the ``telefono`` and id lookups, ``legacy_id`` the last."""

    normalized: str
    legacy_id: str


def mobile_candidates(digits: str, country_code: str) -> MobileCandidates:
    normalized = normalize_mobile(digits, country_code)
    return MobileCandidates(
        normalized=normalized,
        legacy_id=normalized[-LEGACY_ID_DIGITS:],
    )
