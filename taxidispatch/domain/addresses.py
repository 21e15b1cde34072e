"""
Address history merge.

A client's saved addresses must stay unique on two keys at once: the
normalised address text and the (non-empty) coordinate string.  A new
address either matches an existing entry on one of those keys, in which case
the other key is refreshed in place, or it is appended.  When the text
belongs to one entry and the coordinates to another, the history is left
as it is.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from .entities import AddressEntry
from .enums import AddressMode


def normalize_address(text: str) -> str:
    return (text or "").strip().lower()


def _find_by_text(
    entries: list[AddressEntry], address_key: str
) -> Optional[AddressEntry]:
    for entry in entries:
        if normalize_address(entry.address) == address_key:
            return entry
    return None


def _find_by_coordinates(
    entries: list[AddressEntry], coordinates: str
) -> Optional[AddressEntry]:
    if not coordinates:
        return None
    for entry in entries:
        if entry.coordinates.strip() == coordinates:
            return entry
    return None


def merge_address(
    entries: list[AddressEntry],
    address: str,
    coordinates: str,
    mode: AddressMode,
    now: datetime,
) -> tuple[list[AddressEntry], bool]:
    """Return the merged list and whether anything changed.

    The input list is not mutated.
    """
    address = (address or "").strip()
    coordinates = (coordinates or "").strip()
    if not address:
        return list(entries), False

    merged = [AddressEntry(**vars(e)) for e in entries]
    stamp = now.isoformat()
    by_text = _find_by_text(merged, normalize_address(address))
    by_coords = _find_by_coordinates(merged, coordinates)

    if by_text is None and by_coords is None:
        merged.append(
            AddressEntry(
                address=address,
                coordinates=coordinates,
                registered_at=stamp,
                active=True,
                mode=mode,
            )
        )
        return merged, True

    if by_text is not None and by_coords is not None:
        # same entry: nothing new; two entries: either update would collide
        return merged, False

    if by_text is not None:
        if not coordinates:
            # never wipe known coordinates with an empty pick
            return merged, False
        by_text.coordinates = coordinates
        by_text.updated_at = stamp
        return merged, True

    by_coords.address = address
    by_coords.updated_at = stamp
    return merged, True


def active_address(entries: list[AddressEntry]) -> Optional[AddressEntry]:
    """First entry flagged active, else the first entry."""
    for entry in entries:
        if entry.active:
            return entry
    return entries[0] if entries else None
