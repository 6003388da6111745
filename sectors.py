"""Sector classification for the quality and leverage model variants."""

from enum import Enum


class Sector(str, Enum):
    """Closed set of sector variants. Each one selects a formula set."""
    UNIVERSAL = "Universal"
    BANK = "Bank"
    INSURANCE = "Insurance"


# Substrings matched against the lower-cased segment label, checked in
# this order. Portuguese labels come from the B3 segment taxonomy.
_BANK_MARKERS = ("banco", "bank")
_INSURANCE_MARKERS = ("seguradoras", "insurance")


def classify_segment(segment) -> Sector:
    """Map a free-text segment label to a ``Sector``.

    Anything that is not a string (None, NaN from a DataFrame) falls back
    to ``Sector.UNIVERSAL``.
    """
    if not isinstance(segment, str):
        return Sector.UNIVERSAL
    label = segment.lower()
    if any(m in label for m in _BANK_MARKERS):
        return Sector.BANK
    if any(m in label for m in _INSURANCE_MARKERS):
        return Sector.INSURANCE
    return Sector.UNIVERSAL
