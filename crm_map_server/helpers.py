"""Utility functions for normalizing place names and contact fields."""

import hashlib
import re

from .constants import MIN_GEOCODE_QUERY_LENGTH, REGION_NAMES, US_STATE_CODES

# A letter followed by letters, spaces or . , ' -
_PLACE_LIKE = re.compile(r"^[^\W\d_](?:[^\W\d_]|[ .,'\-])*$")


def normalize_key(text: str) -> str:
    """Cache/lookup key for a place name: case-folded, whitespace collapsed."""
    return " ".join(text.casefold().split())


def clean_text(value: str | None) -> str | None:
    """Strip a raw field value, mapping blanks to None."""
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def parse_coordinate(value: str | float | None) -> float | None:
    """Parse a latitude/longitude field. Blank or malformed values give None."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def get_contact_id(first_name: str, last_name: str) -> str:
    """Generate a stable ID for a contact from its normalized name."""
    normalized = normalize_key(f"{first_name} {last_name}")
    return hashlib.md5(normalized.encode()).hexdigest()[:12]


def is_region_name(name: str) -> bool:
    """Exact, case-insensitive match against state names and abbreviations."""
    return name.strip().lower() in REGION_NAMES


def format_location_name(location: str) -> str:
    """Display form of a place: state codes expand, other names are title-cased."""
    stripped = location.strip()
    if len(stripped) == 2 and stripped.upper() in US_STATE_CODES:
        return US_STATE_CODES[stripped.upper()]
    return " ".join(word[:1].upper() + word[1:].lower() for word in stripped.split(" "))


def looks_like_place(text: str) -> bool:
    """Heuristic: letters with ordinary place-name punctuation, long enough to geocode."""
    stripped = text.strip()
    if len(stripped) < MIN_GEOCODE_QUERY_LENGTH:
        return False
    return bool(_PLACE_LIKE.match(stripped))
