"""Slug and location-name normalization shared by the index and resolver.

Slugs double as public URL segments, so every function here is deterministic:
ASCII-only character classes, no locale-aware casing, no randomness.
"""

import re
from typing import Any, Dict, List, Optional

_NON_SLUG_CHARS = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE = re.compile(r"\s+", re.ASCII)
_HYPHEN_RUNS = re.compile(r"-{2,}")
_COUNTY_SUFFIX = re.compile(r"\s+county$")

STATE_ABBREV_TO_FULL: Dict[str, str] = {
    "AL": "Alabama",
    "AK": "Alaska",
    "AZ": "Arizona",
    "AR": "Arkansas",
    "CA": "California",
    "CO": "Colorado",
    "CT": "Connecticut",
    "DE": "Delaware",
    "DC": "District of Columbia",
    "FL": "Florida",
    "GA": "Georgia",
    "HI": "Hawaii",
    "ID": "Idaho",
    "IL": "Illinois",
    "IN": "Indiana",
    "IA": "Iowa",
    "KS": "Kansas",
    "KY": "Kentucky",
    "LA": "Louisiana",
    "ME": "Maine",
    "MD": "Maryland",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "MN": "Minnesota",
    "MS": "Mississippi",
    "MO": "Missouri",
    "MT": "Montana",
    "NE": "Nebraska",
    "NV": "Nevada",
    "NH": "New Hampshire",
    "NJ": "New Jersey",
    "NM": "New Mexico",
    "NY": "New York",
    "NC": "North Carolina",
    "ND": "North Dakota",
    "OH": "Ohio",
    "OK": "Oklahoma",
    "OR": "Oregon",
    "PA": "Pennsylvania",
    "RI": "Rhode Island",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TN": "Tennessee",
    "TX": "Texas",
    "UT": "Utah",
    "VT": "Vermont",
    "VA": "Virginia",
    "WA": "Washington",
    "WV": "West Virginia",
    "WI": "Wisconsin",
    "WY": "Wyoming",
}

_FULL_TO_ABBREV: Dict[str, str] = {full.lower(): abbrev for abbrev, full in STATE_ABBREV_TO_FULL.items()}


def slugify(name: Any) -> str:
    """Turn a display name into a URL-safe slug, e.g. "The Book Nook!" -> "the-book-nook".

    Returns "" for empty or non-string input; callers must treat that as
    "no slug available" rather than as a lookup key.
    """
    if not name or not isinstance(name, str):
        return ""
    slug = name.lower()
    slug = _NON_SLUG_CHARS.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHEN_RUNS.sub("-", slug)
    return slug.strip("-")


def normalize_admin_name(text: Any) -> str:
    """Normalize a county-like name for comparisons ("Fulton County" -> "fulton")."""
    if not text or not isinstance(text, str):
        return ""
    value = _WHITESPACE.sub(" ", text.replace("-", " ")).strip().lower()
    return _COUNTY_SUFFIX.sub("", value)


def clean_text(value: Any) -> Optional[str]:
    """Trimmed string or None for blank values."""
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def state_full_name(value: Any) -> Optional[str]:
    """Full state name for an abbreviation or full name, None when unknown."""
    text = clean_text(value)
    if text is None:
        return None
    text = text.replace("-", " ")
    if len(text) == 2:
        return STATE_ABBREV_TO_FULL.get(text.upper())
    abbrev = _FULL_TO_ABBREV.get(_WHITESPACE.sub(" ", text).lower())
    return STATE_ABBREV_TO_FULL[abbrev] if abbrev else None


def state_abbreviation(value: Any) -> Optional[str]:
    """Two-letter abbreviation for a state spelled either way, None when unknown."""
    full = state_full_name(value)
    if full is None:
        return None
    return _FULL_TO_ABBREV[full.lower()]


def state_variants(value: Any) -> List[str]:
    """Lowercase spellings a state may be stored under, full name first.

    The order is canonical so "GA" and "Georgia" produce the same list.
    Unknown values return just the lowercased literal.
    """
    text = clean_text(value)
    if text is None:
        return []
    full = state_full_name(text)
    if full is None:
        return [_WHITESPACE.sub(" ", text).lower()]
    return [full.lower(), _FULL_TO_ABBREV[full.lower()].lower()]
