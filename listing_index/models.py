"""Core data models shared by the listing ingestion and index layers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True, slots=True)
class Listing:
    """Normalized snapshot of a live storefront row from the datastore."""

    id: int
    name: str
    slug: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    county: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    tag_ids: Tuple[int, ...] = ()
    website: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    place_id: Optional[str] = None
    image_url: Optional[str] = None
    photos: Optional[Any] = None
    reviews: Optional[Any] = None
    hours: Optional[Any] = None
    description: Optional[str] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)


def listing_to_dict(listing: Listing) -> Dict[str, Any]:
    """Convert a Listing into the JSON shape returned to API consumers."""
    entry = asdict(listing)
    entry.pop("raw", None)
    entry["tag_ids"] = list(listing.tag_ids)
    return entry
