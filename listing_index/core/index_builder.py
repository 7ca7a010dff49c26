"""Single-pass construction of the lookup structures served by the cache."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from listing_index.core.normalize import slugify
from listing_index.models import Listing

logger = logging.getLogger(__name__)

FEATURED_COUNT = 8
POPULAR_COUNT = 15

ListingGroup = Tuple[Listing, ...]


@dataclass(frozen=True)
class Snapshot:
    """Immutable bundle of the full listing set and every derived index.

    Map keys are lowercase: ``by_city``/``by_county`` use ``"<name>-<state>"``,
    ``by_state`` the state as stored, ``by_tag`` the tag id as a string.
    """

    listings: ListingGroup = ()
    by_city: Mapping[str, ListingGroup] = field(default_factory=lambda: MappingProxyType({}))
    by_state: Mapping[str, ListingGroup] = field(default_factory=lambda: MappingProxyType({}))
    by_county: Mapping[str, ListingGroup] = field(default_factory=lambda: MappingProxyType({}))
    by_tag: Mapping[str, ListingGroup] = field(default_factory=lambda: MappingProxyType({}))
    by_slug: Mapping[str, Listing] = field(default_factory=lambda: MappingProxyType({}))
    by_id: Mapping[int, Listing] = field(default_factory=lambda: MappingProxyType({}))
    cities: Tuple[str, ...] = ()
    states: Tuple[str, ...] = ()
    counties: Tuple[str, ...] = ()
    tags: Tuple[int, ...] = ()
    featured: ListingGroup = ()
    popular: ListingGroup = ()
    total_count: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def index_key(value: str) -> str:
    """Lowercase with whitespace runs collapsed, so "New  York" and "new york" share a key."""
    return " ".join(value.lower().split())


def location_key(name: str, state: str) -> str:
    return f"{index_key(name)}-{index_key(state)}"


def listing_slug(listing: Listing) -> str:
    """Stored slug when present, otherwise one derived from the name."""
    stored = (listing.slug or "").strip()
    return stored or slugify(listing.name)


def _freeze(groups: Dict[str, List[Listing]]) -> Mapping[str, ListingGroup]:
    return MappingProxyType({key: tuple(items) for key, items in groups.items()})


def _index_listing(
    listing: Listing,
    by_city: Dict[str, List[Listing]],
    by_state: Dict[str, List[Listing]],
    by_county: Dict[str, List[Listing]],
    by_tag: Dict[str, List[Listing]],
    cities: Set[str],
    states: Set[str],
    counties: Set[str],
    tags: Set[int],
) -> None:
    city = (listing.city or "").strip()
    state = (listing.state or "").strip()
    county = (listing.county or "").strip()

    if city and state:
        by_city.setdefault(location_key(city, state), []).append(listing)
        cities.add(city)

    if state:
        by_state.setdefault(index_key(state), []).append(listing)
        states.add(state)

    if county and state:
        by_county.setdefault(location_key(county, state), []).append(listing)
        counties.add(county)

    for tag_id in listing.tag_ids or ():
        tag = int(tag_id)
        by_tag.setdefault(str(tag), []).append(listing)
        tags.add(tag)


def _as_number(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _popular(listings: Sequence[Listing], limit: int) -> ListingGroup:
    rated = [listing for listing in listings if _as_number(getattr(listing, "rating", None)) > 0]
    # sorted() is stable, so equal (rating, reviews) keep fetch order.
    ranked = sorted(rated, key=lambda item: (-_as_number(item.rating), -_as_number(item.review_count)))
    return tuple(ranked[:limit])


def build_snapshot(
    listings: Iterable[Listing],
    featured_count: int = FEATURED_COUNT,
    popular_count: int = POPULAR_COUNT,
    rng: Optional[random.Random] = None,
) -> Snapshot:
    """Build every lookup structure in one pass over ``listings``.

    A record that cannot be indexed (bad types from a hand-built fixture, for
    example) keeps its place in ``listings`` and is left out of the affected
    maps. On slug collisions the later listing wins.
    """
    all_listings = tuple(listings)

    by_city: Dict[str, List[Listing]] = {}
    by_state: Dict[str, List[Listing]] = {}
    by_county: Dict[str, List[Listing]] = {}
    by_tag: Dict[str, List[Listing]] = {}
    by_slug: Dict[str, Listing] = {}
    by_id: Dict[int, Listing] = {}
    cities: Set[str] = set()
    states: Set[str] = set()
    counties: Set[str] = set()
    tags: Set[int] = set()
    collisions = 0

    for listing in all_listings:
        listing_id = getattr(listing, "id", None)
        if listing_id is not None:
            by_id[listing_id] = listing

        try:
            slug = listing_slug(listing).lower()
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug("No slug entry for malformed listing %r: %s", listing_id, exc)
            slug = ""
        if slug:
            if slug in by_slug:
                collisions += 1
                logger.debug("Duplicate slug %r: listing %s replaces %s", slug, listing_id, by_slug[slug].id)
            by_slug[slug] = listing

        try:
            _index_listing(listing, by_city, by_state, by_county, by_tag, cities, states, counties, tags)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug("Partial index entries for malformed listing %r: %s", listing_id, exc)

    if collisions:
        logger.info("Found %d duplicate slugs; the last listing with each slug is used", collisions)

    rng = rng or random.Random()
    sample_size = min(featured_count, len(all_listings))
    featured = tuple(rng.sample(all_listings, sample_size)) if sample_size > 0 else ()

    snapshot = Snapshot(
        listings=all_listings,
        by_city=_freeze(by_city),
        by_state=_freeze(by_state),
        by_county=_freeze(by_county),
        by_tag=_freeze(by_tag),
        by_slug=MappingProxyType(by_slug),
        by_id=MappingProxyType(by_id),
        cities=tuple(sorted(cities)),
        states=tuple(sorted(states)),
        counties=tuple(sorted(counties)),
        tags=tuple(sorted(tags)),
        featured=featured,
        popular=_popular(all_listings, popular_count),
        total_count=len(all_listings),
    )
    logger.info(
        "Built listing index: listings=%d cities=%d states=%d counties=%d tags=%d",
        snapshot.total_count,
        len(snapshot.cities),
        len(snapshot.states),
        len(snapshot.counties),
        len(snapshot.tags),
    )
    return snapshot
