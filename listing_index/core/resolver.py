"""Resolve public identifiers (slugs, legacy ids, location paths) to listings.

Single-segment identifiers are tried, in order, as:

1. a numeric legacy id,
2. an exact key in the slug map,
3. a slug re-derived from each listing name (list order, first match),
4. a substring match between the identifier and listing names.

Identifiers with three or four ``/``-separated segments are read as
``state/city/name`` or ``state/county/city/name`` paths and matched
field by field. Every miss returns None.
"""

import logging
from typing import Iterable, List, Optional, Set

from listing_index.core.index_builder import Snapshot, listing_slug
from listing_index.core.normalize import (
    clean_text,
    normalize_admin_name,
    slugify,
    state_full_name,
    state_variants,
)
from listing_index.models import Listing

logger = logging.getLogger(__name__)


def parse_legacy_id(identifier: str) -> Optional[int]:
    text = identifier.strip()
    if not text.isdigit() or not text.isascii():
        return None
    return int(text)


def find_by_derived_slug(listings: Iterable[Listing], slug: str) -> Optional[Listing]:
    """First listing whose name slugifies to ``slug`` (case-insensitive)."""
    target = slug.strip().lower()
    if not target:
        return None
    for listing in listings:
        if slugify(listing.name) == target:
            return listing
    return None


def find_by_name_fragment(listings: Iterable[Listing], identifier: str) -> Optional[Listing]:
    """First listing whose name contains the identifier, or is contained by it."""
    needle = " ".join(identifier.replace("-", " ").lower().split())
    if not needle:
        return None
    for listing in listings:
        name = " ".join((listing.name or "").lower().split())
        if name and (needle in name or name in needle):
            return listing
    return None


class SlugResolver:
    """Identifier resolution against one immutable snapshot."""

    def __init__(self, snapshot: Snapshot) -> None:
        self.snapshot = snapshot

    def resolve(self, identifier: Optional[str]) -> Optional[Listing]:
        if not identifier or not isinstance(identifier, str):
            return None

        segments = [segment for segment in identifier.strip().split("/") if segment.strip()]
        if len(segments) == 1:
            return self._resolve_single(segments[0].strip())
        if len(segments) == 3:
            state, city, name = segments
            return self.resolve_path(state=state, city=city, name=name)
        if len(segments) == 4:
            state, county, city, name = segments
            return self.resolve_path(state=state, county=county, city=city, name=name)

        logger.debug("Unsupported identifier shape: %r", identifier)
        return None

    def _resolve_single(self, identifier: str) -> Optional[Listing]:
        snapshot = self.snapshot

        legacy_id = parse_legacy_id(identifier)
        if legacy_id is not None:
            listing = snapshot.by_id.get(legacy_id)
            if listing is not None:
                return listing

        listing = snapshot.by_slug.get(identifier.lower())
        if listing is not None:
            return listing

        listing = find_by_derived_slug(snapshot.listings, identifier)
        if listing is not None:
            logger.debug("Resolved %r through a name-derived slug", identifier)
            return listing

        listing = find_by_name_fragment(snapshot.listings, identifier)
        if listing is not None:
            logger.debug("Resolved %r through a name substring match to %s", identifier, listing.id)
        return listing

    def state_slugs(self, state: str) -> Set[str]:
        """Slugs of every state spelling the segment may refer to.

        Two-letter codes expand through the abbreviation table and full names
        also match their code. Anything else is kept literally and compared
        against the state stored on each listing.
        """
        variants = {slugify(variant) for variant in state_variants(state.replace("-", " "))}
        variants.discard("")
        return variants

    def resolve_path(
        self,
        state: str,
        city: str,
        name: str,
        county: Optional[str] = None,
    ) -> Optional[Listing]:
        """First listing matching every supplied location segment and the name.

        Name and city segments are compared by slug. An exact match anywhere
        in the set wins over a containment match; within each pass the first
        listing in list order is returned.
        """
        name_slug = slugify(name)
        city_slug = slugify(city)
        state_slugs = self.state_slugs(state or "")
        county_name = normalize_admin_name(county) if clean_text(county) else ""
        if not name_slug or not city_slug or not state_slugs:
            return None

        for exact in (True, False):
            for listing in self.snapshot.listings:
                if not _slug_matches(name_slug, _name_slugs(listing), exact):
                    continue
                if not _slug_matches(city_slug, [slugify(listing.city)], exact):
                    continue
                if not self._state_matches(listing, state_slugs):
                    continue
                if county_name and not _county_matches(listing.county, county_name):
                    continue
                return listing
        return None

    @staticmethod
    def _state_matches(listing: Listing, state_slugs: Set[str]) -> bool:
        stored = listing.state or ""
        candidates: List[str] = [slugify(stored)]
        full = state_full_name(stored)
        if full:
            candidates.append(slugify(full))
        return any(candidate in state_slugs for candidate in candidates if candidate)


def _name_slugs(listing: Listing) -> List[str]:
    # Stored slug first so canonical URLs resolve by path as well.
    slugs = [slugify(listing.name)]
    try:
        stored = listing_slug(listing).lower()
    except (AttributeError, TypeError):
        stored = ""
    if stored and stored not in slugs:
        slugs.insert(0, stored)
    return slugs


def _slug_matches(wanted: str, candidates: List[str], exact: bool) -> bool:
    for candidate in candidates:
        if not candidate:
            continue
        if candidate == wanted:
            return True
        if not exact and (wanted in candidate or candidate in wanted):
            return True
    return False


def _county_matches(stored: Optional[str], wanted: str) -> bool:
    # Listings without a county pass; naming varies ("Fulton" vs "Fulton County").
    stored_name = normalize_admin_name(stored)
    if not stored_name:
        return True
    return wanted in stored_name or stored_name in wanted
