"""Read-only listing accessors layered on the snapshot cache.

Every collection accessor returns a list (possibly empty), never None. Each
call fetches the current snapshot first, which fills or refreshes the cache
when needed.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests

from listing_index.core.cache import SnapshotCache
from listing_index.core.config import Settings, get_settings
from listing_index.core.index_builder import Snapshot, build_snapshot, index_key, location_key
from listing_index.core.normalize import clean_text, normalize_admin_name, slugify, state_variants
from listing_index.core.resolver import SlugResolver, find_by_derived_slug
from listing_index.etl.fetch import fetch_all_listings, fetch_listing_by_id, fetch_listing_by_slug
from listing_index.models import Listing
from listing_index.vendors.supabase_rest import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

RELATED_LIMIT = 6
MIN_SAME_CITY_RELATED = 3


def _unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


def _dedupe(listings: Iterable[Listing]) -> List[Listing]:
    seen = set()
    result = []
    for listing in listings:
        if listing.id in seen:
            continue
        seen.add(listing.id)
        result.append(listing)
    return result


def _city_variants(city: str) -> List[str]:
    text = city.strip().lower()
    return _unique([text, " ".join(text.replace("-", " ").split())])


def _county_variants(county: str) -> List[str]:
    normalized = normalize_admin_name(county)
    return _unique([normalized, f"{normalized} county" if normalized else "", county.strip().lower()])


def _parse_tag_filter(tags: Any) -> List[int]:
    if tags is None or tags == "":
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    elif not isinstance(tags, (list, tuple, set)):
        tags = [tags]
    parsed = []
    for tag in tags:
        try:
            parsed.append(int(str(tag).strip()))
        except ValueError:
            logger.debug("Ignoring unrecognized tag filter value %r", tag)
    return parsed


class ListingQueries:
    """Typed reads over the cached listing snapshot."""

    def __init__(self, cache: SnapshotCache, client: Optional[SupabaseClient] = None) -> None:
        self.cache = cache
        self.client = client

    def snapshot(self) -> Snapshot:
        return self.cache.get_snapshot()

    def refresh(self) -> Snapshot:
        """Drop the current snapshot and rebuild it now."""
        self.cache.invalidate()
        return self.cache.get_snapshot()

    # ---------- Location & tag lookups ----------

    def all(self) -> List[Listing]:
        return list(self.snapshot().listings)

    def by_state(self, state: str) -> List[Listing]:
        if not clean_text(state):
            return []
        snapshot = self.snapshot()
        groups = (snapshot.by_state.get(variant, ()) for variant in state_variants(state))
        return _dedupe(listing for group in groups for listing in group)

    def by_city(self, city: str, state: str) -> List[Listing]:
        if not clean_text(city) or not clean_text(state):
            return []
        snapshot = self.snapshot()
        found: List[Listing] = []
        for state_key in state_variants(state):
            for city_key in _city_variants(city):
                found.extend(snapshot.by_city.get(location_key(city_key, state_key), ()))
        return _dedupe(found)

    def by_county(self, county: str, state: str) -> List[Listing]:
        if not clean_text(county) or not clean_text(state):
            return []
        snapshot = self.snapshot()
        found: List[Listing] = []
        for state_key in state_variants(state):
            for county_key in _county_variants(county):
                found.extend(snapshot.by_county.get(location_key(county_key, state_key), ()))
        return _dedupe(found)

    def by_tag(self, tag_id: Any) -> List[Listing]:
        if tag_id is None:
            return []
        return list(self.snapshot().by_tag.get(str(tag_id).strip(), ()))

    def count_by_state(self, state: str) -> int:
        return len(self.by_state(state))

    # ---------- Single listing lookups ----------

    def by_id(self, listing_id: int) -> Optional[Listing]:
        return self.snapshot().by_id.get(listing_id)

    def by_slug(self, slug: str) -> Optional[Listing]:
        if not clean_text(slug):
            return None
        snapshot = self.snapshot()
        listing = snapshot.by_slug.get(slug.strip().lower())
        if listing is not None:
            return listing
        return find_by_derived_slug(snapshot.listings, slug)

    def resolve(self, identifier: str) -> Optional[Listing]:
        """Slug, legacy id or state[/county]/city/name path to a listing."""
        return SlugResolver(self.snapshot()).resolve(identifier)

    def detail(self, identifier: str) -> Optional[Listing]:
        """Resolve, then load the full detail row (photos, reviews, hours) from the datastore."""
        listing = self.resolve(identifier)
        if self.client is None:
            return listing
        try:
            if listing is not None:
                return fetch_listing_by_id(self.client, listing.id) or listing
            if "/" not in identifier:
                return fetch_listing_by_slug(self.client, identifier.strip())
        except (SupabaseError, requests.RequestException) as exc:
            logger.warning("Detail fetch failed for %r: %s", identifier, exc)
        return listing

    # ---------- Collections ----------

    def related(self, listing: Listing, limit: int = RELATED_LIMIT) -> List[Listing]:
        """Same city if it has enough neighbours, else same state, else featured."""
        if limit <= 0:
            return []
        snapshot = self.snapshot()
        city = clean_text(listing.city)
        state = clean_text(listing.state)

        if city and state:
            same_city = [item for item in snapshot.by_city.get(location_key(city, state), ()) if item.id != listing.id]
            if len(same_city) >= MIN_SAME_CITY_RELATED:
                return same_city[:limit]

        if state:
            same_state = [item for item in snapshot.by_state.get(index_key(state), ()) if item.id != listing.id]
            if same_state:
                return same_state[:limit]

        return [item for item in snapshot.featured if item.id != listing.id][:limit]

    def filtered(
        self,
        state: Optional[str] = None,
        city: Optional[str] = None,
        county: Optional[str] = None,
        tags: Any = None,
    ) -> List[Listing]:
        """Narrow the listing set by state, then city/county (both need a state), then any-of tags."""
        state = clean_text(state)
        city = clean_text(city)
        county = clean_text(county)

        results: Sequence[Listing] = self.by_state(state) if state else self.all()

        if city and state:
            city_slug = slugify(city)
            results = [item for item in results if slugify(item.city) == city_slug]

        if county and state:
            county_name = normalize_admin_name(county)
            results = [item for item in results if normalize_admin_name(item.county) == county_name]

        tag_ids = _parse_tag_filter(tags)
        if tag_ids:
            wanted = set(tag_ids)
            results = [item for item in results if wanted.intersection(item.tag_ids or ())]

        return list(results)

    def featured(self, count: Optional[int] = None) -> List[Listing]:
        featured = self.snapshot().featured
        return list(featured if count is None else featured[: max(count, 0)])

    def popular(self, limit: Optional[int] = None) -> List[Listing]:
        popular = self.snapshot().popular
        return list(popular if limit is None else popular[: max(limit, 0)])

    # ---------- Key lists & stats ----------

    def states(self) -> List[str]:
        return list(self.snapshot().states)

    def tags(self) -> List[int]:
        return list(self.snapshot().tags)

    def total_count(self) -> int:
        return self.snapshot().total_count

    def cities_with_state(self) -> List[Dict[str, Any]]:
        return _grouped_counts(self.snapshot().by_city.values(), "city")

    def counties_with_state(self) -> List[Dict[str, Any]]:
        return _grouped_counts(self.snapshot().by_county.values(), "county")


def _grouped_counts(groups: Iterable[Sequence[Listing]], field_name: str) -> List[Dict[str, Any]]:
    rows = []
    for group in groups:
        if not group:
            continue
        first = group[0]
        # Display casing comes from the first listing in the group.
        rows.append({field_name: getattr(first, field_name), "state": first.state, "count": len(group)})
    return sorted(rows, key=lambda row: (row[field_name].lower(), row["state"].lower()))


def create_queries(settings: Optional[Settings] = None) -> ListingQueries:
    """Wire the datastore client, fetcher, index builder and cache together."""
    settings = settings or get_settings()
    client = SupabaseClient.from_settings(settings)

    def load() -> Snapshot:
        logger.info("Fetching and indexing all listings from %s", client.table)
        listings = fetch_all_listings(client, page_size=settings.page_size, max_pages=settings.max_pages)
        return build_snapshot(
            listings,
            featured_count=settings.featured_count,
            popular_count=settings.popular_count,
        )

    cache = SnapshotCache(load, ttl_seconds=settings.cache_ttl_seconds)
    return ListingQueries(cache, client=client)
