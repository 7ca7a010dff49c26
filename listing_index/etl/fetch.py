"""Paged retrieval of the live listing set."""

import logging
from typing import List, Optional

import requests

from listing_index.etl.transform import to_listing
from listing_index.models import Listing
from listing_index.vendors.supabase_rest import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGES = 100


def fetch_all_listings(
    client: SupabaseClient,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: int = DEFAULT_MAX_PAGES,
) -> List[Listing]:
    """Fetch every live listing, ordered by name, one range-bounded page at a time.

    Stops at the first short or empty page. A failing page ends the loop and
    the rows gathered so far are returned; nothing is retried here.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    listings: List[Listing] = []
    skipped = 0
    offset = 0
    processed_pages = 0

    while processed_pages < max_pages:
        try:
            rows = client.fetch_page(offset=offset, limit=page_size)
        except (SupabaseError, requests.RequestException) as exc:
            logger.warning(
                "Listing fetch failed on page %d (offset=%d): %s; keeping %d listings fetched so far",
                processed_pages + 1,
                offset,
                exc,
                len(listings),
            )
            break

        processed_pages += 1
        logger.debug("Fetched %d rows on page %d", len(rows), processed_pages)

        for row in rows:
            listing = to_listing(row)
            if listing is None:
                skipped += 1
                continue
            listings.append(listing)

        if len(rows) < page_size:
            break
        offset += page_size
    else:
        logger.warning("Stopped listing fetch after max_pages=%d; the result may be incomplete", max_pages)

    logger.info(
        "Completed listing fetch: pages_processed=%d listings=%d skipped=%d",
        processed_pages,
        len(listings),
        skipped,
    )
    return listings


def fetch_listing_by_id(client: SupabaseClient, listing_id: int) -> Optional[Listing]:
    """Fetch the full detail row for one live listing."""
    row = client.fetch_row_by_id(listing_id)
    return to_listing(row) if row else None


def fetch_listing_by_slug(client: SupabaseClient, slug: str) -> Optional[Listing]:
    """Fetch the full detail row by stored slug (exact, then case-insensitive)."""
    row = client.fetch_row_by_slug(slug)
    return to_listing(row) if row else None
