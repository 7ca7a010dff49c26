"""CLI job to fetch all live listings, build the index and report on it."""

import argparse
import json
import logging
from dataclasses import replace
from typing import Optional, Sequence

from listing_index.core.config import get_settings
from listing_index.core.queries import ListingQueries, create_queries
from listing_index.models import listing_to_dict

logger = logging.getLogger(__name__)


def run_build_index(
    queries: ListingQueries,
    *,
    resolve: Optional[str] = None,
    state: Optional[str] = None,
    city: Optional[str] = None,
    county: Optional[str] = None,
    tags: Optional[Sequence[int]] = None,
) -> int:
    """Build the snapshot, log its summary and optionally resolve or filter. Returns an exit code."""
    snapshot = queries.snapshot()
    logger.info(
        "Index summary: listings=%d cities=%d states=%d counties=%d tags=%d popular=%d",
        snapshot.total_count,
        len(snapshot.cities),
        len(snapshot.states),
        len(snapshot.counties),
        len(snapshot.tags),
        len(snapshot.popular),
    )

    if resolve:
        listing = queries.resolve(resolve)
        if listing is None:
            logger.warning("No listing found for identifier=%s", resolve)
            return 1
        print(json.dumps(listing_to_dict(listing), indent=2, ensure_ascii=False))
        return 0

    if state or city or county or tags:
        results = queries.filtered(state=state, city=city, county=county, tags=list(tags or []))
        logger.info("Filter matched %d listings", len(results))
        for listing in results:
            print(f"{listing.id}\t{listing.name}\t{listing.city or ''}, {listing.state or ''}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build the listing index and inspect it")
    parser.add_argument("--resolve", dest="resolve", help="Slug, legacy id or state/[county/]city/name path")
    parser.add_argument("--state", dest="state", help="State filter (abbreviation or full name)")
    parser.add_argument("--city", dest="city", help="City filter (requires --state)")
    parser.add_argument("--county", dest="county", help="County filter (requires --state)")
    parser.add_argument("--tag", dest="tags", type=int, action="append", help="Tag id filter, repeatable")
    parser.add_argument(
        "--page-size",
        dest="page_size",
        type=int,
        default=get_settings().page_size,
        help="Rows requested per page from the datastore",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    if args.page_size <= 0:
        parser.error("--page-size must be positive")

    settings = get_settings()
    if args.page_size != settings.page_size:
        settings = replace(settings, page_size=args.page_size)

    raise SystemExit(
        run_build_index(
            create_queries(settings),
            resolve=args.resolve,
            state=args.state,
            city=args.city,
            county=args.county,
            tags=args.tags,
        )
    )


if __name__ == "__main__":
    main()
