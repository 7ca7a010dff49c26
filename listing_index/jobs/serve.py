"""HTTP entrypoint exposing the listing accessors as JSON (Cloud Run friendly)."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from listing_index.core.config import get_settings
from listing_index.core.queries import RELATED_LIMIT, ListingQueries, create_queries
from listing_index.models import listing_to_dict

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & queries ----------
app = Flask(__name__)
_queries: Optional[ListingQueries] = None
_queries_lock = threading.Lock()


def get_queries() -> ListingQueries:
    """Return the shared accessor service, creating it on first use."""
    global _queries
    if _queries is None:
        with _queries_lock:
            if _queries is None:
                _queries = create_queries()
                logger.info("Listing queries initialised")
    return _queries


def _parse_limit(name: str, default: Optional[int]) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    value = int(raw)
    if value <= 0:
        raise ValueError(f"{name} must be positive")
    return value


def _listings_response(listings) -> Any:
    return jsonify({"data": [listing_to_dict(item) for item in listings], "count": len(listings)})


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """
    Lightweight health endpoint.
    Reports cache state without creating the datastore client or forcing a fetch.
    """
    cache = _queries.cache if _queries is not None else None
    snapshot = cache.peek() if cache is not None else None
    return (
        jsonify(
            {
                "status": "ok",
                "cached_listings": snapshot.total_count if snapshot is not None else None,
                "cache_age_seconds": cache.age() if cache is not None else None,
                "cache_stale": cache.is_stale() if cache is not None else True,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/listings")
def list_listings() -> Any:
    """
    Filtered listing set.
    Optional query params: state, city, county (city/county need state), tags (comma-separated ids).
    """
    listings = get_queries().filtered(
        state=request.args.get("state"),
        city=request.args.get("city"),
        county=request.args.get("county"),
        tags=request.args.get("tags"),
    )
    return _listings_response(listings), 200


@app.get("/listings/<path:identifier>")
def get_listing(identifier: str) -> Any:
    """Resolve a slug, legacy id or state[/county]/city/name path."""
    try:
        related_limit = _parse_limit("related", RELATED_LIMIT)
    except ValueError:
        return jsonify({"error": "related must be a positive integer"}), 400

    queries = get_queries()
    full = request.args.get("full", "").lower() in {"1", "true", "yes"}
    listing = queries.detail(identifier) if full else queries.resolve(identifier)
    if listing is None:
        return jsonify({"error": "listing not found"}), 404

    payload: Dict[str, Any] = listing_to_dict(listing)
    payload["related"] = [listing_to_dict(item) for item in queries.related(listing, related_limit)]
    return jsonify({"data": payload}), 200


@app.get("/states")
def list_states() -> Any:
    return jsonify({"data": get_queries().states()}), 200


@app.get("/cities")
def list_cities() -> Any:
    return jsonify({"data": get_queries().cities_with_state()}), 200


@app.get("/counties")
def list_counties() -> Any:
    return jsonify({"data": get_queries().counties_with_state()}), 200


@app.get("/tags/<tag_id>")
def list_by_tag(tag_id: str) -> Any:
    return _listings_response(get_queries().by_tag(tag_id)), 200


@app.get("/featured")
def list_featured() -> Any:
    try:
        count = _parse_limit("count", None)
    except ValueError:
        return jsonify({"error": "count must be a positive integer"}), 400
    return _listings_response(get_queries().featured(count)), 200


@app.get("/popular")
def list_popular() -> Any:
    try:
        limit = _parse_limit("limit", None)
    except ValueError:
        return jsonify({"error": "limit must be a positive integer"}), 400
    return _listings_response(get_queries().popular(limit)), 200


@app.post("/refresh")
def refresh() -> Any:
    """Rebuild the listing snapshot now. Requires REFRESH_TOKEN as a bearer token when configured."""
    token = get_settings().refresh_token
    if token and request.headers.get("Authorization", "") != f"Bearer {token}":
        return jsonify({"error": "unauthorized"}), 401

    snapshot = get_queries().refresh()
    logger.info("Manual refresh rebuilt %d listings", snapshot.total_count)
    return jsonify({"data": {"total_count": snapshot.total_count, "last_updated": snapshot.last_updated.isoformat()}}), 200


def main() -> None:
    """
    Cloud Run injects PORT (usually 8080); fall back to settings for local runs.
    """
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or get_settings().port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)

    app.run(host="0.0.0.0", port=port, threaded=True)


if __name__ == "__main__":
    main()
