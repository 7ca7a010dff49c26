"""Utilities for transforming PostgREST listing rows into Listing records.

Upstream rows come in several legacy shapes (numeric vs text coordinates,
array vs comma-separated vs scalar tag ids, JSON columns that may or may not
be decoded already). `to_listing` is the single place those shapes are
resolved so everything downstream sees one record type.
"""

import json
import logging
from typing import Any, Dict, Optional, Tuple

from listing_index.core.normalize import clean_text
from listing_index.models import Listing

logger = logging.getLogger(__name__)


def parse_json_field(value: Any) -> Optional[Any]:
    """Return a decoded JSON object/array, or None if the value is empty or unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (str, bytes)):
        try:
            parsed = json.loads(value)
        except (TypeError, ValueError):
            logger.debug("Unparseable JSON column value: %.80r", value)
            return None
        if isinstance(parsed, (dict, list)):
            return parsed
    return None


def parse_tag_ids(value: Any) -> Tuple[int, ...]:
    """Accept an array, a JSON array string, a comma-separated string or a scalar."""
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            decoded = parse_json_field(text)
            items = decoded if isinstance(decoded, list) else []
        else:
            items = text.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = list(value)
    else:
        items = [value]

    tag_ids = []
    for item in items:
        tag_id = _safe_int(item)
        if tag_id is not None and tag_id not in tag_ids:
            tag_ids.append(tag_id)
    return tuple(tag_ids)


def _coordinate(numeric: Any, legacy: Any) -> Optional[str]:
    if isinstance(numeric, (int, float)) and not isinstance(numeric, bool):
        if isinstance(numeric, float) and numeric.is_integer():
            return str(int(numeric))
        return str(numeric)
    numeric_text = clean_text(numeric)
    if numeric_text is not None:
        return numeric_text
    return clean_text(legacy)


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def to_listing(row: Dict[str, Any]) -> Optional[Listing]:
    """Map one upstream row onto a Listing; None when the row has no usable id."""
    if not isinstance(row, dict):
        logger.debug("Skipping non-object row: %.80r", row)
        return None

    listing_id = _safe_int(row.get("id"))
    if listing_id is None:
        logger.debug("Skipping row without a numeric id: %s", row.get("name"))
        return None

    tags_source = row.get("feature_ids")
    if tags_source is None or tags_source == "":
        tags_source = row.get("featureIds")

    return Listing(
        id=listing_id,
        name=clean_text(row.get("name")) or "",
        slug=clean_text(row.get("slug")),
        street=clean_text(row.get("street")),
        city=clean_text(row.get("city")),
        state=clean_text(row.get("state")),
        zip=clean_text(row.get("zip")),
        county=clean_text(row.get("county")),
        latitude=_coordinate(row.get("lat_numeric"), row.get("latitude")),
        longitude=_coordinate(row.get("lng_numeric"), row.get("longitude")),
        tag_ids=parse_tag_ids(tags_source),
        website=clean_text(row.get("website")),
        phone=clean_text(row.get("formatted_phone") or row.get("phone")),
        rating=_safe_float(row.get("google_rating")),
        review_count=_safe_int(row.get("google_review_count")),
        place_id=clean_text(row.get("google_place_id")),
        image_url=clean_text(row.get("image_url") or row.get("imageUrl")),
        photos=parse_json_field(row.get("google_photos")),
        reviews=parse_json_field(row.get("google_reviews")),
        hours=parse_json_field(row.get("hours_json")),
        description=clean_text(row.get("description") or row.get("ai_generated_description")),
        raw=row,
    )
