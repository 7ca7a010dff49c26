"""Client utilities for the Supabase PostgREST API."""

import logging
from typing import Any, Dict, List, Optional

import requests

from listing_index.core.config import ConfigError, Settings, get_settings

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

LIST_COLUMNS = (
    "id,name,slug,city,state,county,street,zip,latitude,longitude,lat_numeric,lng_numeric,"
    "website,phone,live,google_rating,google_review_count,google_place_id,feature_ids,imageUrl,google_photos"
)
DETAIL_COLUMNS = (
    "id,name,slug,city,state,county,street,zip,latitude,longitude,lat_numeric,lng_numeric,"
    "website,phone,live,description,google_place_id,google_rating,google_review_count,google_description,"
    "formatted_phone,google_maps_url,google_types,business_status,opening_hours_json,"
    "ai_generated_description,feature_ids,hours_json,imageUrl,google_photos,google_reviews"
)


class SupabaseError(RuntimeError):
    """Raised when PostgREST returns an error status or an unexpected payload."""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SupabaseClient:
    """Read-only access to the listings table through PostgREST."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str = "bookstores",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url or not api_key:
            raise ConfigError("SUPABASE_URL and SUPABASE_KEY are required for listing fetches")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.timeout = timeout
        self._session = session

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SupabaseClient":
        settings = settings or get_settings()
        return cls(
            settings.supabase_url,
            settings.supabase_key,
            table=settings.listings_table,
            timeout=settings.request_timeout,
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/rest/v1/{self.table}"

    def _get(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        session = self._session or _SESSION
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        response = session.get(self.endpoint, params=params, headers=headers, timeout=self.timeout)
        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.error("PostgREST request failed: status=%s, message=%s", response.status_code, message)
            raise SupabaseError(message or f"HTTP {response.status_code}")
        payload = response.json()
        if not isinstance(payload, list):
            raise SupabaseError(f"Expected a list of rows, got {type(payload).__name__}")
        return payload

    def fetch_page(self, offset: int, limit: int, columns: str = LIST_COLUMNS) -> List[Dict[str, Any]]:
        """Fetch one name-ordered page of live rows."""
        params = {
            "select": columns,
            "live": "eq.true",
            "order": "name.asc",
            "offset": offset,
            "limit": limit,
        }
        return self._get(params)

    def fetch_row_by_id(self, listing_id: int) -> Optional[Dict[str, Any]]:
        rows = self._get({"select": DETAIL_COLUMNS, "id": f"eq.{int(listing_id)}", "live": "eq.true", "limit": 1})
        return rows[0] if rows else None

    def fetch_row_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        """Exact slug match first, then a case-insensitive one."""
        rows = self._get({"select": DETAIL_COLUMNS, "slug": f"eq.{slug}", "live": "eq.true", "limit": 1})
        if rows:
            return rows[0]
        rows = self._get(
            {"select": DETAIL_COLUMNS, "slug": f"ilike.{_escape_like(slug)}", "live": "eq.true", "limit": 1}
        )
        return rows[0] if rows else None
