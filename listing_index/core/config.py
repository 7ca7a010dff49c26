"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_key: str
    listings_table: str = "bookstores"
    page_size: int = 1000
    max_pages: int = 100
    request_timeout: float = 10.0
    cache_ttl_seconds: float = 3600.0
    featured_count: int = 8
    popular_count: int = 15
    refresh_token: Optional[str] = None
    port: int = 8080


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    supabase_url = os.getenv("SUPABASE_URL", "").strip().rstrip("/")
    supabase_key = os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY", "")
    listings_table = os.getenv("LISTINGS_TABLE", "bookstores").strip() or "bookstores"
    page_size = int(os.getenv("FETCH_PAGE_SIZE", "1000"))
    max_pages = int(os.getenv("FETCH_MAX_PAGES", "100"))
    request_timeout = float(os.getenv("REQUEST_TIMEOUT", "10"))
    cache_ttl_seconds = float(os.getenv("CACHE_TTL_SECONDS", "3600"))
    featured_count = int(os.getenv("FEATURED_COUNT", "8"))
    popular_count = int(os.getenv("POPULAR_COUNT", "15"))
    refresh_token = os.getenv("REFRESH_TOKEN") or None
    port = int(os.getenv("PORT", "8080"))

    if page_size <= 0:
        raise ConfigError("FETCH_PAGE_SIZE must be a positive integer")
    if not supabase_url:
        logger.warning("SUPABASE_URL is not set; listing fetches will fail.")
    if not supabase_key:
        logger.warning("SUPABASE_KEY is not configured; listing fetches will fail.")

    return Settings(
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        listings_table=listings_table,
        page_size=page_size,
        max_pages=max_pages,
        request_timeout=request_timeout,
        cache_ttl_seconds=cache_ttl_seconds,
        featured_count=featured_count,
        popular_count=popular_count,
        refresh_token=refresh_token,
        port=port,
    )
