"""Process-wide, time-bounded holder for the current listing Snapshot."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Callable, Optional

from listing_index.core.index_builder import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600.0


class SnapshotCache:
    """Owns one snapshot slot and one in-flight build.

    A missing or stale slot triggers exactly one ``loader()`` call; callers
    arriving while it runs block on the same future and receive the same
    snapshot. Expiry is checked lazily on access.
    """

    def __init__(
        self,
        loader: Callable[[], Snapshot],
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._built_at: Optional[float] = None
        self._in_flight: Optional[Future] = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._built_at is not None
            and self._clock() - self._built_at < self._ttl
        )

    def is_stale(self) -> bool:
        with self._lock:
            return not self._is_fresh()

    def age(self) -> Optional[float]:
        """Seconds since the current snapshot was published, None before the first build."""
        with self._lock:
            if self._built_at is None:
                return None
            return self._clock() - self._built_at

    def peek(self) -> Optional[Snapshot]:
        """Current snapshot without triggering a build, stale or not."""
        with self._lock:
            return self._snapshot

    def invalidate(self) -> None:
        """Mark the current snapshot stale; the next access rebuilds."""
        with self._lock:
            self._built_at = None
        logger.info("Listing snapshot invalidated")

    def get_snapshot(self) -> Snapshot:
        with self._lock:
            if self._is_fresh():
                return self._snapshot
            future = self._in_flight
            is_builder = future is None
            if is_builder:
                future = Future()
                self._in_flight = future

        if not is_builder:
            return future.result()

        try:
            snapshot = self._loader()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Listing snapshot build failed: %s", exc)
            with self._lock:
                self._in_flight = None
                fallback = self._snapshot or Snapshot()
            future.set_result(fallback)
            return fallback
        except BaseException as exc:
            with self._lock:
                self._in_flight = None
            future.set_exception(exc)
            raise

        with self._lock:
            self._snapshot = snapshot
            self._built_at = self._clock()
            self._in_flight = None
        future.set_result(snapshot)
        return snapshot
