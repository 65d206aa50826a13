"""Time-to-live policy for cached genre charts."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Sequence

from .chart_store import CacheKeyNotFound, ChartStore, ChartStoreError
from .dataclasses import AlbumEntry, CacheRecord, ChartResponse, ChartResult

ChartFetcher = Callable[[], Awaitable[Sequence[AlbumEntry]]]


class ChartCacheManager:
    """Serves charts from the store while fresh and refreshes them through `fetch` otherwise.

    A stale row is never deleted: it is bypassed, and overwritten only when a
    refresh produces albums. A refresh that comes back empty reports the genre
    as not found rather than handing back the stale row.
    """

    def __init__(self, store: ChartStore, ttl_hours: float = 24.0,
                 now: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self.ttl = timedelta(hours=ttl_hours)
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.logger = logging.getLogger(__name__)

    def is_fresh(self, record: CacheRecord) -> bool:
        return self._now() - record.updated_at < self.ttl

    def lookup(self, genre_key: str) -> Optional[CacheRecord]:
        """Stored record for genre_key, or None on a miss or an unreadable store."""
        try:
            return self.store.get(genre_key)
        except CacheKeyNotFound:
            self.logger.debug(f"Cache miss: {genre_key}")
            return None
        except ChartStoreError as e:
            self.logger.warning(f"Chart cache read failed for '{genre_key}', treating as miss: {e}")
            return None

    async def get_or_fetch(self, genre_key: str, fetch: ChartFetcher,
                           genre: Optional[str] = None) -> ChartResponse:
        label = genre or genre_key

        record = self.lookup(genre_key)
        if record is not None and self.is_fresh(record):
            self.logger.info(f"Cache hit for '{genre_key}' ({len(record.chart.albums)} albums)")
            return ChartResponse(genre=label, albums=record.chart.albums,
                                 cached=True, timestamp=record.updated_at)
        if record is not None:
            self.logger.info(f"Cached chart for '{genre_key}' is stale, refreshing")

        albums = tuple(await fetch())
        if not albums:
            self.logger.info(f"Genre '{genre_key}' not found on the source site")
            return ChartResponse(genre=label, found=False)

        fetched_at = self._now()
        try:
            self.store.upsert(genre_key, ChartResult(genre_key=genre_key, albums=albums, fetched_at=fetched_at))
        except ChartStoreError as e:
            self.logger.error(f"Failed to cache chart for '{genre_key}': {e}")

        return ChartResponse(genre=label, albums=albums, cached=False, timestamp=fetched_at)
