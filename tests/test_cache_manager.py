"""Tests for the chart cache TTL policy."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from aoty.cache_manager import ChartCacheManager
from aoty.chart_store import ChartStoreError
from aoty.dataclasses import AlbumEntry, ChartResult


class FakeClock:
    def __init__(self, start):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class CountingFetch:
    """Fetch spy returning a fixed album list."""
    def __init__(self, albums):
        self.albums = albums
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.albums


def albums(count):
    return [AlbumEntry(rank=i, artist=f"Artist {i}", album=f"Album {i}") for i in range(1, count + 1)]


class TestChartCacheManager:
    """Test suite for ChartCacheManager."""

    @pytest.fixture
    def clock(self):
        return FakeClock(datetime(2024, 6, 1, 12, tzinfo=timezone.utc))

    @pytest.fixture
    def manager(self, memory_store, clock):
        return ChartCacheManager(memory_store, ttl_hours=24, now=clock)

    @pytest.mark.asyncio
    async def test_miss_fetches_and_stores(self, manager, memory_store, clock):
        fetch = CountingFetch(albums(20))

        response = await manager.get_or_fetch("shoegaze", fetch, genre="Shoegaze")

        assert fetch.calls == 1
        assert response.cached is False
        assert response.genre == "Shoegaze"
        assert response.timestamp == clock()
        assert len(response.albums) == 20
        assert memory_store.get("shoegaze").updated_at == clock()

    @pytest.mark.asyncio
    async def test_fresh_row_never_fetches(self, manager, clock):
        fetch = CountingFetch(albums(5))
        await manager.get_or_fetch("shoegaze", fetch)
        stored_at = clock()

        clock.advance(hours=23, minutes=59)
        response = await manager.get_or_fetch("shoegaze", fetch)

        assert fetch.calls == 1
        assert response.cached is True
        assert response.timestamp == stored_at
        assert response.to_payload()['cachedAt'] == stored_at.isoformat()

    @pytest.mark.asyncio
    async def test_stale_row_refetches(self, manager, clock):
        fetch = CountingFetch(albums(5))
        await manager.get_or_fetch("shoegaze", fetch)

        clock.advance(hours=24)
        response = await manager.get_or_fetch("shoegaze", fetch)

        assert fetch.calls == 2
        assert response.cached is False
        assert 'fetchedAt' in response.to_payload()

    @pytest.mark.asyncio
    async def test_stale_row_not_served_when_refresh_is_empty(self, manager, memory_store, clock):
        """An empty refresh reports not-found and leaves the stale row in place."""
        await manager.get_or_fetch("shoegaze", CountingFetch(albums(5)))
        clock.advance(hours=48)

        response = await manager.get_or_fetch("shoegaze", CountingFetch([]))

        assert response.found is False
        assert response.albums == ()
        assert 'error' in response.to_payload()
        assert len(memory_store.get("shoegaze").chart.albums) == 5

    @pytest.mark.asyncio
    async def test_store_read_error_is_a_miss(self, clock):
        store = Mock()
        store.get.side_effect = ChartStoreError("disk on fire")
        manager = ChartCacheManager(store, now=clock)
        fetch = CountingFetch(albums(3))

        response = await manager.get_or_fetch("rock", fetch)

        assert fetch.calls == 1
        assert len(response.albums) == 3
        store.upsert.assert_called_once()

    @pytest.mark.asyncio
    async def test_store_write_error_still_returns_chart(self, clock):
        store = Mock()
        store.get.side_effect = ChartStoreError("unavailable")
        store.upsert.side_effect = ChartStoreError("read-only")
        manager = ChartCacheManager(store, now=clock)

        response = await manager.get_or_fetch("rock", CountingFetch(albums(3)))

        assert response.found is True
        assert response.cached is False
        assert len(response.albums) == 3

    def test_is_fresh_boundary(self, manager, clock):
        record = Mock(updated_at=clock() - timedelta(hours=24))
        assert manager.is_fresh(record) is False

        record = Mock(updated_at=clock() - timedelta(hours=23))
        assert manager.is_fresh(record) is True

    def test_lookup_passes_through_records(self, manager, memory_store, clock):
        memory_store.upsert("jazz", ChartResult(genre_key="jazz", albums=tuple(albums(1)), fetched_at=clock()))

        assert manager.lookup("jazz").chart.genre_key == "jazz"
        assert manager.lookup("rock") is None
