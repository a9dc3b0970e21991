"""Tests for the settings cache."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from pos_business_day.cache import SettingsCache
from pos_business_day.models import BusinessDaySettings


@pytest.fixture
def store(overnight_settings):
    store = AsyncMock()
    store.get_settings.return_value = overnight_settings
    return store


@pytest.fixture
def cache(store, clock):
    return SettingsCache(store, clock)


class TestSettingsCache:
    """Tests for SettingsCache."""

    def test_default_ttl(self, cache):
        assert cache.ttl == timedelta(seconds=60)

    @pytest.mark.asyncio
    async def test_snapshot_fields(self, cache, clock):
        snapshot = await cache.get()

        assert snapshot.auto_close_enabled is True
        assert snapshot.auto_start_time == "22:00"
        assert snapshot.business_day_end_hour == "04:00"
        assert snapshot.last_manual_close is None
        assert snapshot.fetched_at == clock.now()

    @pytest.mark.asyncio
    async def test_fresh_snapshot_is_reused(self, cache, store, clock):
        first = await cache.get()
        clock.advance(seconds=59)
        second = await cache.get()

        assert first is second
        assert store.get_settings.await_count == 1

    @pytest.mark.asyncio
    async def test_expired_snapshot_is_refetched(self, cache, store, clock):
        await cache.get()
        clock.advance(seconds=60)
        await cache.get()

        assert store.get_settings.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, cache, store):
        await cache.get()
        cache.invalidate()

        assert cache.peek() is None
        await cache.get()
        assert store.get_settings.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_settings(self, cache, store):
        store.get_settings.return_value = None

        assert await cache.get() is None
        assert cache.peek() is None

    @pytest.mark.asyncio
    async def test_missing_times_use_default(self, cache, store):
        store.get_settings.return_value = BusinessDaySettings(
            auto_start_time="", business_day_end_hour=None
        )

        snapshot = await cache.get()

        assert snapshot.auto_start_time == "06:00"
        assert snapshot.business_day_end_hour == "06:00"
        assert snapshot.auto_close_enabled is False

    @pytest.mark.asyncio
    async def test_custom_ttl(self, store, clock):
        cache = SettingsCache(store, clock, ttl=timedelta(seconds=5))

        await cache.get()
        clock.advance(seconds=5)
        await cache.get()

        assert store.get_settings.await_count == 2

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, cache, store):
        store.get_settings.side_effect = RuntimeError("database unavailable")

        with pytest.raises(RuntimeError):
            await cache.get()
