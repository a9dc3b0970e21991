"""Time-to-live cache for the scheduling-relevant settings."""

from __future__ import annotations

from datetime import timedelta

import structlog

from pos_business_day.config import get_settings
from pos_business_day.models import SettingsSnapshot
from pos_business_day.stores import Clock, SettingsStore, SystemClock

logger = structlog.get_logger(__name__)


class SettingsCache:
    """Holds at most one settings snapshot.

    ``invalidate`` must be called by the settings write path so the scheduler
    sees new configuration on its next tick instead of after the TTL.
    """

    def __init__(
        self,
        store: SettingsStore,
        clock: Clock | None = None,
        ttl: timedelta | None = None,
    ):
        settings = get_settings()
        self._store = store
        self._clock = clock or SystemClock(settings.business_timezone)
        self._ttl = ttl or timedelta(seconds=settings.settings_cache_ttl_seconds)
        self._default_time = settings.default_business_day_time
        self._snapshot: SettingsSnapshot | None = None

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def _is_fresh(self, snapshot: SettingsSnapshot) -> bool:
        return self._clock.now() - snapshot.fetched_at < self._ttl

    async def get(self) -> SettingsSnapshot | None:
        """Return the cached snapshot, fetching a new one once it expired.

        Returns:
            The snapshot, or None if no settings row exists.
        """
        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot

        settings = await self._store.get_settings()
        if settings is None:
            self._snapshot = None
            logger.info("settings_not_found")
            return None

        snapshot = SettingsSnapshot(
            auto_close_enabled=settings.auto_close_enabled,
            business_day_end_hour=settings.business_day_end_hour or self._default_time,
            auto_start_time=settings.auto_start_time or self._default_time,
            last_manual_close=settings.last_manual_close,
            fetched_at=self._clock.now(),
        )
        self._snapshot = snapshot
        logger.debug(
            "settings_cached",
            auto_close_enabled=snapshot.auto_close_enabled,
            business_day_end_hour=snapshot.business_day_end_hour,
        )
        return snapshot

    def peek(self) -> SettingsSnapshot | None:
        """Return the cached snapshot without fetching, fresh or not."""
        return self._snapshot

    def invalidate(self) -> None:
        """Expire the cached snapshot."""
        self._snapshot = None
        logger.info("settings_cache_cleared")
