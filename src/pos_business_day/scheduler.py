"""Scheduler that closes the business day automatically.

Once per minute, in the business timezone, the scheduler checks whether the
configured close time has been reached and, if so, creates the daily closing
for the business day that just ended. Closing is at-most-once: a minute that
is missed (e.g. the process was down) is not caught up later and has to be
compensated with a manual close.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any

import structlog

from pos_business_day.cache import SettingsCache
from pos_business_day.closing import ClosingService
from pos_business_day.config import get_settings
from pos_business_day.errors import ClosingInProgressError, InvalidTimeError
from pos_business_day.models import SettingsSnapshot
from pos_business_day.stores import Clock, SettingsStore, SystemClock, UserResolver
from pos_business_day.time_window import (
    DAY,
    compute_just_ended_range,
    parse_time_string,
)

logger = structlog.get_logger(__name__)


class BusinessDayScheduler:
    """Owns the automatic close timer and its state.

    The scheduler:
    1. Ticks on minute boundaries as a background task
    2. Reads the cached settings and matches the close time exactly
    3. Skips when a close finished within the dedup window
    4. Runs at most one close at a time, automatic or forced
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        closing_service: ClosingService,
        user_resolver: UserResolver,
        clock: Clock | None = None,
        settings_cache: SettingsCache | None = None,
        tick_interval: float | None = None,
        dedup_window: timedelta | None = None,
    ):
        settings = get_settings()
        self._clock = clock or SystemClock(settings.business_timezone)
        self._settings_store = settings_store
        self._closing_service = closing_service
        self._user_resolver = user_resolver
        self._settings_cache = settings_cache or SettingsCache(settings_store, self._clock)
        self._tick_interval = tick_interval or settings.scheduler_tick_seconds
        self._dedup_window = dedup_window or timedelta(seconds=settings.close_dedup_seconds)
        self._default_close_time = settings.default_business_day_time

        self._task: asyncio.Task[None] | None = None
        self._current_tick: asyncio.Future[None] | None = None
        self._closing_lock = asyncio.Lock()
        self._last_close_time: datetime | None = None

        self._logger = logger.bind(component="scheduler")

    @property
    def is_running(self) -> bool:
        """Check if the timer is active."""
        return self._task is not None and not self._task.done()

    @property
    def is_closing_in_progress(self) -> bool:
        return self._closing_lock.locked()

    @property
    def last_close_time(self) -> datetime | None:
        return self._last_close_time

    @property
    def settings_cache(self) -> SettingsCache:
        return self._settings_cache

    # === Lifecycle ===

    def start(self) -> None:
        """Start ticking. Must be called from a running event loop."""
        if self.is_running:
            self._logger.debug("scheduler_already_running")
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="business-day-scheduler")
        self._logger.info("scheduler_started", interval_seconds=self._tick_interval)

    def stop(self) -> None:
        """Stop the timer. An in-flight close keeps running; see ``drain``."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            self._logger.info("scheduler_stopped")

    async def drain(self) -> None:
        """Wait for an in-flight tick to finish."""
        tick = self._current_tick
        if tick is not None and not tick.done():
            self._logger.info("waiting_for_inflight_close")
            await tick

    def _seconds_until_next_tick(self) -> float:
        now = self._clock.now()
        return self._tick_interval - (now.timestamp() % self._tick_interval)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._seconds_until_next_tick())
            # Cancelling the timer must not abort a close that already started
            self._current_tick = asyncio.ensure_future(self.tick())
            await asyncio.shield(self._current_tick)

    # === Closing ===

    def _closed_recently(self, now: datetime) -> bool:
        return (
            self._last_close_time is not None
            and now - self._last_close_time < self._dedup_window
        )

    async def tick(self) -> None:
        """Run one check and close the business day if its end time is now."""
        if self.is_closing_in_progress:
            return

        try:
            snapshot = await self._settings_cache.get()
            if snapshot is None or not snapshot.auto_close_enabled:
                return

            now = self._clock.now()
            close_time = parse_time_string(snapshot.business_day_end_hour)
            if not close_time.matches(now):
                return

            if self._closed_recently(now):
                self._logger.info(
                    "auto_close_skipped",
                    reason="closed_recently",
                    last_close_time=self._last_close_time.isoformat(),
                )
                return

            await self._perform_closing(snapshot, trigger="automatic")
        except ClosingInProgressError:
            return
        except Exception as e:
            self._logger.error("auto_close_check_failed", error=str(e), exc_info=True)

    async def force_close(self) -> datetime | None:
        """Close the business day now.

        Returns:
            The close time, or None if no settings exist or the close failed.

        Raises:
            ClosingInProgressError: Another close is running; nothing was done.
        """
        if self.is_closing_in_progress:
            self._logger.info("force_close_rejected", reason="closing_in_progress")
            raise ClosingInProgressError("A business day close is already in progress")

        try:
            snapshot = await self._settings_cache.get()
        except Exception as e:
            self._logger.error("force_close_settings_failed", error=str(e), exc_info=True)
            return None

        if snapshot is None:
            self._logger.error("force_close_rejected", reason="no_settings")
            return None

        return await self._perform_closing(snapshot, trigger="manual")

    async def _perform_closing(
        self, snapshot: SettingsSnapshot, trigger: str
    ) -> datetime | None:
        # No await between the check and the acquire, so a tick and a forced
        # close cannot both get past this point.
        if self._closing_lock.locked():
            self._logger.info("closing_already_in_progress", trigger=trigger)
            raise ClosingInProgressError("A business day close is already in progress")

        async with self._closing_lock:
            self._logger.info("closing_started", trigger=trigger)
            try:
                now = self._clock.now()
                day_range = compute_just_ended_range(
                    now, snapshot.config, snapshot.last_manual_close
                )

                user = await self._user_resolver.get_system_or_admin_user()
                if user is None:
                    self._logger.error("closing_failed", trigger=trigger, reason="no_admin_user")
                    return None

                closing = await self._closing_service.create_daily_closing(
                    day_range.end, user.id, day_range.start
                )
                self._last_close_time = now
                self._logger.info(
                    "closing_completed",
                    trigger=trigger,
                    closing_id=closing.id,
                    start=day_range.start.isoformat(),
                    end=day_range.end.isoformat(),
                )
            except Exception as e:
                self._logger.error(
                    "closing_failed", trigger=trigger, error=str(e), exc_info=True
                )
                return None

            try:
                await self._settings_store.update_last_manual_close(now)
            except Exception as e:
                self._logger.error(
                    "close_watermark_failed",
                    last_manual_close=now.isoformat(),
                    error=str(e),
                    exc_info=True,
                )
            self._settings_cache.invalidate()
            return now

    # === Status ===

    def clear_settings_cache(self) -> None:
        """Drop cached settings; call after every settings write."""
        self._settings_cache.invalidate()

    def _next_scheduled_close(self, snapshot: SettingsSnapshot) -> datetime | None:
        try:
            close_time = parse_time_string(snapshot.business_day_end_hour)
        except InvalidTimeError:
            return None
        now = self._clock.now()
        next_close = close_time.on(now)
        if next_close <= now:
            next_close += DAY
        return next_close

    def get_status(self) -> dict[str, Any]:
        """Get current scheduler status.

        Settings are read from the cache only, so the values reflect the last
        tick rather than the store.

        Returns:
            Status dictionary.
        """
        snapshot = self._settings_cache.peek()
        next_close = None
        if self.is_running and snapshot is not None and snapshot.auto_close_enabled:
            next_close = self._next_scheduled_close(snapshot)

        return {
            "is_running": self.is_running,
            "is_closing_in_progress": self.is_closing_in_progress,
            "last_close_time": self._last_close_time,
            "auto_close_enabled": snapshot.auto_close_enabled if snapshot else False,
            "business_day_end_hour": (
                snapshot.business_day_end_hour if snapshot else self._default_close_time
            ),
            "next_scheduled_close": next_close,
        }
