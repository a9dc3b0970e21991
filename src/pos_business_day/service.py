"""Business-day service: wires stores, cache, closing and scheduler together.

Request handlers receive a ``BusinessDayService`` instead of reaching for
process-wide state. Run the scheduler standalone against the back-office API
with::

    python -m pos_business_day.service
"""

import asyncio
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog

from pos_business_day.cache import SettingsCache
from pos_business_day.closing import ClosingService
from pos_business_day.config import get_settings
from pos_business_day.errors import ClosingInProgressError
from pos_business_day.hourly import (
    ComparisonResult,
    HourlySalesResult,
    compare_days,
    hourly_sales_for_day,
)
from pos_business_day.models import BusinessDaySettings, DailyClosing
from pos_business_day.product_performance import (
    ProductInfo,
    ProductPerformanceResult,
    aggregate_product_performance,
)
from pos_business_day.scheduler import BusinessDayScheduler
from pos_business_day.stores import (
    Clock,
    ClosingStore,
    SettingsStore,
    SystemClock,
    TransactionStore,
    UserResolver,
)
from pos_business_day.time_window import compute_range

logger = structlog.get_logger(__name__)


class BusinessDayService:
    """Entry point for everything the back office needs from the engine."""

    def __init__(
        self,
        settings_store: SettingsStore,
        transaction_store: TransactionStore,
        closing_store: ClosingStore,
        user_resolver: UserResolver,
        clock: Clock | None = None,
    ):
        settings = get_settings()
        self.clock = clock or SystemClock(settings.business_timezone)
        self._settings_store = settings_store
        self._transaction_store = transaction_store
        self.settings_cache = SettingsCache(settings_store, self.clock)
        self.closing_service = ClosingService(transaction_store, closing_store)
        self.scheduler = BusinessDayScheduler(
            settings_store,
            self.closing_service,
            user_resolver,
            clock=self.clock,
            settings_cache=self.settings_cache,
        )

    async def __aenter__(self) -> "BusinessDayService":
        self.initialize_scheduler()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop_scheduler()
        await self.scheduler.drain()

    # === Scheduler ===

    def initialize_scheduler(self) -> None:
        self.scheduler.start()

    def stop_scheduler(self) -> None:
        self.scheduler.stop()

    def get_scheduler_status(self) -> dict[str, Any]:
        return self.scheduler.get_status()

    async def force_business_day_close(self) -> datetime | None:
        """Close now; raises ClosingInProgressError if a close is already running."""
        return await self.scheduler.force_close()

    def clear_settings_cache(self) -> None:
        self.scheduler.clear_settings_cache()

    # === Settings ===

    async def update_settings(self, settings: BusinessDaySettings) -> BusinessDaySettings:
        """Persist settings and make the scheduler pick them up on its next tick."""
        saved = await self._settings_store.save_settings(settings)
        self.clear_settings_cache()
        logger.info(
            "settings_updated",
            auto_start_time=saved.auto_start_time,
            business_day_end_hour=saved.business_day_end_hour,
            auto_close_enabled=saved.auto_close_enabled,
        )
        return saved

    async def _require_settings(self) -> BusinessDaySettings:
        settings = await self._settings_store.get_settings()
        return settings or BusinessDaySettings()

    # === Closings and reports ===

    async def close_business_day(
        self, user_id: int | str, closed_at: datetime | None = None
    ) -> DailyClosing:
        """Manual close by a user; the period is truncated at the last manual close."""
        settings = await self._require_settings()
        return await self.closing_service.close_business_day(
            closed_at or self.clock.now(), user_id, settings
        )

    async def hourly_sales(self, reference: datetime | None = None) -> HourlySalesResult:
        settings = await self._require_settings()
        return await hourly_sales_for_day(
            self._transaction_store, reference or self.clock.now(), settings.config
        )

    async def compare_days(
        self, reference1: datetime, reference2: datetime
    ) -> ComparisonResult:
        settings = await self._require_settings()
        return await compare_days(
            self._transaction_store, reference1, reference2, settings.config
        )

    async def product_performance(
        self,
        catalog: Mapping[int | str, ProductInfo],
        start: datetime | None = None,
        end: datetime | None = None,
        **options: Any,
    ) -> ProductPerformanceResult:
        """Product performance between start and end (defaults to today's business day)."""
        if start is None or end is None:
            settings = await self._require_settings()
            day_range = compute_range(self.clock.now(), settings.config)
            start = start or day_range.start
            end = end or day_range.end
        transactions = await self._transaction_store.find_in_range(start, end)
        return aggregate_product_performance(transactions, catalog, **options)


async def main() -> None:
    """Run the automatic close scheduler against the back-office API.

    Usage:
        BACKOFFICE_USERNAME=system BACKOFFICE_PASSWORD=... \\
            python -m pos_business_day.service
    """
    import argparse
    import sys

    from pos_business_day.clients import BackOfficeAPIClient
    from pos_business_day.config import configure_logging

    configure_logging()

    parser = argparse.ArgumentParser(description="Automatic business day closing")
    parser.add_argument(
        "--force-close",
        action="store_true",
        help="Close the current business day once and exit",
    )
    args = parser.parse_args()

    try:
        async with BackOfficeAPIClient() as client:
            service = BusinessDayService(client, client, client, client)
            if args.force_close:
                try:
                    closed_at = await service.force_business_day_close()
                except ClosingInProgressError:
                    logger.error("force_close_rejected", reason="closing_in_progress")
                    sys.exit(1)
                logger.info("force_close_finished", closed_at=closed_at)
                if closed_at is None:
                    sys.exit(1)
                return

            async with service:
                logger.info("business_day_service_running", status=service.get_scheduler_status())
                await asyncio.Event().wait()

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("business_day_service_interrupted")
    except Exception as e:
        logger.exception("business_day_service_error", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
