"""Tests for the business day service and the in-memory back office."""

import asyncio
from datetime import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from pos_business_day.errors import ClosingInProgressError
from pos_business_day.models import BusinessDaySettings, User
from pos_business_day.product_performance import ProductInfo
from pos_business_day.service import BusinessDayService
from pos_business_day.stores import (
    ClosingStore,
    InMemoryBackOffice,
    SettingsStore,
    TransactionStore,
    UserResolver,
)

BERLIN = ZoneInfo("Europe/Berlin")


def berlin(year, month, day, hour, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=BERLIN)


@pytest.fixture
def service(backoffice, clock):
    return BusinessDayService(backoffice, backoffice, backoffice, backoffice, clock=clock)


class TestInMemoryBackOffice:
    """Tests for the in-process stores."""

    def test_implements_store_protocols(self, backoffice):
        assert isinstance(backoffice, SettingsStore)
        assert isinstance(backoffice, TransactionStore)
        assert isinstance(backoffice, ClosingStore)
        assert isinstance(backoffice, UserResolver)

    @pytest.mark.asyncio
    async def test_settings_are_copied(self, backoffice):
        settings = await backoffice.get_settings()
        settings.auto_close_enabled = False

        assert backoffice.settings.auto_close_enabled is True

    @pytest.mark.asyncio
    async def test_admin_fallback(self):
        backoffice = InMemoryBackOffice(
            users=[
                User(id=3, username="waiter", role="Waiter"),
                User(id=2, username="manager", role="Admin"),
            ]
        )

        user = await backoffice.get_system_or_admin_user()

        assert user.id == 2

    @pytest.mark.asyncio
    async def test_no_admin(self):
        backoffice = InMemoryBackOffice(users=[User(id=3, username="waiter", role="Waiter")])

        assert await backoffice.get_system_or_admin_user() is None

    @pytest.mark.asyncio
    async def test_watermark_without_settings(self):
        backoffice = InMemoryBackOffice()

        await backoffice.update_last_manual_close(berlin(2024, 1, 2, 4))

        assert backoffice.settings is None


class TestBusinessDayService:
    """Tests for BusinessDayService."""

    @pytest.mark.asyncio
    async def test_context_manager_runs_scheduler(self, service):
        async with service:
            assert service.get_scheduler_status()["is_running"] is True

        assert service.get_scheduler_status()["is_running"] is False

    @pytest.mark.asyncio
    async def test_force_close(self, service, backoffice, clock):
        assert await service.force_business_day_close() == clock.now()
        assert len(backoffice.closings) == 1

    @pytest.mark.asyncio
    async def test_force_close_while_closing_raises(self, service, backoffice):
        """Test that a rejected manual close is distinguishable from a failed one."""
        release = asyncio.Event()
        create = backoffice.create

        async def slow_create(*args, **kwargs):
            await release.wait()
            return await create(*args, **kwargs)

        backoffice.create = slow_create
        first = asyncio.create_task(service.force_business_day_close())
        while not service.scheduler.is_closing_in_progress:
            await asyncio.sleep(0)

        with pytest.raises(ClosingInProgressError):
            await service.force_business_day_close()

        release.set()
        assert await first is not None
        assert len(backoffice.closings) == 1

    @pytest.mark.asyncio
    async def test_close_business_day_by_user(
        self, service, backoffice, make_transaction
    ):
        backoffice.add_transaction(make_transaction(berlin(2024, 1, 1, 23), total="12.00"))

        closing = await service.close_business_day(user_id=7, closed_at=berlin(2024, 1, 2, 2))

        assert closing.user_id == 7
        assert closing.closed_at == berlin(2024, 1, 2, 2)
        assert closing.summary.total_sales == Decimal("12.00")

    @pytest.mark.asyncio
    async def test_update_settings_clears_cache(self, service, backoffice):
        await service.settings_cache.get()

        saved = await service.update_settings(
            BusinessDaySettings(
                auto_start_time="08:00",
                business_day_end_hour="20:00",
                auto_close_enabled=True,
            )
        )

        assert saved.business_day_end_hour == "20:00"
        assert service.settings_cache.peek() is None
        snapshot = await service.settings_cache.get()
        assert snapshot.business_day_end_hour == "20:00"

    @pytest.mark.asyncio
    async def test_hourly_sales_defaults_to_now(self, service, backoffice, make_transaction):
        backoffice.add_transaction(make_transaction(berlin(2024, 1, 1, 23), total="8.00"))

        result = await service.hourly_sales()

        assert result.business_day_start == berlin(2024, 1, 1, 22)
        assert len(result.hourly_data) == 6
        assert result.summary.total_sales == Decimal("8.00")

    @pytest.mark.asyncio
    async def test_hourly_sales_without_settings(self, service, backoffice):
        backoffice.settings = None

        result = await service.hourly_sales(berlin(2024, 1, 2, 12))

        assert result.business_day_start == berlin(2024, 1, 2, 6)
        assert len(result.hourly_data) == 24

    @pytest.mark.asyncio
    async def test_compare_days(self, service, backoffice, make_transaction):
        backoffice.add_transaction(make_transaction(berlin(2024, 1, 1, 23), total="8.00"))
        backoffice.add_transaction(make_transaction(berlin(2024, 1, 2, 23), total="4.00"))

        comparison = await service.compare_days(berlin(2024, 1, 1, 23), berlin(2024, 1, 2, 23))

        assert comparison.summary_difference.total_sales_difference == Decimal("4.00")
        assert comparison.summary_difference.total_sales_percent_change == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_product_performance(self, service, backoffice, make_transaction):
        backoffice.add_transaction(
            make_transaction(
                berlin(2024, 1, 1, 23),
                items=[{"productId": 1, "quantity": 2, "price": 3.5}],
            )
        )
        backoffice.add_transaction(
            make_transaction(
                berlin(2024, 1, 1, 12),
                items=[{"productId": 1, "quantity": 5, "price": 3.5}],
            )
        )

        result = await service.product_performance({1: ProductInfo(name="Beer")})

        assert result.total_units_sold == Decimal("2")
        assert result.products[0].total_revenue == Decimal("7.0")
