"""Pytest configuration and fixtures."""

import itertools
import os
from datetime import datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("BACKOFFICE_USERNAME", "system")
os.environ.setdefault("BACKOFFICE_PASSWORD", "testpassword")
os.environ.setdefault("BUSINESS_TIMEZONE", "Europe/Berlin")

from pos_business_day.models import BusinessDaySettings, Transaction, User  # noqa: E402
from pos_business_day.stores import InMemoryBackOffice  # noqa: E402

BERLIN = ZoneInfo("Europe/Berlin")


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock standing at 04:00 on 2024-01-02, Berlin time."""
    return FakeClock(datetime(2024, 1, 2, 4, 0, tzinfo=BERLIN))


@pytest.fixture
def make_transaction():
    """Factory for transactions with sensible defaults."""
    ids = itertools.count(1)

    def _make(
        created_at: datetime,
        total: str | float = "10.00",
        tax: str | float = "1.90",
        tip: str | float = "0",
        payment_method: str = "cash",
        till_id: int = 1,
        till_name: str = "Till 1",
        items=None,
    ) -> Transaction:
        return Transaction(
            id=next(ids),
            created_at=created_at,
            total=Decimal(str(total)),
            tax=Decimal(str(tax)),
            tip=Decimal(str(tip)),
            payment_method=payment_method,
            till_id=till_id,
            till_name=till_name,
            items=items,
        )

    return _make


@pytest.fixture
def overnight_settings():
    """Bar hours: business day from 22:00 to 04:00, auto close on."""
    return BusinessDaySettings(
        auto_start_time="22:00",
        business_day_end_hour="04:00",
        auto_close_enabled=True,
    )


@pytest.fixture
def backoffice(overnight_settings):
    """In-memory back office with a system user."""
    return InMemoryBackOffice(
        settings=overnight_settings,
        users=[
            User(id=2, username="manager", name="Manager", role="Admin"),
            User(id=1, username="system", name="System", role="Admin"),
        ],
    )


@pytest.fixture
def mock_login_response():
    """Mock successful back-office login response."""
    return {
        "id": 1,
        "name": "System",
        "username": "system",
        "role": "Admin",
        "token": "jwt-token-123",
    }


@pytest.fixture
def mock_transactions_response():
    """Mock transactions list response."""
    return [
        {
            "id": 101,
            "items": [{"productId": 7, "quantity": 2, "price": 4.5}],
            "subtotal": 9.0,
            "tax": 1.71,
            "tip": 1.0,
            "total": 10.0,
            "paymentMethod": "card",
            "userId": 1,
            "userName": "System",
            "tillId": 2,
            "tillName": "Bar",
            "createdAt": "2024-01-01T22:30:00.000Z",
        },
        {
            "id": 102,
            "items": "[]",
            "tax": 0.95,
            "tip": 0,
            "total": 5.0,
            "paymentMethod": "cash",
            "tillId": 1,
            "tillName": "Till 1",
            "createdAt": "2024-01-02T06:00:00.000Z",
        },
    ]
