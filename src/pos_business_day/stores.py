"""Store collaborators consumed by the engine.

The engine never talks to a database directly. It depends on the protocols
below; ``InMemoryBackOffice`` implements all of them in process and
``pos_business_day.clients.backoffice.BackOfficeAPIClient`` implements them
over the back-office REST API.
"""

from __future__ import annotations

import itertools
from dataclasses import replace
from datetime import datetime
from typing import Protocol, runtime_checkable
from zoneinfo import ZoneInfo

import structlog

from pos_business_day.models import (
    BusinessDaySettings,
    ClosingSummary,
    DailyClosing,
    Transaction,
    User,
)

logger = structlog.get_logger(__name__)


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in the business timezone."""

    def __init__(self, timezone: str = "Europe/Berlin"):
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)


@runtime_checkable
class SettingsStore(Protocol):
    async def get_settings(self) -> BusinessDaySettings | None: ...

    async def save_settings(self, settings: BusinessDaySettings) -> BusinessDaySettings: ...

    async def update_last_manual_close(self, when: datetime) -> None: ...


@runtime_checkable
class TransactionStore(Protocol):
    async def find_in_range(self, start: datetime, end: datetime) -> list[Transaction]:
        """Return transactions with ``start <= created_at < end``."""
        ...


@runtime_checkable
class ClosingStore(Protocol):
    async def create(
        self, closed_at: datetime, summary: ClosingSummary, user_id: int | str
    ) -> DailyClosing: ...


@runtime_checkable
class UserResolver(Protocol):
    async def get_system_or_admin_user(self) -> User | None: ...


class InMemoryBackOffice:
    """In-process implementation of every store protocol."""

    def __init__(
        self,
        settings: BusinessDaySettings | None = None,
        transactions: list[Transaction] | None = None,
        users: list[User] | None = None,
        system_username: str = "system",
        admin_role: str = "Admin",
    ):
        self.settings = settings
        self.transactions: list[Transaction] = list(transactions or [])
        self.users: list[User] = list(users or [])
        self.closings: list[DailyClosing] = []
        self._system_username = system_username
        self._admin_role = admin_role
        self._closing_ids = itertools.count(1)

    def add_transaction(self, transaction: Transaction) -> None:
        self.transactions.append(transaction)

    # === SettingsStore ===

    async def get_settings(self) -> BusinessDaySettings | None:
        return replace(self.settings) if self.settings else None

    async def save_settings(self, settings: BusinessDaySettings) -> BusinessDaySettings:
        self.settings = replace(settings)
        return replace(settings)

    async def update_last_manual_close(self, when: datetime) -> None:
        if self.settings is None:
            logger.warning("watermark_without_settings", last_manual_close=when.isoformat())
            return
        self.settings.last_manual_close = when

    # === TransactionStore ===

    async def find_in_range(self, start: datetime, end: datetime) -> list[Transaction]:
        return [t for t in self.transactions if start <= t.created_at < end]

    # === ClosingStore ===

    async def create(
        self, closed_at: datetime, summary: ClosingSummary, user_id: int | str
    ) -> DailyClosing:
        closing = DailyClosing(
            id=next(self._closing_ids),
            closed_at=closed_at,
            summary=summary,
            user_id=user_id,
            created_at=closed_at,
        )
        self.closings.append(closing)
        return closing

    # === UserResolver ===

    async def get_system_or_admin_user(self) -> User | None:
        for user in self.users:
            if user.username == self._system_username:
                return user
        for user in self.users:
            if user.role == self._admin_role:
                return user
        return None
