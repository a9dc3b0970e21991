"""Daily closing summaries and closing creation."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

import structlog

from pos_business_day.models import (
    ZERO,
    BusinessDaySettings,
    ClosingSummary,
    DailyClosing,
    PaymentMethodTotals,
    TillTotals,
    Transaction,
)
from pos_business_day.stores import ClosingStore, TransactionStore
from pos_business_day.time_window import BusinessDayRange, compute_just_ended_range

logger = structlog.get_logger(__name__)


def summarize(
    transactions: Iterable[Transaction],
    day_range: BusinessDayRange | None = None,
) -> ClosingSummary:
    """Reduce transactions into a closing summary.

    The transactions must already be filtered to the business day; the range
    is only used for log context. Only scalar fields are read, so malformed
    line items never affect the summary.

    Args:
        transactions: Transactions of the business day.
        day_range: The business day they were selected for.

    Returns:
        A new summary. Payment method totals and till totals each add up to
        ``total_sales``.
    """
    count = 0
    total_sales = ZERO
    total_tax = ZERO
    total_tips = ZERO
    # name -> [count, total]
    payment_methods: dict[str, list] = {}
    tills: dict[str, list] = {}

    for transaction in transactions:
        count += 1
        total_sales += transaction.total
        total_tax += transaction.tax
        total_tips += transaction.tip

        method = payment_methods.setdefault(transaction.payment_method, [0, ZERO])
        method[0] += 1
        method[1] += transaction.total

        till = tills.setdefault(transaction.till_key, [0, ZERO])
        till[0] += 1
        till[1] += transaction.total

    if day_range is not None:
        logger.debug(
            "closing_summarized",
            start=day_range.start.isoformat(),
            end=day_range.end.isoformat(),
            transactions=count,
        )

    return ClosingSummary(
        transactions=count,
        total_sales=total_sales,
        total_tax=total_tax,
        total_tips=total_tips,
        payment_methods={
            name: PaymentMethodTotals(count=c, total=t)
            for name, (c, t) in payment_methods.items()
        },
        tills={key: TillTotals(transactions=c, total=t) for key, (c, t) in tills.items()},
    )


class ClosingService:
    """Creates daily closings from the transaction store."""

    def __init__(self, transactions: TransactionStore, closings: ClosingStore):
        self._transactions = transactions
        self._closings = closings
        self._logger = logger.bind(component="closing_service")

    async def calculate_summary(self, start: datetime, end: datetime) -> ClosingSummary:
        """Summarize transactions created in ``[start, end)``."""
        day_range = BusinessDayRange(start=start, end=end)
        transactions = await self._transactions.find_in_range(start, end)
        return summarize(transactions, day_range)

    async def create_daily_closing(
        self,
        closed_at: datetime,
        user_id: int | str,
        start: datetime | None = None,
    ) -> DailyClosing:
        """Summarize and persist a closing.

        Args:
            closed_at: End of the closed period.
            user_id: User the closing is attributed to.
            start: Start of the period; defaults to midnight of ``closed_at``.

        Returns:
            The created closing.
        """
        if start is None:
            start = closed_at.replace(hour=0, minute=0, second=0, microsecond=0)

        summary = await self.calculate_summary(start, closed_at)
        closing = await self._closings.create(closed_at, summary, user_id)

        self._logger.info(
            "daily_closing_created",
            closing_id=closing.id,
            start=start.isoformat(),
            closed_at=closed_at.isoformat(),
            transactions=summary.transactions,
            total_sales=str(summary.total_sales),
        )
        return closing

    async def close_business_day(
        self,
        closed_at: datetime,
        user_id: int | str,
        settings: BusinessDaySettings,
    ) -> DailyClosing:
        """Close the current business day on request of a user.

        The period starts at the most recent business day start before
        ``closed_at``, or at the last manual close if that is more recent.
        """
        day_range = compute_just_ended_range(
            closed_at, settings.config, settings.last_manual_close
        )
        return await self.create_daily_closing(closed_at, user_id, day_range.start)
