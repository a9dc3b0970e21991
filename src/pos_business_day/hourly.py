"""Hour-bucketed sales of a business day and day-over-day comparison.

Buckets are aligned to the start hour of the business day and wrap at
midnight, so a 22:00-04:00 day yields the labels 22:00, 23:00, 00:00 ... 03:00.
Only whole-hour business days are supported here.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

import structlog

from pos_business_day.models import CENTS, ZERO, Transaction
from pos_business_day.stores import TransactionStore
from pos_business_day.time_window import (
    BusinessDayConfig,
    BusinessDayRange,
    compute_range,
    hours_in_business_day,
)

logger = structlog.get_logger(__name__)

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class HourlyDataPoint:
    hour: str
    total: Decimal
    transaction_count: int
    average_transaction: Decimal


@dataclass(frozen=True)
class HourlySummary:
    total_sales: Decimal
    total_transactions: int
    peak_hour: str
    peak_hour_total: Decimal
    average_hourly: Decimal


@dataclass(frozen=True)
class HourlySalesResult:
    date: date
    business_day_start: datetime
    business_day_end: datetime
    hourly_data: list[HourlyDataPoint]
    summary: HourlySummary


@dataclass(frozen=True)
class HourlyDifference:
    hour: str
    difference: Decimal
    percent_change: Decimal


@dataclass(frozen=True)
class SummaryDifference:
    total_sales_difference: Decimal
    total_sales_percent_change: Decimal
    transaction_count_difference: int
    transaction_count_percent_change: Decimal


@dataclass(frozen=True)
class ComparisonResult:
    period1: HourlySalesResult
    period2: HourlySalesResult
    hourly_differences: list[HourlyDifference]
    summary_difference: SummaryDifference


def hour_label(hour: int) -> str:
    return f"{hour:02d}:00"


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def percent_change(current: Decimal | int, previous: Decimal | int) -> Decimal:
    """Relative change from previous to current, in percent.

    A change from zero to a positive value counts as 100%.
    """
    current = Decimal(current)
    previous = Decimal(previous)
    if previous > 0:
        return _quantize((current - previous) / previous * HUNDRED)
    return HUNDRED if current > 0 else ZERO


def aggregate_hourly(
    transactions: Iterable[Transaction],
    day_range: BusinessDayRange,
    start_hour: int | None = None,
    bucket_count: int | None = None,
) -> HourlySalesResult:
    """Bucket the transactions of a business day by hour of day.

    Args:
        transactions: Transactions to bucket; those outside the range are ignored.
        day_range: The business day.
        start_hour: Label of the first bucket; defaults to the range start hour.
        bucket_count: Number of buckets; defaults to the range length in hours.

    Returns:
        The hourly series and its summary.
    """
    if start_hour is None:
        start_hour = day_range.start.hour
    if bucket_count is None:
        bucket_count = day_range.duration // timedelta(hours=1)
    if bucket_count < 1:
        raise ValueError("A business day must span at least one whole hour")

    tz = day_range.start.tzinfo
    totals = [ZERO] * bucket_count
    counts = [0] * bucket_count

    for transaction in transactions:
        created_at = transaction.created_at
        if not day_range.contains(created_at):
            continue
        if tz is not None and created_at.tzinfo is not None:
            created_at = created_at.astimezone(tz)

        index = (created_at.hour - start_hour + 24) % 24
        if index >= bucket_count:
            continue
        totals[index] += transaction.total
        counts[index] += 1

    hourly_data = [
        HourlyDataPoint(
            hour=hour_label((start_hour + i) % 24),
            total=totals[i],
            transaction_count=counts[i],
            average_transaction=_quantize(totals[i] / counts[i]) if counts[i] else ZERO,
        )
        for i in range(bucket_count)
    ]

    peak = hourly_data[0]
    for point in hourly_data[1:]:
        if point.total > peak.total:
            peak = point

    total_sales = sum(totals, ZERO)
    summary = HourlySummary(
        total_sales=total_sales,
        total_transactions=sum(counts),
        peak_hour=peak.hour,
        peak_hour_total=peak.total,
        average_hourly=_quantize(total_sales / bucket_count),
    )

    return HourlySalesResult(
        date=day_range.start.date(),
        business_day_start=day_range.start,
        business_day_end=day_range.end,
        hourly_data=hourly_data,
        summary=summary,
    )


def compare(result1: HourlySalesResult, result2: HourlySalesResult) -> ComparisonResult:
    """Compare two hourly series bucket by bucket.

    Buckets are paired by position, so both series must share start hour and
    length.

    Raises:
        ValueError: If the series have different lengths.
    """
    if len(result1.hourly_data) != len(result2.hourly_data):
        raise ValueError(
            "Cannot compare hourly series of different lengths: "
            f"{len(result1.hourly_data)} != {len(result2.hourly_data)}"
        )

    differences = [
        HourlyDifference(
            hour=hour1.hour,
            difference=hour1.total - hour2.total,
            percent_change=percent_change(hour1.total, hour2.total),
        )
        for hour1, hour2 in zip(result1.hourly_data, result2.hourly_data)
    ]

    summary1 = result1.summary
    summary2 = result2.summary
    return ComparisonResult(
        period1=result1,
        period2=result2,
        hourly_differences=differences,
        summary_difference=SummaryDifference(
            total_sales_difference=summary1.total_sales - summary2.total_sales,
            total_sales_percent_change=percent_change(
                summary1.total_sales, summary2.total_sales
            ),
            transaction_count_difference=(
                summary1.total_transactions - summary2.total_transactions
            ),
            transaction_count_percent_change=percent_change(
                summary1.total_transactions, summary2.total_transactions
            ),
        ),
    )


async def hourly_sales_for_day(
    store: TransactionStore, reference: datetime, config: BusinessDayConfig
) -> HourlySalesResult:
    """Fetch and bucket the business day containing ``reference``."""
    day_range = compute_range(reference, config)
    transactions = await store.find_in_range(day_range.start, day_range.end)
    logger.debug(
        "hourly_sales_fetched",
        start=day_range.start.isoformat(),
        transactions=len(transactions),
    )
    return aggregate_hourly(
        transactions,
        day_range,
        start_hour=config.start_time.hour,
        bucket_count=hours_in_business_day(config),
    )


async def compare_days(
    store: TransactionStore,
    reference1: datetime,
    reference2: datetime,
    config: BusinessDayConfig,
) -> ComparisonResult:
    """Compare the business days containing two reference instants."""
    period1 = await hourly_sales_for_day(store, reference1, config)
    period2 = await hourly_sales_for_day(store, reference2, config)
    return compare(period1, period2)
