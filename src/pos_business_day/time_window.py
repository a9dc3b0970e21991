"""Business day windows, including days that cross midnight.

A bar open from 22:00 to 04:00 has a business day spanning two calendar
days: a sale at 02:00 on Wednesday belongs to Tuesday's business day.

All functions work on wall-clock datetimes. Pass timezone-aware datetimes in
the business timezone (see ``FlatSettings.business_timezone``) so that day
boundaries are resolved the same way on every server.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from pos_business_day.errors import InvalidRangeError, InvalidTimeError

DAY = timedelta(hours=24)
MINUTES_PER_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """A wall-clock time with minute granularity."""

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise InvalidTimeError(f"{self.hour}:{self.minute}")

    @property
    def minutes(self) -> int:
        """Minutes since midnight."""
        return self.hour * 60 + self.minute

    def on(self, reference: datetime) -> datetime:
        """Return the reference's calendar date at this time of day."""
        return reference.replace(
            hour=self.hour, minute=self.minute, second=0, microsecond=0
        )

    def matches(self, moment: datetime) -> bool:
        """Check whether a moment falls in this hour:minute."""
        return moment.hour == self.hour and moment.minute == self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


def parse_time_string(value: str) -> TimeOfDay:
    """Parse an "HH:MM" string.

    Raises:
        InvalidTimeError: If the string is malformed or out of range.
    """
    if not isinstance(value, str):
        raise InvalidTimeError(value)
    match = _TIME_PATTERN.match(value)
    if not match:
        raise InvalidTimeError(value)
    return TimeOfDay(hour=int(match.group(1)), minute=int(match.group(2)))


@dataclass(frozen=True)
class BusinessDayConfig:
    """Start and end time of a business day.

    A day whose end time is at or before its start time wraps past midnight.
    Equal start and end times describe a full 24 hour day.
    """

    start_time: TimeOfDay
    end_time: TimeOfDay

    @classmethod
    def from_strings(cls, start: str, end: str | None = None) -> BusinessDayConfig:
        """Build a config from "HH:MM" strings; end defaults to start."""
        start_time = parse_time_string(start)
        end_time = parse_time_string(end) if end else start_time
        return cls(start_time=start_time, end_time=end_time)

    @property
    def is_overnight(self) -> bool:
        return self.end_time <= self.start_time

    @property
    def day_length(self) -> timedelta:
        minutes = self.end_time.minutes - self.start_time.minutes
        if minutes <= 0:
            minutes += MINUTES_PER_DAY
        return timedelta(minutes=minutes)


@dataclass(frozen=True)
class BusinessDayRange:
    """Half-open ``[start, end)`` interval of a business day."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidRangeError(
                f"Business day must start before it ends: {self.start} >= {self.end}"
            )

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def compute_range(reference: datetime, config: BusinessDayConfig) -> BusinessDayRange:
    """Return the business day containing the reference instant.

    If the reference is before today's start time, the day started yesterday.

    Args:
        reference: Instant to locate.
        config: Business day configuration.

    Returns:
        The business day range, ``start <= reference``.
    """
    today_at_start = config.start_time.on(reference)
    if reference >= today_at_start:
        start = today_at_start
    else:
        start = today_at_start - DAY
    return BusinessDayRange(start=start, end=start + config.day_length)


def compute_just_ended_range(
    now: datetime,
    config: BusinessDayConfig,
    manual_close_override: datetime | None = None,
) -> BusinessDayRange:
    """Return the business day that ends at ``now``.

    The start is the most recent occurrence of the start time strictly before
    ``now`` (at minute granularity). A manual close later than that start
    truncates the window, so nothing already closed is counted twice.

    Args:
        now: Close instant, used as the range end.
        config: Business day configuration.
        manual_close_override: Time of the last manual close, if any.

    Returns:
        The range to close.
    """
    boundary = now.replace(second=0, microsecond=0)
    today_at_start = config.start_time.on(now)
    if today_at_start < boundary:
        start = today_at_start
    else:
        start = today_at_start - DAY

    return truncate_at_manual_close(
        BusinessDayRange(start=start, end=now), manual_close_override
    )


def truncate_at_manual_close(
    day_range: BusinessDayRange, manual_close: datetime | None
) -> BusinessDayRange:
    """Move the start of a range up to a later manual close."""
    if manual_close is None or not (day_range.start < manual_close < day_range.end):
        return day_range
    return BusinessDayRange(start=manual_close, end=day_range.end)


def transaction_business_day(timestamp: datetime, config: BusinessDayConfig) -> datetime:
    """Return the start of the business day a timestamp belongs to."""
    return compute_range(timestamp, config).start


def business_day_on(day: datetime, config: BusinessDayConfig) -> BusinessDayRange:
    """Return the business day that starts on the given calendar date."""
    start = config.start_time.on(day)
    return BusinessDayRange(start=start, end=start + config.day_length)


def business_days_in_range(
    start: datetime, end: datetime, config: BusinessDayConfig
) -> list[BusinessDayRange]:
    """Return one business day per calendar date from start to end inclusive."""
    ranges: list[BusinessDayRange] = []
    current = start
    while current.date() <= end.date():
        ranges.append(business_day_on(current, config))
        current += DAY
    return ranges


def hours_in_business_day(config: BusinessDayConfig) -> int:
    """Number of whole hours in a business day (minutes are ignored)."""
    hours = config.end_time.hour - config.start_time.hour
    if hours <= 0:
        hours += 24
    return hours
