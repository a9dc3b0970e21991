"""POS business day - automatic closing, closing summaries and hourly sales."""

__version__ = "0.1.0"

from pos_business_day.cache import SettingsCache
from pos_business_day.closing import ClosingService, summarize
from pos_business_day.config import configure_logging, get_settings
from pos_business_day.errors import (
    BusinessDayError,
    ClosingInProgressError,
    InvalidRangeError,
    InvalidTimeError,
)
from pos_business_day.hourly import aggregate_hourly, compare
from pos_business_day.line_items import normalize_items
from pos_business_day.models import (
    BusinessDaySettings,
    ClosingSummary,
    DailyClosing,
    SettingsSnapshot,
    Transaction,
    User,
)
from pos_business_day.scheduler import BusinessDayScheduler
from pos_business_day.service import BusinessDayService
from pos_business_day.stores import InMemoryBackOffice, SystemClock
from pos_business_day.time_window import (
    BusinessDayConfig,
    BusinessDayRange,
    TimeOfDay,
    compute_just_ended_range,
    compute_range,
    parse_time_string,
)

__all__ = [
    # Version
    "__version__",
    # Time windows
    "TimeOfDay",
    "BusinessDayConfig",
    "BusinessDayRange",
    "parse_time_string",
    "compute_range",
    "compute_just_ended_range",
    # Aggregation
    "summarize",
    "aggregate_hourly",
    "compare",
    "normalize_items",
    # Records
    "Transaction",
    "ClosingSummary",
    "DailyClosing",
    "BusinessDaySettings",
    "SettingsSnapshot",
    "User",
    # Services
    "ClosingService",
    "SettingsCache",
    "BusinessDayScheduler",
    "BusinessDayService",
    "InMemoryBackOffice",
    "SystemClock",
    # Errors
    "BusinessDayError",
    "ClosingInProgressError",
    "InvalidRangeError",
    "InvalidTimeError",
    # Config
    "get_settings",
    "configure_logging",
]
