"""Domain records shared by the aggregators, stores and scheduler.

Records coming from a store driver are loosely typed (numbers may arrive as
floats or strings, timestamps as ISO strings). The ``from_dict`` constructors
and ``__post_init__`` hooks normalize them so the aggregators only ever see
``Decimal`` amounts and ``datetime`` instants.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pos_business_day.time_window import BusinessDayConfig

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a money amount to Decimal (None counts as zero).

    Raises:
        ValueError: For booleans, unparseable values, NaN and infinities.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def parse_datetime(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp (a trailing "Z" means UTC)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise ValueError(f"Invalid timestamp: {value!r}")


def _optional_datetime(value: Any) -> datetime | None:
    return parse_datetime(value) if value else None


@dataclass
class Transaction:
    """A completed sale, read-only to the engine."""

    id: int | str
    created_at: datetime
    total: Decimal
    payment_method: str
    till_id: int | str
    till_name: str
    tax: Decimal = ZERO
    tip: Decimal = ZERO
    items: Any = None

    def __post_init__(self) -> None:
        self.created_at = parse_datetime(self.created_at)
        self.total = to_decimal(self.total)
        self.tax = to_decimal(self.tax)
        self.tip = to_decimal(self.tip)

    @property
    def till_key(self) -> str:
        return f"{self.till_id}-{self.till_name}"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Transaction:
        """Build a transaction from an API/store row (camelCase keys)."""
        return cls(
            id=data["id"],
            created_at=data["createdAt"],
            total=data.get("total"),
            tax=data.get("tax"),
            tip=data.get("tip"),
            payment_method=str(data.get("paymentMethod", "")),
            till_id=data.get("tillId", ""),
            till_name=str(data.get("tillName", "")),
            items=data.get("items"),
        )


@dataclass(frozen=True)
class PaymentMethodTotals:
    count: int
    total: Decimal


@dataclass(frozen=True)
class TillTotals:
    transactions: int
    total: Decimal


@dataclass(frozen=True)
class ClosingSummary:
    """Totals of a closed business day."""

    transactions: int = 0
    total_sales: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_tips: Decimal = ZERO
    payment_methods: Mapping[str, PaymentMethodTotals] = field(default_factory=dict)
    tills: Mapping[str, TillTotals] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the JSON shape stored with a closing."""
        return {
            "transactions": self.transactions,
            "totalSales": float(self.total_sales),
            "totalTax": float(self.total_tax),
            "totalTips": float(self.total_tips),
            "paymentMethods": {
                name: {"count": totals.count, "total": float(totals.total)}
                for name, totals in self.payment_methods.items()
            },
            "tills": {
                key: {"transactions": totals.transactions, "total": float(totals.total)}
                for key, totals in self.tills.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClosingSummary:
        return cls(
            transactions=int(data.get("transactions", 0)),
            total_sales=to_decimal(data.get("totalSales")),
            total_tax=to_decimal(data.get("totalTax")),
            total_tips=to_decimal(data.get("totalTips")),
            payment_methods={
                name: PaymentMethodTotals(
                    count=int(totals.get("count", 0)),
                    total=to_decimal(totals.get("total")),
                )
                for name, totals in (data.get("paymentMethods") or {}).items()
            },
            tills={
                key: TillTotals(
                    transactions=int(totals.get("transactions", 0)),
                    total=to_decimal(totals.get("total")),
                )
                for key, totals in (data.get("tills") or {}).items()
            },
        )


@dataclass(frozen=True)
class DailyClosing:
    """A persisted closing record. Immutable once created."""

    id: int | str
    closed_at: datetime
    summary: ClosingSummary
    user_id: int | str
    created_at: datetime | None = None
    user_name: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DailyClosing:
        return cls(
            id=data["id"],
            closed_at=parse_datetime(data["closedAt"]),
            summary=ClosingSummary.from_dict(data.get("summary") or {}),
            user_id=data["userId"],
            created_at=_optional_datetime(data.get("createdAt")),
            user_name=data.get("userName"),
        )


@dataclass(frozen=True)
class User:
    id: int | str
    username: str
    name: str = ""
    role: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> User:
        return cls(
            id=data["id"],
            username=str(data.get("username", "")),
            name=str(data.get("name", "")),
            role=str(data.get("role", "")),
        )


@dataclass
class BusinessDaySettings:
    """The singleton settings row, reduced to what the engine reads."""

    auto_start_time: str = "06:00"
    business_day_end_hour: str | None = None
    auto_close_enabled: bool = False
    last_manual_close: datetime | None = None
    tax_mode: str = "none"

    @property
    def config(self) -> BusinessDayConfig:
        return BusinessDayConfig.from_strings(
            self.auto_start_time, self.business_day_end_hour
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BusinessDaySettings:
        """Build from the API shape ``{"tax": {...}, "businessDay": {...}}``."""
        business_day = data.get("businessDay") or {}
        tax = data.get("tax") or {}
        return cls(
            auto_start_time=business_day.get("autoStartTime") or "06:00",
            business_day_end_hour=business_day.get("businessDayEndHour"),
            auto_close_enabled=bool(business_day.get("autoCloseEnabled", False)),
            last_manual_close=_optional_datetime(business_day.get("lastManualClose")),
            tax_mode=tax.get("mode", "none"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tax": {"mode": self.tax_mode},
            "businessDay": {
                "autoStartTime": self.auto_start_time,
                "businessDayEndHour": self.business_day_end_hour,
                "autoCloseEnabled": self.auto_close_enabled,
                "lastManualClose": (
                    self.last_manual_close.isoformat() if self.last_manual_close else None
                ),
            },
        }


@dataclass(frozen=True)
class SettingsSnapshot:
    """Cached scheduling-relevant settings, stamped with the fetch time."""

    auto_close_enabled: bool
    business_day_end_hour: str
    auto_start_time: str
    last_manual_close: datetime | None
    fetched_at: datetime

    @property
    def config(self) -> BusinessDayConfig:
        return BusinessDayConfig.from_strings(
            self.auto_start_time, self.business_day_end_hour
        )
