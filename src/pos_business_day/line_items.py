"""Normalization of transaction line items.

Depending on the store driver, ``Transaction.items`` arrives as a list, a
JSON-encoded string, or an already-decoded object. ``normalize_items`` is the
single place that turns any of these into typed line items.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import structlog

from pos_business_day.models import to_decimal

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LineItem:
    """One product line of a sale."""

    product_id: int | str
    quantity: Decimal
    price: Decimal
    variant_id: int | str | None = None
    name: str = ""

    @property
    def revenue(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class ParsedItems:
    items: list[LineItem]
    dropped: int = 0


@dataclass(frozen=True)
class SkippedItems:
    reason: str


ItemsResult = ParsedItems | SkippedItems


def _is_number(value: Any) -> bool:
    """Finite int, float or Decimal; NaN and infinities count as malformed."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, Decimal):
        return value.is_finite()
    return False


def _to_line_item(raw: Any) -> LineItem | None:
    if not isinstance(raw, dict):
        return None
    product_id = raw.get("productId")
    quantity = raw.get("quantity")
    price = raw.get("price")
    if not product_id or not _is_number(quantity) or not _is_number(price):
        return None
    return LineItem(
        product_id=product_id,
        quantity=to_decimal(quantity),
        price=to_decimal(price),
        variant_id=raw.get("variantId"),
        name=str(raw.get("name", "")),
    )


def normalize_items(raw: Any, transaction_id: Any = None) -> ItemsResult:
    """Normalize the items of one transaction.

    Entries without a product id or with non-numeric quantity or price are
    dropped individually; a payload that cannot be read at all yields
    ``SkippedItems`` with the reason.

    Args:
        raw: The items value as stored.
        transaction_id: Used only for log context.

    Returns:
        ``ParsedItems`` or ``SkippedItems``.
    """
    if raw is None:
        return SkippedItems(reason="missing")

    value = raw
    if isinstance(raw, (str, bytes)):
        try:
            value = json.loads(raw)
        except ValueError as e:
            logger.warning(
                "line_items_unparseable",
                transaction_id=transaction_id,
                error=str(e),
                preview=str(raw)[:100],
            )
            return SkippedItems(reason="invalid_json")

    # Some drivers wrap the list in an object
    if isinstance(value, dict):
        value = value.get("items")

    if not isinstance(value, list):
        return SkippedItems(reason="not_a_list")

    items: list[LineItem] = []
    for entry in value:
        item = _to_line_item(entry)
        if item is not None:
            items.append(item)

    return ParsedItems(items=items, dropped=len(value) - len(items))
