"""Tests for line item normalization."""

import json
from decimal import Decimal

import pytest

from pos_business_day.line_items import (
    LineItem,
    ParsedItems,
    SkippedItems,
    normalize_items,
)

ITEMS = [
    {"productId": 1, "quantity": 2, "price": 4.5, "name": "Beer"},
    {"productId": 3, "variantId": 9, "quantity": 1, "price": 3},
]


class TestNormalizeItems:
    """Tests for the three stored shapes and malformed data."""

    def test_list(self):
        result = normalize_items(ITEMS)

        assert isinstance(result, ParsedItems)
        assert result.dropped == 0
        assert result.items[0] == LineItem(
            product_id=1, quantity=Decimal("2"), price=Decimal("4.5"), name="Beer"
        )
        assert result.items[1].variant_id == 9

    def test_json_string(self):
        result = normalize_items(json.dumps(ITEMS))

        assert isinstance(result, ParsedItems)
        assert [item.product_id for item in result.items] == [1, 3]

    def test_wrapped_object(self):
        result = normalize_items({"items": ITEMS})

        assert isinstance(result, ParsedItems)
        assert len(result.items) == 2

    def test_missing(self):
        assert normalize_items(None) == SkippedItems(reason="missing")

    def test_invalid_json(self):
        assert normalize_items("{not json", transaction_id=5) == SkippedItems(
            reason="invalid_json"
        )

    @pytest.mark.parametrize("raw", [42, {"foo": 1}, "\"just a string\""])
    def test_not_a_list(self, raw):
        assert normalize_items(raw) == SkippedItems(reason="not_a_list")

    def test_bad_entries_are_dropped(self):
        raw = [
            ITEMS[0],
            {"quantity": 1, "price": 2},
            {"productId": 2, "quantity": "1", "price": 2},
            {"productId": 2, "quantity": 1, "price": True},
            "not an entry",
        ]

        result = normalize_items(raw)

        assert isinstance(result, ParsedItems)
        assert len(result.items) == 1
        assert result.dropped == 4

    def test_non_finite_numbers_are_dropped(self):
        """json.loads accepts NaN and Infinity literals."""
        raw = (
            '[{"productId": 1, "quantity": NaN, "price": 2.5},'
            ' {"productId": 2, "quantity": 1, "price": Infinity},'
            ' {"productId": 3, "quantity": 1, "price": 2.5}]'
        )

        result = normalize_items(raw)

        assert isinstance(result, ParsedItems)
        assert [item.product_id for item in result.items] == [3]
        assert result.dropped == 2

    def test_non_finite_decimals_are_dropped(self):
        raw = [{"productId": 1, "quantity": Decimal("NaN"), "price": Decimal("2")}]

        assert normalize_items(raw) == ParsedItems(items=[], dropped=1)

    def test_empty_list(self):
        result = normalize_items("[]")

        assert result == ParsedItems(items=[], dropped=0)

    def test_revenue(self):
        item = LineItem(product_id=1, quantity=Decimal("3"), price=Decimal("2.50"))

        assert item.revenue == Decimal("7.50")
