"""Per-product sales metrics built from transaction line items."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

import structlog

from pos_business_day.line_items import ParsedItems, normalize_items
from pos_business_day.models import CENTS, ZERO, Transaction

logger = structlog.get_logger(__name__)

SortBy = Literal["revenue", "quantity", "name"]
SortOrder = Literal["asc", "desc"]

# Size of the list when only top performers are requested
TOP_PERFORMERS = 5


@dataclass(frozen=True)
class ProductInfo:
    """Catalog data used to label a product."""

    name: str
    category_id: int | str | None = None
    category_name: str = "Uncategorized"


@dataclass
class ProductPerformance:
    id: int | str
    name: str
    category_id: int | str | None
    category_name: str
    total_quantity: Decimal = ZERO
    total_revenue: Decimal = ZERO
    average_price: Decimal = ZERO
    transaction_count: int = 0


@dataclass(frozen=True)
class PageMetadata:
    total_count: int
    total_pages: int
    current_page: int
    has_next_page: bool
    has_prev_page: bool


@dataclass(frozen=True)
class TopProduct:
    name: str
    revenue: Decimal
    quantity: Decimal


@dataclass(frozen=True)
class ProductPerformanceResult:
    products: list[ProductPerformance]
    metadata: PageMetadata
    total_revenue: Decimal
    total_units_sold: Decimal
    top_product: TopProduct | None


def _sort_key(sort_by: SortBy):
    if sort_by == "quantity":
        return lambda p: p.total_quantity
    if sort_by == "name":
        return lambda p: p.name.casefold()
    return lambda p: p.total_revenue


def aggregate_product_performance(
    transactions: Iterable[Transaction],
    catalog: Mapping[int | str, ProductInfo],
    *,
    product_id: int | str | None = None,
    category_id: int | str | None = None,
    sort_by: SortBy = "revenue",
    sort_order: SortOrder = "desc",
    page: int = 1,
    limit: int = 10,
    include_all_products: bool = True,
) -> ProductPerformanceResult:
    """Aggregate line items into per-product performance.

    Args:
        transactions: Transactions to read line items from.
        catalog: Product id to catalog info; unknown products are skipped.
        product_id: Only report this product.
        category_id: Only report products of this category.
        sort_by: revenue, quantity or name.
        sort_order: asc or desc.
        page: 1-based page number.
        limit: Page size.
        include_all_products: False returns only the top performers.

    Returns:
        The paginated result with summary totals over all matching products.
    """
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive")

    metrics: dict[int | str, ProductPerformance] = {}
    skipped = 0

    for transaction in transactions:
        result = normalize_items(transaction.items, transaction_id=transaction.id)
        if not isinstance(result, ParsedItems):
            skipped += 1
            continue

        for item in result.items:
            info = catalog.get(item.product_id)
            if info is None:
                continue

            performance = metrics.get(item.product_id)
            if performance is None:
                performance = ProductPerformance(
                    id=item.product_id,
                    name=info.name,
                    category_id=info.category_id,
                    category_name=info.category_name,
                )
                metrics[item.product_id] = performance

            performance.total_quantity += item.quantity
            performance.total_revenue += item.revenue
            performance.transaction_count += 1

    if skipped:
        logger.debug("product_performance_skipped_transactions", count=skipped)

    products = list(metrics.values())
    if category_id is not None:
        products = [p for p in products if p.category_id == category_id]
    if product_id is not None:
        products = [p for p in products if p.id == product_id]

    for product in products:
        if product.total_quantity > 0:
            product.average_price = (product.total_revenue / product.total_quantity).quantize(
                CENTS, rounding=ROUND_HALF_UP
            )

    products.sort(key=_sort_key(sort_by), reverse=sort_order == "desc")

    total_revenue = sum((p.total_revenue for p in products), ZERO)
    total_units = sum((p.total_quantity for p in products), ZERO)
    top_product = (
        TopProduct(
            name=products[0].name,
            revenue=products[0].total_revenue,
            quantity=products[0].total_quantity,
        )
        if products
        else None
    )

    total_count = len(products)
    start_index = (page - 1) * limit
    end_index = start_index + limit
    if include_all_products:
        page_products = products[start_index:end_index]
    else:
        page_products = products[:TOP_PERFORMERS]

    return ProductPerformanceResult(
        products=page_products,
        metadata=PageMetadata(
            total_count=total_count,
            total_pages=math.ceil(total_count / limit),
            current_page=page,
            has_next_page=end_index < total_count,
            has_prev_page=start_index > 0,
        ),
        total_revenue=total_revenue,
        total_units_sold=total_units,
        top_product=top_product,
    )
