"""
Product analytics service.

- Business-wide product performance table (sortable)
- Per-asset deep dive: sales metrics, negotiation outcomes, conversion
  funnel, price intelligence against the category market, and trends
"""

import math
import re
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional
import structlog

from models.analytics import (
    ProductPerformanceRow,
    AssetSummary,
    AssetMetrics,
    NegotiationStats,
    ConversionFunnel,
    InterestBreakdown,
    PriceIntelligence,
    RevenuePoint,
    ViewsPoint,
    AssetTrends,
    AssetDetailsResponse,
)
from models.records import AssetRecord, AssetStatus, InterestRecord, SaleRecord
from services.kpi_service import (
    ZERO,
    HUNDRED,
    cost_of,
    count_interests,
    deal_value,
    percent,
    quantize,
    safe_ratio,
    sold_price,
    to_decimal,
)
from services.record_service import get_record_service
from services.time_range_service import RangeToken, resolve_range
from exceptions import InvalidSortFieldError

logger = structlog.get_logger(__name__)

DAY_SECONDS = 86400
MAX_VIEW_POINTS = 30
DEFAULT_SORT = "created_at"

OVERPRICED = "Overpriced"
UNDERPRICED = "Underpriced"
AT_MARKET = "At Market"


def _snake(name: str) -> str:
    """createdAt -> created_at"""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _days_between(start: Optional[datetime], end: Optional[datetime]) -> float:
    if start is None or end is None:
        return 0.0
    return (end - start).total_seconds() / DAY_SECONDS


def find_winning_interest(
    sale: SaleRecord,
    interests: list[InterestRecord],
) -> Optional[InterestRecord]:
    """First interest (oldest) raised by the sale's buyer."""
    for interest in interests:
        if interest.buyer_id and interest.buyer_id == sale.buyer_id:
            return interest
    return None


def negotiation_days(sale: SaleRecord, interests: list[InterestRecord]) -> int:
    """Whole days from the buyer's first interest to the deal (0 if unknown)."""
    interest = find_winning_interest(sale, interests)
    if interest is None:
        return 0
    days = _days_between(interest.created_at, sale.occurred_at)
    return max(0, math.ceil(days))


# ===================
# SORTING
# ===================

SORTABLE_FIELDS = list(ProductPerformanceRow.model_fields.keys())


def sort_rows(
    rows: list[ProductPerformanceRow],
    sort_by: Optional[str] = DEFAULT_SORT,
    order: Optional[str] = "desc",
) -> list[ProductPerformanceRow]:
    """
    Sort performance rows by any row field.

    Strings compare case-insensitively. Nulls sort as the smallest value:
    last when descending, first when ascending.

    Raises:
        InvalidSortFieldError: If sort_by is not a row field
    """
    field_name = _snake(sort_by) if sort_by else DEFAULT_SORT
    if field_name not in SORTABLE_FIELDS:
        raise InvalidSortFieldError(sort_by, SORTABLE_FIELDS)

    descending = (order or "desc").lower() != "asc"

    def key(row: ProductPerformanceRow):
        value = getattr(row, field_name)
        if value is None:
            return (0, "")
        if isinstance(value, str):
            return (1, value.lower())
        return (1, value)

    return sorted(rows, key=key, reverse=descending)


# ===================
# DEEP DIVE HELPERS
# ===================

def price_position(listing: Optional[Decimal], market_avg: Decimal) -> str:
    """Where the listing sits against the market average."""
    if listing is None or listing == market_avg:
        return AT_MARKET
    return OVERPRICED if listing > market_avg else UNDERPRICED


def price_deviation(listing: Optional[Decimal], market_avg: Decimal) -> int:
    """% above (+) or below (-) market, 0 when the market average is 0."""
    if listing is None:
        return 0
    return int(quantize(safe_ratio(to_decimal(listing) - market_avg, market_avg, HUNDRED), 0))


def revenue_graph(sales: list[SaleRecord], asset: AssetRecord) -> list[RevenuePoint]:
    """Daily revenue and profit, only days with deals, oldest first."""
    cost = cost_of(asset)
    days: dict[date, list] = defaultdict(lambda: [ZERO, ZERO])

    for sale in sales:
        if sale.deal_date is None:
            continue
        value = deal_value(sale)
        bucket = days[sale.deal_date.date()]
        bucket[0] += value
        bucket[1] += value - cost

    return [
        RevenuePoint(date=day, amount=amount, profit=profit)
        for day, (amount, profit) in sorted(days.items())
    ]


def views_ramp(asset: AssetRecord, now: datetime) -> list[ViewsPoint]:
    """
    Cumulative views from the listing date.

    One point per day since listing, at most 30, rising linearly so the
    last point equals the asset's current view count.
    """
    views = asset.views or 0
    created = asset.created_at or now
    days_listed = math.ceil(_days_between(created, now))
    points = min(max(days_listed, 1), MAX_VIEW_POINTS)

    start = created.date()
    return [
        ViewsPoint(date=start + timedelta(days=i), views=views * (i + 1) // points)
        for i in range(points)
    ]


class ProductAnalyticsService:
    """
    Product-level analytics for sellers.
    """

    def __init__(self):
        self.records = get_record_service()

    # ===================
    # PERFORMANCE TABLE
    # ===================

    def get_all_performance(
        self,
        business_id: str,
        sort_by: Optional[str] = DEFAULT_SORT,
        order: Optional[str] = "desc",
    ) -> list[ProductPerformanceRow]:
        """
        One performance row per asset of a business.

        Args:
            business_id: Business whose assets to list
            sort_by: Any ProductPerformanceRow field (default created_at)
            order: "asc" or "desc" (default desc)

        Returns:
            Sorted list of ProductPerformanceRow

        Raises:
            InvalidSortFieldError: If sort_by is not a row field
        """
        logger.info("product_performance_requested", business_id=business_id, sort_by=sort_by, order=order)

        assets = self.records.list_business_assets(business_id)
        asset_ids = [a.id for a in assets]
        sales = self.records.list_sales_for_assets(asset_ids)
        interests = self.records.list_interests_for_assets(asset_ids)

        first_sale: dict[str, SaleRecord] = {}
        for sale in sales:
            first_sale.setdefault(sale.asset_id, sale)

        interests_by_asset: dict[str, list] = defaultdict(list)
        for interest in interests:
            interests_by_asset[interest.asset_id].append(interest)

        rows = []
        for asset in assets:
            sale = first_sale.get(asset.id)
            cost = cost_of(asset)

            sold = profit = margin = duration = None
            if sale is not None:
                sold = sold_price(sale)
                profit = sold - cost
                margin = percent(profit, sold)
                duration = negotiation_days(sale, interests_by_asset[asset.id])

            rows.append(ProductPerformanceRow(
                id=asset.id,
                title=asset.title,
                category=asset.category,
                status="Active" if asset.status == AssetStatus.ACTIVE.value else "Inactive",
                views=asset.views or 0,
                listing_price=asset.price,
                cost_price=cost,
                sold_price=sold,
                profit=profit,
                margin=margin,
                negotiation_duration=duration,
                sale_date=sale.occurred_at if sale else None,
                created_at=asset.created_at,
            ))

        rows = sort_rows(rows, sort_by, order)

        logger.info("product_performance_calculated", business_id=business_id, products=len(rows))

        return rows

    # ===================
    # DEEP DIVE
    # ===================

    def get_details(
        self,
        asset_id: str,
        range_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AssetDetailsResponse:
        """
        Deep dive into a single asset.

        Args:
            asset_id: Asset to analyse
            range_token: Range of sales/interests to include (default all)
            now: Evaluation instant (defaults to current UTC time)

        Returns:
            AssetDetailsResponse

        Raises:
            AssetNotFoundError: If the asset doesn't exist
        """
        resolved = resolve_range(range_token or RangeToken.ALL.value, now)

        logger.info("asset_details_requested", asset_id=asset_id, range=resolved.token.value)

        asset = self.records.get_asset(asset_id)

        sales = self.records.list_sales_for_assets([asset.id], since=resolved.start)
        interests = self.records.list_interests_for_assets([asset.id], since=resolved.start)
        market_avg = self._market_average(asset)

        cost = cost_of(asset)
        total_orders = len(sales)
        total_revenue = sum((deal_value(s) for s in sales), ZERO)
        total_profit = total_revenue - cost * total_orders

        # Timing and negotiation
        listing_days = []
        interest_days = []
        negotiated_days = []
        negotiated_values = []

        for sale in sales:
            if sale.deal_date is None:
                continue

            if asset.created_at is not None:
                listing_days.append(_days_between(asset.created_at, sale.deal_date))

            interest = find_winning_interest(sale, interests)
            if interest is not None:
                interest_days.append(max(0.0, _days_between(interest.created_at, sale.deal_date)))

            if sale.negotiation_duration and sale.negotiation_duration > 0:
                negotiated_days.append(sale.negotiation_duration)
                negotiated_values.append(deal_value(sale))

        avg_time_to_sell = (
            max(0, math.ceil(sum(listing_days) / len(listing_days))) if listing_days else 0
        )

        counts = count_interests(interests)
        views = asset.views or 0

        response = AssetDetailsResponse(
            asset=AssetSummary(
                id=asset.id,
                title=asset.title,
                price=asset.price,
                views=views,
                status=asset.status,
                available_qty=asset.quantity or 1,
                image_url=asset.images[0] if asset.images else None,
                created_at=asset.created_at,
            ),
            metrics=AssetMetrics(
                total_orders=total_orders,
                total_revenue=total_revenue,
                total_profit=total_profit,
                avg_profit=quantize(safe_ratio(total_profit, total_orders)),
                avg_time_to_sell=avg_time_to_sell,
                avg_time_interest_to_sold=quantize(safe_ratio(sum(interest_days), len(interest_days))),
                avg_time_neg_to_sold=quantize(safe_ratio(sum(negotiated_days), len(negotiated_days))),
                avg_negotiated_final_price=quantize(
                    safe_ratio(sum(negotiated_values, ZERO), len(negotiated_values))
                ),
                deals_per_100=percent(total_orders, counts.total),
                conversion_rate=percent(total_orders, views, 2),
            ),
            negotiation=NegotiationStats(
                passed=len(negotiated_days),
                failed=counts.rejected,
            ),
            funnel=ConversionFunnel(
                impressions=views,
                attract=counts.total,
                interact=counts.negotiating,
                convert=total_orders,
            ),
            breakdown=InterestBreakdown(
                pending_requests=counts.pending,
                negotiating_requests=counts.negotiating,
                rejected_requests=counts.rejected,
            ),
            price_intelligence=PriceIntelligence(
                listing_price=asset.price,
                market_avg_price=market_avg,
                price_position=price_position(asset.price, market_avg),
                deviation=price_deviation(asset.price, market_avg),
            ),
            trends=AssetTrends(
                revenue=revenue_graph(sales, asset),
                views=views_ramp(asset, resolved.now),
            ),
        )

        logger.info(
            "asset_details_calculated",
            asset_id=asset_id,
            orders=total_orders,
            interests=counts.total,
        )

        return response

    def _market_average(self, asset: AssetRecord) -> Decimal:
        """
        Average sold price of other assets in the same category.

        Falls back to the asset's own listing price when the category has
        no other sales.
        """
        peers = self.records.list_category_assets(asset.category, asset.id)
        market_sales = self.records.list_sales_for_assets(p.id for p in peers)

        if not market_sales:
            return quantize(to_decimal(asset.price))

        total = sum((sold_price(s) for s in market_sales), ZERO)
        return quantize(total / len(market_sales))


# Singleton instance for convenience
_product_analytics_service: Optional[ProductAnalyticsService] = None

def get_product_analytics_service() -> ProductAnalyticsService:
    """Get or create ProductAnalyticsService instance."""
    global _product_analytics_service
    if _product_analytics_service is None:
        _product_analytics_service = ProductAnalyticsService()
    return _product_analytics_service
