"""
Seller overview service.

Builds the business overview: KPIs, product rankings, best/worst performer
lists, market trends and a zero-filled revenue chart for a time range.
"""

from datetime import datetime
from typing import Optional
import structlog

from models.analytics import (
    OverviewKPI,
    ProductPerformance,
    ProductRankings,
    BestPerformers,
    WorstPerformers,
    Performers,
    MarketTrends,
    NamedValue,
    NamedCount,
    ChartPoint,
    OverviewResponse,
)
from services.kpi_service import ProductStats, SalesAggregate, ZERO, aggregate_sales, sale_figures
from services.ranking_service import select_rankings, select_performers
from services.record_service import get_record_service
from services.time_range_service import resolve_range
from services.time_series_service import TimeSeries, best_period_label
from exceptions import BusinessNotFoundError

logger = structlog.get_logger(__name__)

TOP_LOCATIONS = 8


def _performance(product: Optional[ProductStats]) -> Optional[ProductPerformance]:
    if product is None:
        return None
    return ProductPerformance(
        asset_id=product.asset_id,
        title=product.title,
        category=product.category,
        count=product.count,
        revenue=product.revenue,
        profit=product.profit,
        margin=product.margin,
    )


def _performances(products: list) -> list[ProductPerformance]:
    return [_performance(p) for p in products]


def build_trends(agg: SalesAggregate) -> MarketTrends:
    """Category revenue/profit (descending) and top locations by sale count."""
    categories = list(agg.categories.values())

    return MarketTrends(
        category_revenue=[
            NamedValue(name=c.name, value=c.revenue)
            for c in sorted(categories, key=lambda c: c.revenue, reverse=True)
        ],
        category_profit=[
            NamedValue(name=c.name, value=c.profit)
            for c in sorted(categories, key=lambda c: c.profit, reverse=True)
        ],
        locations=[
            NamedCount(name=name, value=count)
            for name, count in agg.locations.most_common(TOP_LOCATIONS)
        ],
    )


class OverviewService:
    """
    Seller overview analytics.
    """

    def __init__(self):
        self.records = get_record_service()

    def get_overview_stats(
        self,
        business_id: str,
        owner_id: str,
        range_token: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> OverviewResponse:
        """
        Build the overview for a business over a time range.

        Args:
            business_id: Business to analyse
            owner_id: Requesting user (must own the business)
            range_token: "24h"/"1d", "15d", "1m", "1y", "all" (unknown -> 1m)
            now: Evaluation instant (defaults to current UTC time)

        Returns:
            OverviewResponse

        Raises:
            BusinessNotFoundError: If the business is missing or not owned
        """
        resolved = resolve_range(range_token, now)

        logger.info(
            "overview_stats_requested",
            business_id=business_id,
            owner_id=owner_id,
            range=resolved.token.value,
        )

        if self.records.find_owned_business(business_id, owner_id) is None:
            logger.warning("overview_business_not_found", business_id=business_id, owner_id=owner_id)
            raise BusinessNotFoundError(business_id, owner_id)

        assets = {a.id: a for a in self.records.list_business_assets(business_id)}
        sales = self.records.list_sales_for_assets(assets.keys(), since=resolved.start)

        agg = aggregate_sales(sales, assets)

        series = TimeSeries.for_range(resolved, {"revenue": ZERO, "profit": ZERO, "count": 0})
        for sale in sales:
            figures = sale_figures(sale, assets.get(sale.asset_id))
            series.add(sale.occurred_at, revenue=figures.paid, profit=figures.profit, count=1)

        points = series.points()
        products = list(agg.products.values())
        rankings = select_rankings(products)
        performers = select_performers(products)

        response = OverviewResponse(
            range=resolved.token.value,
            granularity=resolved.granularity.value,
            start_date=resolved.start,
            kpi=OverviewKPI(
                total_revenue=agg.total_revenue,
                total_cost=agg.total_cost,
                total_profit=agg.total_profit,
                total_loss=agg.total_loss,
                total_discount=agg.total_discount,
                net_margin=agg.net_margin,
                total_units_sold=agg.count,
                avg_deal_size=agg.avg_deal_size,
                avg_profit=agg.avg_profit,
                avg_discount=agg.avg_discount,
                avg_products_per_customer=agg.avg_products_per_customer,
                customers=agg.customers,
                best_period=best_period_label(resolved.token, points),
            ),
            rankings=ProductRankings(
                top_selling=_performance(rankings.top_selling),
                least_selling=_performance(rankings.least_selling),
                most_profitable=_performance(rankings.most_profitable),
                least_profitable=_performance(rankings.least_profitable),
            ),
            performers=Performers(
                best=BestPerformers(
                    by_quantity=_performances(performers.best_by_quantity),
                    by_revenue=_performances(performers.best_by_revenue),
                    by_profit=_performances(performers.best_by_profit),
                ),
                worst=WorstPerformers(
                    by_quantity=_performances(performers.worst_by_quantity),
                    by_loss=_performances(performers.worst_by_loss),
                    by_margin=_performances(performers.worst_by_margin),
                ),
            ),
            trends=build_trends(agg),
            chart_data=[ChartPoint(**point) for point in points],
        )

        logger.info(
            "overview_stats_calculated",
            business_id=business_id,
            range=resolved.token.value,
            sales=agg.count,
            buckets=len(series),
            dropped=series.dropped,
        )

        return response


# Singleton instance for convenience
_overview_service: Optional[OverviewService] = None

def get_overview_service() -> OverviewService:
    """Get or create OverviewService instance."""
    global _overview_service
    if _overview_service is None:
        _overview_service = OverviewService()
    return _overview_service
