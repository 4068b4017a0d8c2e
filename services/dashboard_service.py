"""
Business dashboard service.

Summary cards for a seller's business: listing activity, lead funnel,
selling-price trend and a six-month sales chart.
"""

from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta
import structlog

from models.analytics import BusinessStatsResponse, MonthlySalesPoint, PricePoint
from models.records import AssetStatus
from services.kpi_service import (
    ZERO,
    aggregate_sales,
    count_interests,
    deal_value,
    paid_price,
    percent,
    quantize,
    safe_ratio,
)
from services.record_service import get_record_service
from services.time_range_service import Granularity, utc_now
from services.time_series_service import TimeSeries
from exceptions import BusinessNotFoundError

logger = structlog.get_logger(__name__)

CHART_MONTHS = 6
NO_CATEGORY = "N/A"


class DashboardService:
    """
    Business dashboard statistics.
    """

    def __init__(self):
        self.records = get_record_service()

    def get_business_stats(
        self,
        business_id: str,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> BusinessStatsResponse:
        """
        Build dashboard cards for a business.

        Args:
            business_id: Business to summarise
            owner_id: Requesting user (must own the business)
            now: Evaluation instant (defaults to current UTC time)

        Returns:
            BusinessStatsResponse

        Raises:
            BusinessNotFoundError: If the business is missing or not owned
        """
        now = now or utc_now()

        logger.info("business_stats_requested", business_id=business_id, owner_id=owner_id)

        if self.records.find_owned_business(business_id, owner_id) is None:
            logger.warning("business_stats_not_found", business_id=business_id, owner_id=owner_id)
            raise BusinessNotFoundError(business_id, owner_id)

        assets = {a.id: a for a in self.records.list_business_assets(business_id)}
        interests = self.records.list_interests_for_assets(assets.keys())
        sales = self.records.list_sales_for_assets(assets.keys())

        leads = count_interests(interests)
        total_views = sum(a.views or 0 for a in assets.values())
        agg = aggregate_sales(sales, assets)

        durations = [s.negotiation_duration for s in sales if s.negotiation_duration and s.negotiation_duration > 0]

        best_category = NO_CATEGORY
        if agg.categories:
            best_category = max(agg.categories.values(), key=lambda c: c.revenue).name

        trend = sorted(
            (PricePoint(date=s.deal_date, price=deal_value(s)) for s in sales),
            key=lambda p: (p.date is None, p.date or now),
        )

        series = TimeSeries(
            granularity=Granularity.MONTHLY,
            start=now - relativedelta(months=CHART_MONTHS - 1),
            now=now,
            metrics={"revenue": ZERO, "count": 0},
        )
        for sale in sales:
            series.add(sale.occurred_at, revenue=paid_price(sale), count=1)

        stats = BusinessStatsResponse(
            active_assets=sum(1 for a in assets.values() if a.status == AssetStatus.ACTIVE.value),
            total_views=total_views,
            total_leads=leads.total,
            pending_leads=leads.pending,
            accepted_leads=leads.accepted,
            completed_deals=len(sales),
            conversion_rate=percent(leads.total, total_views),
            avg_negotiation_time=quantize(safe_ratio(sum(durations), len(durations)), 1),
            best_performing_category=best_category,
            selling_price_trend=trend,
            monthly_sales=[MonthlySalesPoint(**point) for point in series.points()],
        )

        logger.info(
            "business_stats_calculated",
            business_id=business_id,
            assets=len(assets),
            leads=leads.total,
            deals=len(sales),
        )

        return stats


# Singleton instance for convenience
_dashboard_service: Optional[DashboardService] = None

def get_dashboard_service() -> DashboardService:
    """Get or create DashboardService instance."""
    global _dashboard_service
    if _dashboard_service is None:
        _dashboard_service = DashboardService()
    return _dashboard_service
