"""
Analytics schemas for seller and buyer dashboards.

Every response is fully populated even when no records match: KPIs are
zero, lists are empty and chart buckets are present with zero values.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from models.base import BaseSchema


class BadgeState(str, Enum):
    """Mastery badge award gate for a buyer."""

    ELIGIBLE = "eligible"        # can earn the next badge
    COOLED_DOWN = "cooled_down"  # already awarded, waiting for score to drop


# ===================
# SHARED
# ===================

class NamedValue(BaseSchema):
    """Single named amount (pie/bar chart slice)."""

    name: str = Field(..., description="Category or label")
    value: Decimal = Field(..., description="Amount")


class NamedCount(BaseSchema):
    """Single named count."""

    name: str = Field(..., description="Label")
    value: int = Field(..., description="Count")


# ===================
# SELLER OVERVIEW
# ===================

class OverviewKPI(BaseSchema):
    """Headline metrics for a business over the requested range."""

    total_revenue: Decimal = Field(default=Decimal("0"))
    total_cost: Decimal = Field(default=Decimal("0"))
    total_profit: Decimal = Field(default=Decimal("0"))
    total_loss: Decimal = Field(default=Decimal("0"))
    total_discount: Decimal = Field(default=Decimal("0"))
    net_margin: Decimal = Field(default=Decimal("0"), description="Profit as % of revenue")
    total_units_sold: int = Field(default=0)
    avg_deal_size: Decimal = Field(default=Decimal("0"))
    avg_profit: Decimal = Field(default=Decimal("0"))
    avg_discount: Decimal = Field(default=Decimal("0"))
    avg_products_per_customer: Decimal = Field(default=Decimal("0"))
    customers: int = Field(default=0, description="Distinct buyers")
    best_period: str = Field(default="No Sales", description="Best bucket or week label")


class ProductPerformance(BaseSchema):
    """Per-product rollup used by rankings."""

    asset_id: str
    title: Optional[str] = None
    category: Optional[str] = None
    count: int = 0
    revenue: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    margin: Decimal = Field(default=Decimal("0"), description="Profit as % of revenue")


class ProductRankings(BaseSchema):
    """Single best/worst products. None when nothing sold."""

    top_selling: Optional[ProductPerformance] = None
    least_selling: Optional[ProductPerformance] = None
    most_profitable: Optional[ProductPerformance] = None
    least_profitable: Optional[ProductPerformance] = None


class BestPerformers(BaseSchema):
    """Top five lists, descending."""

    by_quantity: List[ProductPerformance] = Field(default_factory=list)
    by_revenue: List[ProductPerformance] = Field(default_factory=list)
    by_profit: List[ProductPerformance] = Field(default_factory=list)


class WorstPerformers(BaseSchema):
    """Bottom five lists, ascending."""

    by_quantity: List[ProductPerformance] = Field(default_factory=list)
    by_loss: List[ProductPerformance] = Field(default_factory=list)
    by_margin: List[ProductPerformance] = Field(default_factory=list)


class Performers(BaseSchema):
    """Best and worst performer lists."""

    best: BestPerformers = Field(default_factory=BestPerformers)
    worst: WorstPerformers = Field(default_factory=WorstPerformers)


class MarketTrends(BaseSchema):
    """Category and location breakdowns."""

    category_revenue: List[NamedValue] = Field(default_factory=list)
    category_profit: List[NamedValue] = Field(default_factory=list)
    locations: List[NamedCount] = Field(default_factory=list)


class ChartPoint(BaseSchema):
    """One seller time bucket."""

    key: str = Field(..., description="Stable bucket key")
    name: str = Field(..., description="Display label")
    revenue: Decimal = Decimal("0")
    profit: Decimal = Decimal("0")
    count: int = 0


class OverviewResponse(BaseSchema):
    """Seller overview for a business and range."""

    range: str
    granularity: str
    start_date: datetime
    kpi: OverviewKPI
    rankings: ProductRankings
    performers: Performers
    trends: MarketTrends
    chart_data: List[ChartPoint]


# ===================
# PRODUCT PERFORMANCE
# ===================

class ProductPerformanceRow(BaseSchema):
    """One row of the business-wide product performance table."""

    id: str
    title: Optional[str] = None
    category: Optional[str] = None
    status: str
    views: int = 0
    listing_price: Optional[Decimal] = None
    cost_price: Decimal = Decimal("0")
    sold_price: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    margin: Optional[Decimal] = None
    negotiation_duration: Optional[int] = Field(None, description="Days from interest to sale")
    sale_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AssetSummary(BaseSchema):
    """Asset header for the deep dive."""

    id: str
    title: Optional[str] = None
    price: Optional[Decimal] = None
    views: int = 0
    status: Optional[str] = None
    available_qty: int = 1
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class AssetMetrics(BaseSchema):
    """Sales metrics for a single asset."""

    total_orders: int = 0
    total_revenue: Decimal = Decimal("0")
    total_profit: Decimal = Decimal("0")
    avg_profit: Decimal = Decimal("0")
    avg_time_to_sell: int = Field(default=0, description="Days from listing to deal")
    avg_time_interest_to_sold: Decimal = Field(default=Decimal("0"), description="Days")
    avg_time_neg_to_sold: Decimal = Field(default=Decimal("0"), description="Days")
    avg_negotiated_final_price: Decimal = Decimal("0")
    deals_per_100: Decimal = Field(default=Decimal("0"), description="Deals per 100 interests")
    conversion_rate: Decimal = Field(default=Decimal("0"), description="Deals per 100 views")


class NegotiationStats(BaseSchema):
    """Negotiation outcomes."""

    passed: int = 0
    failed: int = 0


class ConversionFunnel(BaseSchema):
    """Views to deals funnel."""

    impressions: int = 0
    attract: int = 0
    interact: int = 0
    convert: int = 0


class InterestBreakdown(BaseSchema):
    """Open and closed interest counts."""

    pending_requests: int = 0
    negotiating_requests: int = 0
    rejected_requests: int = 0


class PriceIntelligence(BaseSchema):
    """Listing price against the category market."""

    listing_price: Optional[Decimal] = None
    market_avg_price: Decimal = Decimal("0")
    price_position: str
    deviation: int = Field(default=0, description="% above (+) or below (-) market")


class RevenuePoint(BaseSchema):
    """Daily revenue for an asset."""

    date: date
    amount: Decimal
    profit: Decimal


class ViewsPoint(BaseSchema):
    """Cumulative views on a day."""

    date: date
    views: int


class AssetTrends(BaseSchema):
    """Revenue and views series for an asset."""

    revenue: List[RevenuePoint] = Field(default_factory=list)
    views: List[ViewsPoint] = Field(default_factory=list)


class AssetDetailsResponse(BaseSchema):
    """Per-asset deep dive."""

    asset: AssetSummary
    metrics: AssetMetrics
    negotiation: NegotiationStats
    funnel: ConversionFunnel
    breakdown: InterestBreakdown
    price_intelligence: PriceIntelligence
    trends: AssetTrends


# ===================
# CUSTOMER INSIGHTS
# ===================

class CustomerInsight(BaseSchema):
    """Spend and order history of one buyer with a business."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    avatar: Optional[str] = None
    total_spend: Decimal = Decimal("0")
    total_orders: int = 0
    first_order_date: Optional[datetime] = None
    last_order_date: Optional[datetime] = None
    customer_type: str = Field(..., description="'Repeating' or 'New'")


class CustomerSummary(BaseSchema):
    """Business-level customer retention."""

    total_customers: int = 0
    new_customers: int = 0
    repeat_customers: int = 0
    retention_rate: Decimal = Field(default=Decimal("0"), description="% of customers with 2+ orders")


class CustomerInsightsResponse(BaseSchema):
    """Customer insights for a business."""

    summary: CustomerSummary
    customers: List[CustomerInsight]


# ===================
# BUYER OVERVIEW
# ===================

class BuyerKPI(BaseSchema):
    """Buyer headline metrics over the requested range."""

    total_spent: Decimal = Decimal("0")
    total_savings: Decimal = Decimal("0")
    acquisitions: int = 0
    total_interests: int = 0
    accepted_interests: int = 0
    conversion_rate: Decimal = Field(default=Decimal("0"), description="Accepted / closed interests %")


class TrustScore(BaseSchema):
    """Weighted composite trust score (0-100)."""

    reliability: Decimal = Field(default=Decimal("0"), description="Accepted / closed interests %")
    reliability_points: Decimal = Decimal("0")
    activity_points: Decimal = Decimal("0")
    volume_points: Decimal = Decimal("0")
    tenure_points: Decimal = Decimal("0")
    total_score: int = 0
    is_eligible: bool = False
    badge_state: BadgeState = BadgeState.ELIGIBLE
    mastery_badges: int = 0


class Achievement(BaseSchema):
    """Gamified badge computed from all-time activity."""

    id: str
    title: str
    description: str
    earned: bool


class Milestone(BaseSchema):
    """Unlocked rung of the milestone ladder."""

    title: str
    level: int


class BuyerTrends(BaseSchema):
    """Buyer spend breakdown."""

    category_spend: List[NamedValue] = Field(default_factory=list)


class BuyerChartPoint(BaseSchema):
    """One buyer time bucket."""

    key: str
    name: str
    spent: Decimal = Decimal("0")
    savings: Decimal = Decimal("0")


class BuyerOverviewResponse(BaseSchema):
    """Buyer overview for a range, with all-time trust data."""

    range: str
    granularity: str
    start_date: datetime
    kpi: BuyerKPI
    trust_score: TrustScore
    achievements: List[Achievement]
    milestones: List[Milestone]
    trends: BuyerTrends
    chart_data: List[BuyerChartPoint]


class PublicTrustProfile(BaseSchema):
    """Trust data shown on a buyer's public profile."""

    user_id: str
    full_name: Optional[str] = None
    member_since: Optional[datetime] = None
    trust_score: int = 0
    mastery_badges: int = 0
    achievements: List[Achievement] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)


# ===================
# BUSINESS DASHBOARD
# ===================

class PricePoint(BaseSchema):
    """Deal value at a point in time."""

    date: Optional[datetime] = None
    price: Decimal


class MonthlySalesPoint(BaseSchema):
    """One month of business sales."""

    key: str
    name: str
    revenue: Decimal = Decimal("0")
    count: int = 0


class BusinessStatsResponse(BaseSchema):
    """Summary cards for a business dashboard."""

    active_assets: int = 0
    total_views: int = 0
    total_leads: int = 0
    pending_leads: int = 0
    accepted_leads: int = 0
    completed_deals: int = 0
    conversion_rate: Decimal = Field(default=Decimal("0"), description="Leads per 100 views")
    avg_negotiation_time: Decimal = Field(default=Decimal("0"), description="Days")
    best_performing_category: str = "N/A"
    selling_price_trend: List[PricePoint] = Field(default_factory=list)
    monthly_sales: List[MonthlySalesPoint] = Field(default_factory=list)
