"""
KPI aggregation over fetched sales.

Single-pass reductions that turn a list of sales (joined in-process to their
assets) into revenue, cost, profit, loss, discount and margin figures, plus
per-product, per-category and per-location rollups.

Price fallbacks follow the column history of the sales table: older rows
carry `final_price`, rows written by the payment flow only `total_amount`.
Every ratio is zero-guarded; nothing here raises on empty input.
"""

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Mapping, Optional
import structlog

from models.records import SaleRecord, AssetRecord, InterestRecord, InterestStatus

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")

UNKNOWN_CATEGORY = "Other"
UNKNOWN_LOCATION = "Unknown"


# ===================
# NUMERIC HELPERS
# ===================

def to_decimal(value) -> Decimal:
    """Coerce a numeric column value (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Decimal, places: int = 2) -> Decimal:
    """Round half-up to a fixed number of decimal places."""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def safe_ratio(numerator, denominator, scale=1) -> Decimal:
    """numerator / denominator * scale, or 0 when the denominator is 0."""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return ZERO
    return to_decimal(numerator) / denominator * to_decimal(scale)


def percent(numerator, denominator, places: int = 1) -> Decimal:
    """Zero-guarded percentage, rounded."""
    return quantize(safe_ratio(numerator, denominator, HUNDRED), places)


# ===================
# PRICE FALLBACKS
# ===================

def paid_price(sale: SaleRecord) -> Decimal:
    """Price the buyer paid: price ?? final_price ?? total_amount ?? 0."""
    for value in (sale.price, sale.final_price, sale.total_amount):
        if value is not None:
            return to_decimal(value)
    return ZERO


def listing_price(sale: SaleRecord, asset: Optional[AssetRecord]) -> Decimal:
    """Asking price of the sold asset, falling back to the paid price."""
    if asset is not None and asset.price is not None:
        return to_decimal(asset.price)
    return paid_price(sale)


def cost_of(asset: Optional[AssetRecord]) -> Decimal:
    """Seller's cost of an asset (missing -> 0)."""
    if asset is None:
        return ZERO
    return to_decimal(asset.cost_price)


def sold_price(sale: SaleRecord) -> Decimal:
    """Per-sale amount used for customer spend: price ?? total_amount ?? 0."""
    if sale.price is not None:
        return to_decimal(sale.price)
    return to_decimal(sale.total_amount)


def deal_value(sale: SaleRecord) -> Decimal:
    """Total value of a deal: total_amount ?? price * quantity."""
    if sale.total_amount is not None:
        return to_decimal(sale.total_amount)
    quantity = sale.quantity if sale.quantity is not None else 1
    return to_decimal(sale.price) * quantity


@dataclass(frozen=True)
class SaleFigures:
    """Money figures of one sale after fallbacks."""

    paid: Decimal
    cost: Decimal
    listing: Decimal

    @property
    def profit(self) -> Decimal:
        return self.paid - self.cost

    @property
    def loss(self) -> Decimal:
        return max(ZERO, -self.profit)

    @property
    def discount(self) -> Decimal:
        return max(ZERO, self.listing - self.paid)


def sale_figures(sale: SaleRecord, asset: Optional[AssetRecord]) -> SaleFigures:
    """Resolve paid, cost and listing price for a sale."""
    return SaleFigures(
        paid=paid_price(sale),
        cost=cost_of(asset),
        listing=listing_price(sale, asset),
    )


# ===================
# SELLER AGGREGATION
# ===================

@dataclass
class ProductStats:
    """Rollup of one product's sales."""

    asset_id: str
    title: Optional[str] = None
    category: Optional[str] = None
    count: int = 0
    revenue: Decimal = ZERO
    profit: Decimal = ZERO

    @property
    def margin_ratio(self) -> Decimal:
        """Unrounded profit as % of revenue, for ordering."""
        return safe_ratio(self.profit, self.revenue, HUNDRED)

    @property
    def margin(self) -> Decimal:
        """Profit as % of revenue (0 when revenue is 0)."""
        return quantize(self.margin_ratio, 1)


@dataclass
class CategoryStats:
    """Revenue and profit of one category."""

    name: str
    revenue: Decimal = ZERO
    profit: Decimal = ZERO


@dataclass
class SalesAggregate:
    """Result of aggregating a seller's sales."""

    count: int = 0
    total_revenue: Decimal = ZERO
    total_cost: Decimal = ZERO
    total_profit: Decimal = ZERO
    total_loss: Decimal = ZERO
    total_discount: Decimal = ZERO
    buyers: set = field(default_factory=set)
    products: dict = field(default_factory=dict)
    categories: dict = field(default_factory=dict)
    locations: Counter = field(default_factory=Counter)

    @property
    def customers(self) -> int:
        return len(self.buyers)

    @property
    def net_margin(self) -> Decimal:
        return percent(self.total_profit, self.total_revenue)

    @property
    def avg_deal_size(self) -> Decimal:
        return quantize(safe_ratio(self.total_revenue, self.count))

    @property
    def avg_profit(self) -> Decimal:
        return quantize(safe_ratio(self.total_profit, self.count))

    @property
    def avg_discount(self) -> Decimal:
        return quantize(safe_ratio(self.total_discount, self.count))

    @property
    def avg_products_per_customer(self) -> Decimal:
        return quantize(safe_ratio(self.count, self.customers), 1)


def aggregate_sales(
    sales: Iterable[SaleRecord],
    assets: Mapping[str, AssetRecord],
) -> SalesAggregate:
    """
    Reduce a seller's sales into KPIs and rollups.

    Sales whose asset could not be joined still count toward the totals
    (cost 0, listing = paid) but not toward the product, category or
    location rollups.

    Args:
        sales: Sold, non-deleted sales in the requested range
        assets: Joined assets keyed by id

    Returns:
        SalesAggregate
    """
    agg = SalesAggregate()

    for sale in sales:
        asset = assets.get(sale.asset_id) if sale.asset_id else None
        figures = sale_figures(sale, asset)

        agg.count += 1
        agg.total_revenue += figures.paid
        agg.total_cost += figures.cost
        agg.total_profit += figures.profit
        agg.total_loss += figures.loss
        agg.total_discount += figures.discount

        if sale.buyer_id:
            agg.buyers.add(sale.buyer_id)

        if asset is None:
            continue

        product = agg.products.get(asset.id)
        if product is None:
            product = ProductStats(asset_id=asset.id, title=asset.title, category=asset.category)
            agg.products[asset.id] = product
        product.count += 1
        product.revenue += figures.paid
        product.profit += figures.profit

        category_name = asset.category or UNKNOWN_CATEGORY
        category = agg.categories.get(category_name)
        if category is None:
            category = CategoryStats(name=category_name)
            agg.categories[category_name] = category
        category.revenue += figures.paid
        category.profit += figures.profit

        agg.locations[asset.location or UNKNOWN_LOCATION] += 1

    logger.debug(
        "sales_aggregated",
        count=agg.count,
        products=len(agg.products),
        customers=agg.customers,
    )

    return agg


# ===================
# BUYER AGGREGATION
# ===================

@dataclass
class PurchaseAggregate:
    """Result of aggregating a buyer's purchases."""

    acquisitions: int = 0
    total_spent: Decimal = ZERO
    total_savings: Decimal = ZERO
    category_spend: dict = field(default_factory=dict)


def aggregate_purchases(
    sales: Iterable[SaleRecord],
    assets: Mapping[str, AssetRecord],
) -> PurchaseAggregate:
    """Reduce a buyer's purchases into spend, savings and category spend."""
    agg = PurchaseAggregate()

    for sale in sales:
        asset = assets.get(sale.asset_id) if sale.asset_id else None
        figures = sale_figures(sale, asset)

        agg.acquisitions += 1
        agg.total_spent += figures.paid
        agg.total_savings += figures.discount

        if asset is not None:
            category = asset.category or UNKNOWN_CATEGORY
            agg.category_spend[category] = agg.category_spend.get(category, ZERO) + figures.paid

    return agg


@dataclass(frozen=True)
class InterestCounts:
    """Interest totals by negotiation status."""

    total: int = 0
    pending: int = 0
    negotiating: int = 0
    accepted: int = 0
    rejected: int = 0

    @property
    def closed(self) -> int:
        return self.accepted + self.rejected


def count_interests(interests: Iterable[InterestRecord]) -> InterestCounts:
    """Count interests per status."""
    statuses = Counter(i.status for i in interests)
    return InterestCounts(
        total=sum(statuses.values()),
        pending=statuses[InterestStatus.PENDING.value],
        negotiating=statuses[InterestStatus.NEGOTIATING.value],
        accepted=statuses[InterestStatus.ACCEPTED.value],
        rejected=statuses[InterestStatus.REJECTED.value],
    )
