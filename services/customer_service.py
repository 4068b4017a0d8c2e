"""
Customer insight service.

Groups a business's all-time sales by buyer to produce spend, order history
and repeat-customer metrics.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional
import structlog

from models.analytics import CustomerInsight, CustomerSummary, CustomerInsightsResponse
from models.records import SaleRecord, UserRecord
from services.kpi_service import ZERO, percent, sold_price
from services.record_service import get_record_service
from exceptions import UnauthorizedError

logger = structlog.get_logger(__name__)

REPEATING = "Repeating"
NEW = "New"


@dataclass
class _BuyerTotals:
    buyer_id: str
    total_spend: Decimal = ZERO
    total_orders: int = 0
    first_order_date: Optional[datetime] = None
    last_order_date: Optional[datetime] = None


def aggregate_customers(
    sales: Iterable[SaleRecord],
    users: Mapping[str, UserRecord],
) -> CustomerInsightsResponse:
    """
    Group sales by buyer.

    Args:
        sales: Sold, non-deleted sales of the business
        users: Buyer accounts keyed by id (missing accounts leave the
            profile fields empty)

    Returns:
        CustomerInsightsResponse, customers sorted by total spend descending
    """
    buyers: dict[str, _BuyerTotals] = {}

    for sale in sales:
        if not sale.buyer_id:
            continue

        totals = buyers.get(sale.buyer_id)
        if totals is None:
            totals = _BuyerTotals(buyer_id=sale.buyer_id)
            buyers[sale.buyer_id] = totals

        totals.total_spend += sold_price(sale)
        totals.total_orders += 1

        moment = sale.occurred_at
        if moment is not None:
            if totals.first_order_date is None or moment < totals.first_order_date:
                totals.first_order_date = moment
            if totals.last_order_date is None or moment > totals.last_order_date:
                totals.last_order_date = moment

    customers = []
    for totals in buyers.values():
        user = users.get(totals.buyer_id)
        customers.append(CustomerInsight(
            id=totals.buyer_id,
            name=user.full_name if user else None,
            email=user.email if user else None,
            company=user.company_name if user else None,
            avatar=user.avatar_url if user else None,
            total_spend=totals.total_spend,
            total_orders=totals.total_orders,
            first_order_date=totals.first_order_date,
            last_order_date=totals.last_order_date,
            customer_type=REPEATING if totals.total_orders > 1 else NEW,
        ))

    customers.sort(key=lambda c: c.total_spend, reverse=True)

    total_customers = len(customers)
    repeat_customers = sum(1 for c in customers if c.customer_type == REPEATING)

    return CustomerInsightsResponse(
        summary=CustomerSummary(
            total_customers=total_customers,
            new_customers=total_customers - repeat_customers,
            repeat_customers=repeat_customers,
            retention_rate=percent(repeat_customers, total_customers),
        ),
        customers=customers,
    )


class CustomerService:
    """
    Customer insights for a seller's business.
    """

    def __init__(self):
        self.records = get_record_service()

    def get_insights(self, business_id: str, owner_id: str) -> CustomerInsightsResponse:
        """
        Build customer insights for a business.

        Args:
            business_id: Business to analyse
            owner_id: Requesting user (must own the business)

        Returns:
            CustomerInsightsResponse

        Raises:
            UnauthorizedError: If the business is not owned by owner_id
        """
        logger.info("customer_insights_requested", business_id=business_id, owner_id=owner_id)

        if self.records.find_owned_business(business_id, owner_id) is None:
            logger.warning("customer_insights_unauthorized", business_id=business_id, owner_id=owner_id)
            raise UnauthorizedError(business_id, owner_id)

        assets = self.records.list_business_assets(business_id)
        sales = self.records.list_sales_for_assets(a.id for a in assets)
        users = self.records.map_users(s.buyer_id for s in sales)

        insights = aggregate_customers(sales, users)

        logger.info(
            "customer_insights_calculated",
            business_id=business_id,
            customers=insights.summary.total_customers,
            repeat_customers=insights.summary.repeat_customers,
        )

        return insights


# Singleton instance for convenience
_customer_service: Optional[CustomerService] = None

def get_customer_service() -> CustomerService:
    """Get or create CustomerService instance."""
    global _customer_service
    if _customer_service is None:
        _customer_service = CustomerService()
    return _customer_service
