"""
Seller analytics API routes.

Overview, product performance, per-asset deep dive and customer insights.
The requesting user id is set by the upstream auth layer in X-User-Id.
"""

from fastapi import APIRouter, Header, Path, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.analytics import (
    OverviewResponse,
    ProductPerformanceRow,
    AssetDetailsResponse,
    CustomerInsightsResponse,
)
from services.overview_service import get_overview_service
from services.product_analytics_service import get_product_analytics_service
from services.customer_service import get_customer_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ASSET DEEP DIVE
# ===================

@router.get("/product/{asset_id}", response_model=AssetDetailsResponse)
async def get_product_details(
    asset_id: str = Path(..., description="Asset ID"),
    range: Optional[str] = Query("all", description="all, 30d, 1m, 15d, 24h, 1y")
):
    """
    Deep dive into a single asset.

    Sales metrics, negotiation outcomes, conversion funnel, price
    intelligence against the category market, and revenue/views trends.
    """
    try:
        service = get_product_analytics_service()
        return service.get_details(asset_id, range)
    except Exception as e:
        return handle_error(e)


# ===================
# BUSINESS ANALYTICS
# ===================

@router.get("/{business_id}/overview/{range}", response_model=OverviewResponse)
async def get_overview(
    business_id: str = Path(..., description="Business ID"),
    range: str = Path(..., description="24h, 1d, 15d, 1m, 1y or all"),
    x_user_id: str = Header(..., description="Requesting user")
):
    """
    Business overview for a time range.

    KPIs, product rankings, best/worst performers, market trends and a
    zero-filled revenue chart. Unknown ranges fall back to 1m.
    """
    try:
        service = get_overview_service()
        return service.get_overview_stats(business_id, x_user_id, range)
    except Exception as e:
        return handle_error(e)


@router.get("/{business_id}/products", response_model=list[ProductPerformanceRow])
async def get_product_performance(
    business_id: str = Path(..., description="Business ID"),
    sort_by: Optional[str] = Query("created_at", description="Any row field"),
    order: Optional[str] = Query("desc", pattern="^(asc|desc)$", description="asc or desc")
):
    """
    Performance row for every asset of a business.

    Sortable by any row field; nulls sort last when descending.
    """
    try:
        service = get_product_analytics_service()
        return service.get_all_performance(business_id, sort_by=sort_by, order=order)
    except Exception as e:
        return handle_error(e)


@router.get("/{business_id}/customers", response_model=CustomerInsightsResponse)
async def get_customer_insights(
    business_id: str = Path(..., description="Business ID"),
    x_user_id: str = Header(..., description="Requesting user")
):
    """
    Customer spend, order history and retention for a business.
    """
    try:
        service = get_customer_service()
        return service.get_insights(business_id, x_user_id)
    except Exception as e:
        return handle_error(e)
