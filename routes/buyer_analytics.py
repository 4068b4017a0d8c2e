"""
Buyer analytics API routes.

Must be included before the seller analytics router: otherwise
/buyer/overview/{range} is captured by /{business_id}/overview/{range}.
"""

from fastapi import APIRouter, Header, Path
from fastapi.responses import JSONResponse
import structlog

from models.analytics import BuyerOverviewResponse, PublicTrustProfile
from services.buyer_analytics_service import get_buyer_analytics_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter()


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


@router.get("/overview/{range}", response_model=BuyerOverviewResponse)
async def get_buyer_overview(
    range: str = Path(..., description="24h, 1d, 15d, 1m, 1y or all"),
    x_user_id: str = Header(..., description="Requesting buyer")
):
    """
    Buyer overview for the requesting user.

    Spend KPIs and chart for the range, plus the all-time trust score,
    achievements and milestones.
    """
    try:
        service = get_buyer_analytics_service()
        return service.get_buyer_overview(x_user_id, range)
    except Exception as e:
        return handle_error(e)


@router.get("/profile/{user_id}", response_model=PublicTrustProfile)
async def get_trust_profile(
    user_id: str = Path(..., description="User ID")
):
    """
    Public trust profile of a buyer.
    """
    try:
        service = get_buyer_analytics_service()
        return service.get_public_trust_profile(user_id)
    except Exception as e:
        return handle_error(e)
