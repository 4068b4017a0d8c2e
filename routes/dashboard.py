"""
Business dashboard API routes.
"""

from fastapi import APIRouter, Header, Path
from fastapi.responses import JSONResponse
import structlog

from models.analytics import BusinessStatsResponse
from services.dashboard_service import get_dashboard_service
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


@router.get("/business/{business_id}/stats", response_model=BusinessStatsResponse)
async def get_business_stats(
    business_id: str = Path(..., description="Business ID"),
    x_user_id: str = Header(..., description="Requesting user")
):
    """
    Dashboard cards for a business.

    Active listings, views, lead funnel, selling-price trend, best
    category and a six-month sales chart.
    """
    try:
        service = get_dashboard_service()
        return service.get_business_stats(business_id, x_user_id)
    except Exception as e:
        return handle_error(e)
