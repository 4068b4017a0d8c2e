"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.analytics import router as analytics_router
from routes.buyer_analytics import router as buyer_analytics_router
from routes.dashboard import router as dashboard_router

__all__ = [
    "analytics_router",
    "buyer_analytics_router",
    "dashboard_router",
]
