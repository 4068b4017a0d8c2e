"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    RecordSchema,
)
from models.records import (
    SaleStatus,
    InterestStatus,
    AssetStatus,
    SaleRecord,
    InterestRecord,
    AssetRecord,
    BusinessRecord,
    UserRecord,
)
from models.analytics import (
    BadgeState,
    OverviewResponse,
    ProductPerformanceRow,
    AssetDetailsResponse,
    CustomerInsightsResponse,
    BuyerOverviewResponse,
    PublicTrustProfile,
    BusinessStatsResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "RecordSchema",

    # Records
    "SaleStatus",
    "InterestStatus",
    "AssetStatus",
    "SaleRecord",
    "InterestRecord",
    "AssetRecord",
    "BusinessRecord",
    "UserRecord",

    # Analytics
    "BadgeState",
    "OverviewResponse",
    "ProductPerformanceRow",
    "AssetDetailsResponse",
    "CustomerInsightsResponse",
    "BuyerOverviewResponse",
    "PublicTrustProfile",
    "BusinessStatsResponse",
]
