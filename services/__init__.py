"""
Analytics engine services.

Pure computation lives in the *_service modules without a class
(time ranges, time series, KPIs, rankings, trust); request-level
operations live in the service classes.
"""

from services.record_service import RecordService, get_record_service
from services.overview_service import OverviewService, get_overview_service
from services.product_analytics_service import ProductAnalyticsService, get_product_analytics_service
from services.customer_service import CustomerService, get_customer_service
from services.buyer_analytics_service import BuyerAnalyticsService, get_buyer_analytics_service
from services.dashboard_service import DashboardService, get_dashboard_service

__all__ = [
    "RecordService",
    "get_record_service",
    "OverviewService",
    "get_overview_service",
    "ProductAnalyticsService",
    "get_product_analytics_service",
    "CustomerService",
    "get_customer_service",
    "BuyerAnalyticsService",
    "get_buyer_analytics_service",
    "DashboardService",
    "get_dashboard_service",
]
