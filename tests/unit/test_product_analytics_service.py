"""
Unit tests for ProductAnalyticsService.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

from models.analytics import ProductPerformanceRow
from models.records import AssetRecord
from services.product_analytics_service import (
    ProductAnalyticsService,
    price_deviation,
    price_position,
    sort_rows,
    views_ramp,
)
from exceptions import AssetNotFoundError, InvalidSortFieldError
from tests.factories import AssetFactory, InterestFactory, SaleFactory

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def product_service(record_service):
    """ProductAnalyticsService backed by the mock store."""
    with patch("services.product_analytics_service.get_record_service", return_value=record_service):
        yield ProductAnalyticsService()


def row(id, **fields) -> ProductPerformanceRow:
    return ProductPerformanceRow(id=id, status="Active", **fields)


# ===================
# SORTING
# ===================

class TestSortRows:
    """Tests for sort_rows."""

    def test_accepts_camel_case(self):
        rows = [row("a", sold_price=Decimal("10")), row("b", sold_price=Decimal("30"))]

        assert [r.id for r in sort_rows(rows, "soldPrice", "desc")] == ["b", "a"]

    def test_nulls_are_smallest(self):
        rows = [row("a", profit=Decimal("5")), row("b"), row("c", profit=Decimal("-5"))]

        assert [r.id for r in sort_rows(rows, "profit", "asc")] == ["b", "c", "a"]
        assert [r.id for r in sort_rows(rows, "profit", "desc")] == ["a", "c", "b"]

    def test_strings_ignore_case(self):
        rows = [row("a", title="beta"), row("b", title="Alpha"), row("c", title="gamma")]

        assert [r.id for r in sort_rows(rows, "title", "asc")] == ["b", "a", "c"]

    def test_unknown_field_raises(self):
        with pytest.raises(InvalidSortFieldError) as exc_info:
            sort_rows([row("a")], "password", "asc")

        assert exc_info.value.status_code == 422
        assert "views" in exc_info.value.details["valid"]


# ===================
# PRICE INTELLIGENCE
# ===================

class TestPriceHelpers:
    """Tests for price_position and price_deviation."""

    @pytest.mark.parametrize("listing,market,expected", [
        (Decimal("120"), Decimal("100"), "Overpriced"),
        (Decimal("80"), Decimal("100"), "Underpriced"),
        (Decimal("100"), Decimal("100"), "At Market"),
        (None, Decimal("100"), "At Market"),
    ])
    def test_position(self, listing, market, expected):
        assert price_position(listing, market) == expected

    def test_deviation(self):
        assert price_deviation(Decimal("120"), Decimal("100")) == 20
        assert price_deviation(Decimal("80"), Decimal("100")) == -20
        assert price_deviation(Decimal("80"), Decimal("0")) == 0


class TestViewsRamp:
    """Tests for views_ramp."""

    def test_ends_at_current_views(self):
        asset = AssetRecord(id="a-1", views=100, created_at=NOW - timedelta(days=10))

        points = views_ramp(asset, NOW)

        assert len(points) == 10
        assert points[0].date == date(2026, 10, 9)
        assert points[0].views == 10
        assert points[-1].views == 100
        assert [p.views for p in points] == sorted(p.views for p in points)

    def test_capped_at_thirty_points(self):
        asset = AssetRecord(id="a-1", views=7, created_at=NOW - timedelta(days=200))

        points = views_ramp(asset, NOW)

        assert len(points) == 30
        assert points[-1].views == 7

    def test_brand_new_listing(self):
        asset = AssetRecord(id="a-1", views=3, created_at=NOW)

        assert [p.views for p in views_ramp(asset, NOW)] == [3]


# ===================
# PERFORMANCE TABLE
# ===================

class TestGetAllPerformance:
    """Tests for get_all_performance."""

    @pytest.fixture
    def catalogue(self, mock_supabase):
        mock_supabase.set_table_data("assets", [
            AssetFactory.create(id="a-1", business_id="biz-1", title="Lathe", price=150, cost_price=100,
                                views=10, created_at=datetime(2026, 2, 1, tzinfo=timezone.utc)),
            AssetFactory.create(id="a-2", business_id="biz-1", title="Crane", status="inactive",
                                created_at=datetime(2026, 3, 1, tzinfo=timezone.utc)),
        ])
        mock_supabase.set_table_data("sales", [
            SaleFactory.create(asset_id="a-1", buyer_id="b-1", price=120,
                               deal_date=datetime(2026, 10, 10, 12, tzinfo=timezone.utc)),
        ])
        mock_supabase.set_table_data("interests", [
            InterestFactory.create(asset_id="a-1", buyer_id="b-1",
                                   created_at=datetime(2026, 10, 5, tzinfo=timezone.utc)),
        ])

    def test_sold_row(self, product_service, catalogue):
        rows = product_service.get_all_performance("biz-1")

        lathe = next(r for r in rows if r.id == "a-1")
        assert lathe.status == "Active"
        assert lathe.sold_price == Decimal("120")
        assert lathe.profit == Decimal("20")
        assert lathe.margin == Decimal("16.7")
        assert lathe.negotiation_duration == 6

    def test_unsold_row(self, product_service, catalogue):
        rows = product_service.get_all_performance("biz-1")

        crane = next(r for r in rows if r.id == "a-2")
        assert crane.status == "Inactive"
        assert crane.sold_price is None
        assert crane.profit is None
        assert crane.negotiation_duration is None
        assert crane.cost_price == Decimal("0")

    def test_default_sort_is_newest_first(self, product_service, catalogue):
        rows = product_service.get_all_performance("biz-1")

        assert [r.id for r in rows] == ["a-2", "a-1"]

    def test_sort_by_sold_price_ascending(self, product_service, catalogue):
        rows = product_service.get_all_performance("biz-1", sort_by="soldPrice", order="asc")

        assert [r.id for r in rows] == ["a-2", "a-1"]

    def test_invalid_sort_field(self, product_service, catalogue):
        with pytest.raises(InvalidSortFieldError):
            product_service.get_all_performance("biz-1", sort_by="nope")

    def test_business_without_assets(self, product_service, mock_supabase):
        mock_supabase.set_table_data("assets", [])

        assert product_service.get_all_performance("biz-1") == []
        assert mock_supabase.table("sales").executions == 0


# ===================
# DEEP DIVE
# ===================

class TestGetDetails:
    """Tests for get_details."""

    @pytest.fixture
    def listing(self, mock_supabase):
        mock_supabase.set_table_data("assets", [
            AssetFactory.create(id="a-1", category="Furniture", price=300, cost_price=100, views=40,
                                images=["https://cdn.example.com/a-1.jpg"], created_at=NOW - timedelta(days=10)),
            AssetFactory.create(id="a-2", category="Furniture", price=250),
        ])
        mock_supabase.set_table_data("sales", [
            SaleFactory.create(asset_id="a-1", buyer_id="b-1", price=250, negotiation_duration=3,
                               deal_date=NOW - timedelta(days=2)),
            SaleFactory.create(asset_id="a-1", buyer_id="b-2", price=None, total_amount=260,
                               deal_date=NOW - timedelta(days=1)),
            SaleFactory.create(asset_id="a-2", price=200),
            SaleFactory.create(asset_id="a-2", price=300),
        ])
        mock_supabase.set_table_data("interests", [
            InterestFactory.create(asset_id="a-1", buyer_id="b-1", status="accepted", created_at=NOW - timedelta(days=5)),
            InterestFactory.create(asset_id="a-1", buyer_id="b-2", status="negotiating", created_at=NOW - timedelta(days=4)),
            InterestFactory.create(asset_id="a-1", buyer_id="b-3", status="rejected", created_at=NOW - timedelta(days=3)),
            InterestFactory.create(asset_id="a-1", buyer_id="b-4", status="pending", created_at=NOW - timedelta(days=3)),
        ])

    def test_metrics(self, product_service, listing):
        details = product_service.get_details("a-1", now=NOW)

        metrics = details.metrics
        assert metrics.total_orders == 2
        assert metrics.total_revenue == Decimal("510")
        assert metrics.total_profit == Decimal("310")
        assert metrics.avg_profit == Decimal("155.00")
        assert metrics.avg_time_to_sell == 9
        assert metrics.avg_time_interest_to_sold == Decimal("3.00")
        assert metrics.avg_time_neg_to_sold == Decimal("3.00")
        assert metrics.avg_negotiated_final_price == Decimal("250.00")
        assert metrics.deals_per_100 == Decimal("50.0")
        assert metrics.conversion_rate == Decimal("5.00")

    def test_funnel_and_breakdown(self, product_service, listing):
        details = product_service.get_details("a-1", now=NOW)

        assert details.negotiation.passed == 1
        assert details.negotiation.failed == 1
        assert details.funnel.impressions == 40
        assert details.funnel.attract == 4
        assert details.funnel.interact == 1
        assert details.funnel.convert == 2
        assert details.breakdown.pending_requests == 1
        assert details.breakdown.rejected_requests == 1

    def test_asset_summary(self, product_service, listing):
        details = product_service.get_details("a-1", now=NOW)

        assert details.asset.image_url == "https://cdn.example.com/a-1.jpg"
        assert details.asset.available_qty == 1

    def test_price_intelligence(self, product_service, listing):
        details = product_service.get_details("a-1", now=NOW)

        intel = details.price_intelligence
        assert intel.market_avg_price == Decimal("250.00")
        assert intel.price_position == "Overpriced"
        assert intel.deviation == 20

    def test_market_falls_back_to_own_price(self, product_service, mock_supabase):
        mock_supabase.set_table_data("assets", [AssetFactory.create(id="a-1", category="Art", price=80)])
        mock_supabase.set_table_data("sales", [])

        intel = product_service.get_details("a-1", now=NOW).price_intelligence

        assert intel.market_avg_price == Decimal("80.00")
        assert intel.price_position == "At Market"
        assert intel.deviation == 0

    def test_trends(self, product_service, listing):
        details = product_service.get_details("a-1", now=NOW)

        assert [(p.date, p.amount, p.profit) for p in details.trends.revenue] == [
            (date(2026, 10, 17), Decimal("250"), Decimal("150")),
            (date(2026, 10, 18), Decimal("260"), Decimal("160")),
        ]
        assert len(details.trends.views) == 10
        assert details.trends.views[-1].views == 40

    def test_zero_views_means_zero_conversion(self, product_service, mock_supabase):
        mock_supabase.set_table_data("assets", [AssetFactory.create(id="a-1", views=0)])
        mock_supabase.set_table_data("sales", SaleFactory.create_batch(2, asset_id="a-1"))

        metrics = product_service.get_details("a-1", now=NOW).metrics

        assert metrics.total_orders == 2
        assert metrics.conversion_rate == 0
        assert metrics.deals_per_100 == 0

    def test_range_limits_sales(self, product_service, listing, mock_supabase):
        mock_supabase.rows("sales").append(
            SaleFactory.create(asset_id="a-1", price=999, deal_date=datetime(2026, 1, 15, tzinfo=timezone.utc))
        )

        assert product_service.get_details("a-1", "15d", now=NOW).metrics.total_orders == 2
        assert product_service.get_details("a-1", now=NOW).metrics.total_orders == 3

    def test_unknown_asset(self, product_service, mock_supabase):
        mock_supabase.set_table_data("assets", [])

        with pytest.raises(AssetNotFoundError):
            product_service.get_details("ghost", now=NOW)
