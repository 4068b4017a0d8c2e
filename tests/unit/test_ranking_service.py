"""
Unit tests for ranking and performer selection.
"""

from decimal import Decimal

from services.kpi_service import ProductStats
from services.ranking_service import select_performers, select_rankings


def product(asset_id, count=1, revenue=0, profit=0) -> ProductStats:
    return ProductStats(
        asset_id=asset_id,
        title=asset_id.upper(),
        count=count,
        revenue=Decimal(str(revenue)),
        profit=Decimal(str(profit)),
    )


class TestSelectRankings:
    """Tests for select_rankings."""

    def test_no_products(self):
        rankings = select_rankings([])

        assert rankings.top_selling is None
        assert rankings.least_selling is None
        assert rankings.most_profitable is None
        assert rankings.least_profitable is None

    def test_extremes(self):
        products = [
            product("a", count=2, revenue=200, profit=50),
            product("b", count=5, revenue=100, profit=-20),
            product("c", count=1, revenue=300, profit=120),
        ]

        rankings = select_rankings(products)

        assert rankings.top_selling.asset_id == "b"
        assert rankings.least_selling.asset_id == "c"
        assert rankings.most_profitable.asset_id == "c"
        assert rankings.least_profitable.asset_id == "b"

    def test_ties_keep_first_encountered(self):
        products = [product("a", count=3), product("b", count=3)]

        rankings = select_rankings(products)

        assert rankings.top_selling.asset_id == "a"
        assert rankings.least_selling.asset_id == "a"


class TestSelectPerformers:
    """Tests for select_performers."""

    def test_lists_are_capped_at_five(self):
        products = [product(f"p{i}", count=i, revenue=i * 10, profit=i) for i in range(8)]

        performers = select_performers(products)

        assert len(performers.best_by_quantity) == 5
        assert [p.asset_id for p in performers.best_by_quantity] == ["p7", "p6", "p5", "p4", "p3"]
        assert [p.asset_id for p in performers.worst_by_quantity] == ["p0", "p1", "p2", "p3", "p4"]

    def test_loss_is_profit_ascending(self):
        products = [
            product("a", revenue=100, profit=10),
            product("b", revenue=100, profit=-40),
            product("c", revenue=100, profit=-5),
        ]

        performers = select_performers(products)

        assert [p.asset_id for p in performers.worst_by_loss] == ["b", "c", "a"]
        assert [p.asset_id for p in performers.best_by_profit] == ["a", "c", "b"]

    def test_margin_ascending(self):
        products = [
            product("a", revenue=100, profit=50),   # 50%
            product("b", revenue=200, profit=20),   # 10%
            product("c", revenue=0, profit=0),      # 0%
        ]

        performers = select_performers(products)

        assert [p.asset_id for p in performers.worst_by_margin] == ["c", "b", "a"]

    def test_margin_orders_before_rounding(self):
        products = [
            product("a", revenue=10000, profit=1004),  # 10.04%
            product("b", revenue=10000, profit=1001),  # 10.01%
        ]

        performers = select_performers(products)

        assert products[0].margin == products[1].margin == Decimal("10.0")
        assert [p.asset_id for p in performers.worst_by_margin] == ["b", "a"]

    def test_descending_ties_are_stable(self):
        products = [product("a", revenue=100), product("b", revenue=100), product("c", revenue=50)]

        performers = select_performers(products)

        assert [p.asset_id for p in performers.best_by_revenue] == ["a", "b", "c"]

    def test_empty(self):
        performers = select_performers([])

        assert performers.best_by_revenue == []
        assert performers.worst_by_margin == []
