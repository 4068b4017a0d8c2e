"""
Ranking and performer selection over per-product rollups.

Sorts are stable, so products with equal keys keep the order in which they
were first encountered during aggregation.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from services.kpi_service import ProductStats

PERFORMER_LIMIT = 5


@dataclass
class Rankings:
    """Single best/worst product per dimension (None when nothing sold)."""

    top_selling: Optional[ProductStats] = None
    least_selling: Optional[ProductStats] = None
    most_profitable: Optional[ProductStats] = None
    least_profitable: Optional[ProductStats] = None


@dataclass
class PerformerLists:
    """Top and bottom product lists."""

    best_by_quantity: list = field(default_factory=list)
    best_by_revenue: list = field(default_factory=list)
    best_by_profit: list = field(default_factory=list)
    worst_by_quantity: list = field(default_factory=list)
    worst_by_loss: list = field(default_factory=list)
    worst_by_margin: list = field(default_factory=list)


def _by_count(p: ProductStats):
    return p.count


def _by_revenue(p: ProductStats):
    return p.revenue


def _by_profit(p: ProductStats):
    return p.profit


def _by_margin(p: ProductStats):
    return p.margin_ratio


def top(products: Sequence[ProductStats], key: Callable, limit: int = PERFORMER_LIMIT) -> list:
    """Highest `limit` products by key, descending."""
    return sorted(products, key=key, reverse=True)[:limit]


def bottom(products: Sequence[ProductStats], key: Callable, limit: int = PERFORMER_LIMIT) -> list:
    """Lowest `limit` products by key, ascending."""
    return sorted(products, key=key)[:limit]


def select_rankings(products: Sequence[ProductStats]) -> Rankings:
    """Pick the top/least selling and most/least profitable products."""
    if not products:
        return Rankings()

    return Rankings(
        top_selling=max(products, key=_by_count),
        least_selling=min(products, key=_by_count),
        most_profitable=max(products, key=_by_profit),
        least_profitable=min(products, key=_by_profit),
    )


def select_performers(
    products: Sequence[ProductStats],
    limit: int = PERFORMER_LIMIT,
) -> PerformerLists:
    """
    Build best/worst performer lists.

    Loss ranking is the profit ranking ascending (biggest losses first).
    """
    return PerformerLists(
        best_by_quantity=top(products, _by_count, limit),
        best_by_revenue=top(products, _by_revenue, limit),
        best_by_profit=top(products, _by_profit, limit),
        worst_by_quantity=bottom(products, _by_count, limit),
        worst_by_loss=bottom(products, _by_profit, limit),
        worst_by_margin=bottom(products, _by_margin, limit),
    )
