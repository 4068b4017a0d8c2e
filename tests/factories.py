"""
Test data factories.

Build table rows (dicts shaped like Supabase responses) with sensible
defaults. Timestamps accept datetimes and are stored as ISO strings.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4


def iso(value) -> Optional[str]:
    """datetime -> ISO string (strings and None pass through)."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return value


class _Factory:
    """
    Base factory.

    Usage:
        # Create with defaults
        sale = SaleFactory.create()

        # Create with overrides
        sale = SaleFactory.create(asset_id="a-1", price=250)

        # Create multiple
        sales = SaleFactory.create_batch(5, asset_id="a-1")
    """

    _counter = 0
    timestamp_fields: tuple = ("created_at",)

    @classmethod
    def _next_counter(cls) -> int:
        _Factory._counter += 1
        return _Factory._counter

    @classmethod
    def defaults(cls, counter: int) -> dict:
        raise NotImplementedError

    @classmethod
    def create(cls, **overrides) -> dict:
        row = {**cls.defaults(cls._next_counter()), **overrides}
        for field in cls.timestamp_fields:
            row[field] = iso(row.get(field))
        return row

    @classmethod
    def create_batch(cls, count: int, **overrides) -> list:
        return [cls.create(**overrides) for _ in range(count)]


class BusinessFactory(_Factory):
    """Rows for the businesses table."""

    @classmethod
    def defaults(cls, counter: int) -> dict:
        return {
            "id": f"business-{counter}",
            "owner_id": "owner-1",
            "business_name": f"Surplus Co {counter}",
            "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        }


class UserFactory(_Factory):
    """Rows for the users table."""

    @classmethod
    def defaults(cls, counter: int) -> dict:
        return {
            "id": f"user-{counter}",
            "full_name": f"Buyer {counter}",
            "email": f"buyer{counter}@example.com",
            "company_name": f"Acme {counter}",
            "avatar_url": None,
            "role": "buyer",
            "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "mastery_badges": 0,
            "is_elite_eligible": True,
        }


class AssetFactory(_Factory):
    """Rows for the assets table."""

    @classmethod
    def defaults(cls, counter: int) -> dict:
        return {
            "id": f"asset-{counter}",
            "seller_id": "owner-1",
            "business_id": "business-1",
            "title": f"Asset {counter}",
            "category": "IT Hardware",
            "location": "Berlin",
            "price": 100,
            "cost_price": None,
            "views": 0,
            "status": "active",
            "quantity": 1,
            "images": [],
            "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }


class SaleFactory(_Factory):
    """Rows for the sales table."""

    timestamp_fields = ("created_at", "deal_date")

    @classmethod
    def defaults(cls, counter: int) -> dict:
        return {
            "id": f"sale-{counter}",
            "seller_id": "owner-1",
            "buyer_id": "buyer-1",
            "asset_id": "asset-1",
            "interest_id": None,
            "price": 100,
            "final_price": None,
            "quantity": 1,
            "total_amount": None,
            "deal_date": datetime(2026, 10, 10, 12, tzinfo=timezone.utc),
            "negotiation_duration": None,
            "status": "sold",
            "is_deleted": False,
            "created_at": datetime(2026, 10, 10, 12, tzinfo=timezone.utc),
        }


class InterestFactory(_Factory):
    """Rows for the interests table."""

    timestamp_fields = ("created_at", "negotiation_start_date")

    @classmethod
    def defaults(cls, counter: int) -> dict:
        return {
            "id": f"interest-{counter}",
            "buyer_id": "buyer-1",
            "seller_id": "owner-1",
            "asset_id": "asset-1",
            "status": "pending",
            "negotiation_start_date": None,
            "sales_status": None,
            "created_at": datetime(2026, 10, 5, tzinfo=timezone.utc),
        }
