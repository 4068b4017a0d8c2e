"""
Read models for marketplace records.

Sales, interests (leads), assets, businesses and users are written by other
parts of the platform; the analytics engine only reads them (the one
exception is the user's badge eligibility, see services/trust_service.py).

Most columns are optional because older rows predate later schema changes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from models.base import RecordSchema


class SaleStatus(str, Enum):
    """Lifecycle status of a sale."""

    SOLD = "sold"
    UNSOLD = "unsold"
    COMPLETED = "completed"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class InterestStatus(str, Enum):
    """Negotiation status of a lead."""

    PENDING = "pending"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class AssetStatus(str, Enum):
    """Listing status of an asset."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class SaleRecord(RecordSchema):
    """A finalized, priced transaction."""

    id: str
    seller_id: Optional[str] = None
    buyer_id: Optional[str] = None
    asset_id: Optional[str] = None
    interest_id: Optional[str] = None
    price: Optional[Decimal] = Field(None, description="Unit price")
    final_price: Optional[Decimal] = Field(None, description="Legacy negotiated price column")
    quantity: Optional[int] = 1
    total_amount: Optional[Decimal] = Field(None, description="Total deal value")
    deal_date: Optional[datetime] = None
    negotiation_duration: Optional[float] = Field(None, description="Negotiation length in days")
    status: Optional[str] = SaleStatus.SOLD.value
    is_deleted: Optional[bool] = False
    created_at: Optional[datetime] = None

    @property
    def occurred_at(self) -> Optional[datetime]:
        """Deal date, falling back to creation time."""
        return self.deal_date if self.deal_date is not None else self.created_at


class InterestRecord(RecordSchema):
    """A buyer's expressed interest in an asset."""

    id: str
    buyer_id: Optional[str] = None
    seller_id: Optional[str] = None
    asset_id: Optional[str] = None
    status: Optional[str] = InterestStatus.PENDING.value
    negotiation_start_date: Optional[datetime] = None
    sales_status: Optional[str] = None
    created_at: Optional[datetime] = None


class AssetRecord(RecordSchema):
    """A listed surplus asset."""

    id: str
    seller_id: Optional[str] = None
    business_id: Optional[str] = None
    title: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    price: Optional[Decimal] = Field(None, description="Listing price")
    cost_price: Optional[Decimal] = None
    views: Optional[int] = 0
    status: Optional[str] = AssetStatus.ACTIVE.value
    quantity: Optional[int] = None
    images: Optional[List[str]] = None
    created_at: Optional[datetime] = None


class BusinessRecord(RecordSchema):
    """A seller's business, used for ownership scoping."""

    id: str
    owner_id: str
    business_name: Optional[str] = None
    created_at: Optional[datetime] = None


class UserRecord(RecordSchema):
    """A marketplace account."""

    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    company_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None
    mastery_badges: Optional[int] = 0
    is_elite_eligible: Optional[bool] = True
