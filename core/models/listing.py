# =============================================================================
# core/models/listing.py - Listing Schemas
# =============================================================================
# Rows of the `listings` table. Listings are owned by their seller; a
# conversation only references one. Images live in `listing_images` and are
# not modelled here.
# =============================================================================

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class ListingCondition(str, Enum):
    """Condition of a listed item, as picked by the seller."""
    NEW = "new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Listing(BaseModel):
    """
    A sellable item posted by a user.

    Example:
        {
            "id": "770e8400-...",
            "title": "Canon AE-1",
            "description": "Works great, light meter accurate",
            "price": "120.00",
            "condition": "good",
            "category_id": 3,
            "seller_id": "550e8400-...",
            "created_at": "2024-01-15T10:30:00Z"
        }
    """

    id: str = Field(..., description="Listing ID")

    title: str | None = Field(default=None, description="Listing title")

    description: str | None = Field(default=None, description="Long description")

    price: Decimal | None = Field(default=None, ge=0, description="Asking price (non-negative)")

    condition: ListingCondition | None = Field(default=None, description="Item condition")

    category_id: int | str | None = Field(default=None, description="Category reference")

    # Owner of the listing; the seller role in any conversation about it
    seller_id: str = Field(..., description="Seller (owner) user ID")

    created_at: datetime | None = Field(default=None, description="When the listing was posted")
