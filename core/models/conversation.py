# =============================================================================
# core/models/conversation.py - Conversation Schemas
# =============================================================================
# A conversation is a binary thread between a listing's seller and one buyer:
# - Conversation: A row of the `conversations` table (buyer_id/seller_id)
# - ConversationStart: Request body for starting (or reopening) a thread
# - ConversationSummary: One inbox row, with counterpart and latest message
#
# Invariants:
# - exactly two distinct participants (buyer_id != seller_id)
# - exactly one listing
# - at most one conversation per (listing_id, buyer_id, seller_id)
# - updated_at advances on every new message
# =============================================================================

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .message import MessagePreview
from .profile import SenderProfile


class Conversation(BaseModel):
    """
    Conversation row.

    Example:
        {
            "id": "990e8400-...",
            "listing_id": "770e8400-...",
            "buyer_id": "550e8400-...",
            "seller_id": "660e8400-...",
            "created_at": "2024-01-15T10:30:00Z",
            "updated_at": "2024-01-15T10:31:00Z"
        }
    """

    id: str = Field(..., description="Conversation ID")

    listing_id: str = Field(..., description="Listing this conversation is about")

    buyer_id: str = Field(..., description="Prospective buyer user ID")

    seller_id: str = Field(..., description="Seller (listing owner) user ID")

    created_at: datetime | None = Field(default=None, description="When the thread started")

    updated_at: datetime | None = Field(
        default=None,
        description="Latest activity: creation or most recent message"
    )

    @property
    def participants(self) -> tuple[str, str]:
        """(buyer_id, seller_id)"""
        return (self.buyer_id, self.seller_id)

    def has_participant(self, user_id: str) -> bool:
        return str(user_id) in self.participants

    def counterpart(self, self_id: str) -> str:
        """
        Return the other participant's ID.

        Raises:
            ValueError: If self_id is not a participant
        """
        self_id = str(self_id)
        if self_id == self.buyer_id:
            return self.seller_id
        if self_id == self.seller_id:
            return self.buyer_id
        raise ValueError(f"User {self_id} is not a participant in conversation {self.id}")


class ConversationStart(BaseModel):
    """
    Request body for starting a conversation.

    The authenticated user is always one participant; `participant_id`
    is the other one (usually the listing's seller).
    """

    listing_id: str = Field(..., min_length=1, description="Listing to talk about")

    participant_id: str = Field(..., min_length=1, description="The other participant's user ID")


class ConversationSummary(BaseModel):
    """
    Inbox row for a conversation, from one participant's point of view.

    Example:
        {
            "id": "990e8400-...",
            "listing_id": "770e8400-...",
            "listing_title": "Canon AE-1",
            "listing_price": "120.00",
            "counterpart": {"id": "660e8400-...", "username": "vintage_vic", "avatar_url": null},
            "latest_message": {"content": "Yes!", "created_at": "...", "sender_id": "660e...", "is_read": false},
            "unread_count": 1,
            "created_at": "2024-01-15T10:30:00Z",
            "updated_at": "2024-01-15T10:32:00Z"
        }
    """

    id: str = Field(..., description="Conversation ID")

    listing_id: str = Field(..., description="Listing ID")

    listing_title: str = Field(default="Unknown listing", description="Listing title")

    listing_price: Decimal | None = Field(default=None, description="Listing price")

    counterpart: SenderProfile = Field(..., description="The other participant")

    latest_message: MessagePreview | None = Field(
        default=None,
        description="Most recent message, or null if nothing was sent yet"
    )

    unread_count: int = Field(
        default=0,
        ge=0,
        description="Messages from the counterpart not yet read"
    )

    created_at: datetime | None = Field(default=None, description="When the thread started")

    updated_at: datetime | None = Field(default=None, description="Latest activity")
