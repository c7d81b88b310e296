# =============================================================================
# core/models/message.py - Message Schemas
# =============================================================================
# These models define the contract for chat messages:
# - Message: A row of the `messages` table, optionally with resolved sender
# - MessageCreate: Request body for sending a message
# - MessagePreview: Latest-message snippet shown in the inbox
#
# State machine for the read flag (one-way):
#   unread (is_read=false) -> read (is_read=true)
# =============================================================================

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .profile import SenderProfile


class Message(BaseModel):
    """
    A single message in a conversation.

    `sender` is populated when the message was fetched with its profile
    embedded (send_message, list_messages). Rows pushed by the realtime
    feed arrive without it.

    Example:
        {
            "id": "880e8400-...",
            "conversation_id": "990e8400-...",
            "sender_id": "550e8400-...",
            "content": "Is this available?",
            "created_at": "2024-01-15T10:31:00Z",
            "is_read": false,
            "sender": {"id": "550e8400-...", "username": "buyer_bo", "avatar_url": null}
        }
    """

    id: str = Field(..., description="Message ID")

    conversation_id: str = Field(..., description="Parent conversation ID")

    sender_id: str = Field(..., description="Author user ID")

    content: str = Field(..., min_length=1, description="Message text (immutable)")

    created_at: datetime = Field(..., description="When the message was stored")

    is_read: bool = Field(default=False, description="Read by the recipient")

    sender: SenderProfile | None = Field(
        default=None,
        description="Resolved sender display fields (absent on realtime pushes)"
    )

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> "Message":
        """Create a Message from a row, flattening a list-shaped embed."""
        data = dict(row)
        sender = data.get("sender")
        # PostgREST returns a list when it can't infer a to-one relationship
        if isinstance(sender, list):
            data["sender"] = sender[0] if sender else None
        if data.get("is_read") is None:
            data["is_read"] = False
        return cls.model_validate(data)


class MessageCreate(BaseModel):
    """Request body for sending a message."""

    content: str = Field(
        ...,
        description="Message text; leading/trailing whitespace is trimmed"
    )


class MessagePreview(BaseModel):
    """
    Latest message in a conversation, for inbox rows.
    """

    content: str = Field(..., description="Message text")

    created_at: datetime = Field(..., description="When the message was stored")

    sender_id: str | None = Field(default=None, description="Author user ID")

    is_read: bool = Field(default=False, description="Read by the recipient")
