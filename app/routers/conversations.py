# =============================================================================
# app/routers/conversations.py - Conversation & Message Endpoints
# =============================================================================
# HTTP surface of the messaging coordinator.
# All endpoints require authentication; the verified token becomes the
# UserSession passed into every service call.
#
# Handlers are plain `def`: the Supabase client is synchronous, so FastAPI
# runs them in its threadpool and the event loop stays free for the
# WebSocket feeds.
# =============================================================================

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from app.auth import get_user_session
from core.models.conversation import ConversationStart, ConversationSummary
from core.models.message import Message, MessageCreate
from core.models.session import UserSession
from core.services.messaging_service import MessagingService

router = APIRouter()

ConversationId = Annotated[UUID, Path(description="Conversation ID")]


# =============================================================================
# Response Models
# =============================================================================

class ConversationStartResponse(BaseModel):
    """Response when starting (or reopening) a conversation."""
    conversation_id: str = Field(..., examples=["990e8400-e29b-41d4-a716-446655440000"])


class MarkReadResponse(BaseModel):
    """Response after marking a conversation read."""
    conversation_id: str
    marked_read: int = Field(..., ge=0, description="Messages flipped to read")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=ConversationStartResponse)
def start_conversation(
    request: ConversationStart,
    session: UserSession = Depends(get_user_session),
):
    """
    Start a conversation about a listing, or return the existing one.

    The caller is one participant and `participant_id` the other.
    Calling again (from either side) returns the same conversation_id.
    """
    conversation_id = MessagingService.start_or_get_conversation(
        session,
        listing_id=request.listing_id,
        user_a=session.user_id,
        user_b=request.participant_id,
    )
    return ConversationStartResponse(conversation_id=conversation_id)


@router.get("", response_model=list[ConversationSummary])
def list_conversations(
    session: UserSession = Depends(get_user_session),
):
    """
    List the caller's conversations, most recently active first.
    """
    return MessagingService.list_conversations(session)


@router.get("/{conversation_id}", response_model=ConversationSummary)
def get_conversation(
    conversation_id: ConversationId,
    session: UserSession = Depends(get_user_session),
):
    """
    Get one conversation's summary (listing, counterpart, latest message).
    """
    return MessagingService.get_conversation(session, str(conversation_id))


@router.get("/{conversation_id}/messages", response_model=list[Message])
def list_messages(
    conversation_id: ConversationId,
    session: UserSession = Depends(get_user_session),
):
    """
    List messages oldest first, with sender display fields.
    """
    return MessagingService.list_messages(session, str(conversation_id))


@router.post("/{conversation_id}/messages", response_model=Message, status_code=201)
def send_message(
    conversation_id: ConversationId,
    request: MessageCreate,
    session: UserSession = Depends(get_user_session),
):
    """
    Send a message as the caller.

    Blank content is rejected with 400 EMPTY_MESSAGE and nothing is stored.
    """
    return MessagingService.send_message(session, str(conversation_id), request.content)


@router.post("/{conversation_id}/read", response_model=MarkReadResponse)
def mark_read(
    conversation_id: ConversationId,
    session: UserSession = Depends(get_user_session),
):
    """
    Mark every message from the other participant as read.
    """
    flipped = MessagingService.mark_read(session, str(conversation_id))
    return MarkReadResponse(conversation_id=str(conversation_id), marked_read=flipped)
