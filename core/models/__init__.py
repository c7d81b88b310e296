# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - session.py: UserSession (explicit caller context)
# - profile.py: UserProfile and SenderProfile display fields
# - listing.py: Listing and ListingCondition
# - conversation.py: Conversation rows and inbox summaries
# - message.py: Message rows, send requests and previews
#
# These models define the "contract" between API and clients.
# =============================================================================

from .session import UserSession
from .profile import SenderProfile, UserProfile
from .listing import Listing, ListingCondition
from .message import Message, MessageCreate, MessagePreview
from .conversation import Conversation, ConversationStart, ConversationSummary

__all__ = [
    # Session
    "UserSession",
    # Profiles
    "UserProfile",
    "SenderProfile",
    # Listings
    "Listing",
    "ListingCondition",
    # Messages
    "Message",
    "MessageCreate",
    "MessagePreview",
    # Conversations
    "Conversation",
    "ConversationStart",
    "ConversationSummary",
]
