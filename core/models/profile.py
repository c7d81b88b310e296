# =============================================================================
# core/models/profile.py - User Profile Schemas
# =============================================================================
# Rows of the `profiles` table. Profiles are created at signup and edited by
# their owner; this service only reads them to resolve display fields.
# =============================================================================

from pydantic import BaseModel, Field, field_validator

UNKNOWN_USERNAME = "Unknown user"


class UserProfile(BaseModel):
    """
    Public profile of a marketplace user.

    Example:
        {
            "id": "550e8400-...",
            "email": "seller@example.com",
            "username": "vintage_vic",
            "avatar_url": "https://xxx.supabase.co/storage/v1/object/public/avatars/vic.png",
            "bio": "Mostly cameras."
        }
    """

    id: str = Field(..., description="User ID (matches auth.users.id)")

    email: str | None = Field(default=None, description="Account email")

    username: str = Field(..., min_length=1, description="Display username")

    avatar_url: str | None = Field(default=None, description="Public avatar URL")

    bio: str | None = Field(default=None, description="Free-form profile bio")


class SenderProfile(BaseModel):
    """
    Display fields for a message sender or conversation counterpart.

    Embedded in Message and ConversationSummary so clients can render
    a name and avatar without a second lookup.
    """

    id: str | None = Field(default=None, description="User ID")

    username: str = Field(default=UNKNOWN_USERNAME, description="Display username")

    avatar_url: str | None = Field(default=None, description="Public avatar URL")

    @field_validator("username", mode="before")
    @classmethod
    def default_username(cls, value: str | None) -> str:
        # profiles.username is nullable until the owner edits their profile
        return value or UNKNOWN_USERNAME
