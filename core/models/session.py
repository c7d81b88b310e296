# =============================================================================
# core/models/session.py - User Session Context
# =============================================================================
# The authenticated caller, passed explicitly into every messaging operation.
#
# There is no ambient "current user": the API layer builds a UserSession from
# the verified JWT and hands it to the service, which uses `access_token` to
# open a Supabase client that acts as that user (so RLS policies apply).
# =============================================================================

from pydantic import BaseModel, Field


class UserSession(BaseModel):
    """
    Authenticated user context for a single request or connection.

    Example:
        {
            "user_id": "550e8400-e29b-41d4-a716-446655440000",
            "access_token": "eyJhbGciOi...",
            "email": "buyer@example.com"
        }
    """

    # The profile/auth user ID acting in this session
    user_id: str = Field(
        ...,
        min_length=1,
        description="Authenticated user ID (auth.uid())"
    )

    # Supabase access token forwarded to PostgREST and Realtime
    access_token: str = Field(
        ...,
        min_length=1,
        description="Supabase JWT used to authenticate database calls as this user"
    )

    email: str | None = Field(
        default=None,
        description="Email claim from the token, if present"
    )

    model_config = {"frozen": True}
