# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional

from pydantic import BaseModel


class AuthUser(BaseModel):
    """
    Authenticated user extracted from Supabase JWT.

    This is the minimal user info available from the token itself,
    without querying the database.
    """
    id: str
    email: Optional[str] = None

    model_config = {"frozen": True}


class UserResponse(BaseModel):
    """
    Current user's profile for GET /auth/me.

    Falls back to token claims when the profile row doesn't exist yet
    (signup trigger hasn't run).
    """
    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
