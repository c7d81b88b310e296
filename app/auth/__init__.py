# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Provides JWT-based authentication using Supabase Auth.
#
# Usage:
#   from app.auth import get_user_session
#
#   @router.get("/protected")
#   async def protected(session: UserSession = Depends(get_user_session)):
#       return {"user_id": session.user_id}
# =============================================================================

from app.auth.dependencies import (
    InvalidTokenError,
    decode_access_token,
    get_current_user,
    get_user_session,
)
from app.auth.models import AuthUser, UserResponse

__all__ = [
    "InvalidTokenError",
    "decode_access_token",
    "get_current_user",
    "get_user_session",
    "AuthUser",
    "UserResponse",
]
