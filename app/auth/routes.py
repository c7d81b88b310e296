# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Signup/login is handled by Supabase Auth on the device.
# These routes are for getting user info after authentication.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_user, get_user_session
from app.auth.models import AuthUser, UserResponse
from core.models.session import UserSession
from lib.supabase_client import PROFILE_DETAIL_COLUMNS, SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    session: UserSession = Depends(get_user_session)
) -> UserResponse:
    """
    Get the current authenticated user's profile.

    Email comes from the token; profiles don't store it.

    Raises:
        401: If not authenticated
    """
    try:
        client = SupabaseClient.for_session(session)
        profile = SupabaseClient.fetch_profile(client, session.user_id, PROFILE_DETAIL_COLUMNS)
        if profile:
            return UserResponse(email=session.email, **profile)
    except SupabaseClientError as e:
        logger.warning(f"Could not fetch user profile: {e}")

    return UserResponse(id=session.user_id, email=session.email)


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Raises:
        401: If token is invalid or expired
    """
    return {
        "valid": True,
        "user_id": user.id,
        "email": user.email
    }
