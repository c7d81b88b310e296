# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Seeds an in-memory Supabase with a buyer, a seller and a listing
# - Routes SupabaseClient.for_session to that in-memory database
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-hs256-signing")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from unittest.mock import patch

import pytest

from core.models.session import UserSession
from lib.supabase_client import SupabaseClient
from tests.fake_supabase import FakeDatabase

BUYER_ID = "user-buyer"
SELLER_ID = "user-seller"
OTHER_ID = "user-other"
LISTING_ID = "L42"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    """In-memory database with two participants, a bystander and one listing."""
    db = FakeDatabase()
    db.seed("profiles", id=BUYER_ID, email="buyer@example.com", username="buyer_bo", avatar_url=None)
    db.seed(
        "profiles",
        id=SELLER_ID,
        email="seller@example.com",
        username="vintage_vic",
        avatar_url="https://test-project.supabase.co/storage/v1/object/public/avatars/vic.png",
    )
    db.seed("profiles", id=OTHER_ID, email="other@example.com", username="nosy_ned")
    db.seed(
        "listings",
        id=LISTING_ID,
        title="Canon AE-1",
        description="Works great",
        price="120.00",
        condition="good",
        category_id=3,
        seller_id=SELLER_ID,
        images=[],
    )
    return db


@pytest.fixture
def supabase(fake_db):
    """Route every user-scoped client to the in-memory database."""
    with patch.object(SupabaseClient, "for_session", return_value=fake_db):
        yield fake_db


@pytest.fixture
def buyer_session():
    return UserSession(user_id=BUYER_ID, access_token="buyer-token", email="buyer@example.com")


@pytest.fixture
def seller_session():
    return UserSession(user_id=SELLER_ID, access_token="seller-token", email="seller@example.com")


@pytest.fixture
def other_session():
    return UserSession(user_id=OTHER_ID, access_token="other-token")
