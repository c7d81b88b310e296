# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - models/: Pydantic schemas for sessions, profiles, listings,
#   conversations and messages
# - services/: The messaging coordinator and realtime subscriptions
#
# Code in this package should NOT import from FastAPI route modules.
# This keeps the logic testable and reusable.
# =============================================================================
