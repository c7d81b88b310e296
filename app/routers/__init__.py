# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - conversations.py: Conversations, messages and read state
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import conversations
from . import health

__all__ = [
    "conversations",
    "health",
]
