# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .messaging_service import MessagingService
from .subscription import MessageSubscription

__all__ = [
    "MessagingService",
    "MessageSubscription",
]
