# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized error taxonomy for the messaging API.
#
#   MarketplaceException
#   ├── ValidationError    (400) - caller must fix the input, never retried
#   ├── NotFoundError      (404) - referenced row absent or not visible
#   └── TransportError     (502) - Supabase/network failure, reads safe to retry
#
# Every exception raised by a coordinator operation carries `operation`
# ("start_conversation", "send_message", "mark_read", ...) so callers can tell
# a failed create from a failed send without a parallel class hierarchy.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class MarketplaceException(Exception):
    """
    Base exception for the marketplace messaging API.

    Provides structured error responses with actionable suggestions.
    """

    status_code: int = 500
    default_code: str = "MARKETPLACE_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}
        self.operation = operation

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.operation:
            result["operation"] = self.operation
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Taxonomy
# =============================================================================

class ValidationError(MarketplaceException):
    """Invalid input: empty content, missing identifiers, bad participant pair."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class NotFoundError(MarketplaceException):
    """A referenced conversation, listing or user does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"


class TransportError(MarketplaceException):
    """The backend or network failed. Reads are idempotent and safe to retry."""

    status_code = 502
    default_code = "TRANSPORT_ERROR"

    def __init__(self, error: str, operation: str | None = None, **kwargs: Any):
        super().__init__(
            message=f"Backend request failed: {error}",
            suggestion="Try again; pull to refresh is safe for read operations",
            operation=operation,
            **kwargs,
        )


# =============================================================================
# Validation Errors
# =============================================================================

class EmptyMessageError(ValidationError):
    """Raised when message content is empty after trimming whitespace."""

    def __init__(self, conversation_id: str, operation: str | None = "send_message"):
        super().__init__(
            message="Message content cannot be empty",
            code="EMPTY_MESSAGE",
            suggestion="Type a message before sending",
            details={"conversation_id": conversation_id},
            operation=operation,
        )


class MessageTooLongError(ValidationError):
    """Raised when message content exceeds MESSAGE_MAX_LENGTH."""

    def __init__(self, length: int, max_length: int, operation: str | None = "send_message"):
        super().__init__(
            message=f"Message too long: {length} characters (max: {max_length})",
            code="MESSAGE_TOO_LONG",
            suggestion=f"Shorten the message to {max_length} characters or fewer",
            details={"length": length, "max_length": max_length},
            operation=operation,
        )


class MissingIdentifierError(ValidationError):
    """Raised when a required ID argument is empty."""

    def __init__(self, field: str, operation: str | None = None):
        super().__init__(
            message=f"Missing identifier: {field}",
            code="MISSING_IDENTIFIER",
            suggestion=f"Pass a non-empty {field}",
            details={"field": field},
            operation=operation,
        )


class InvalidParticipantsError(ValidationError):
    """Raised when a conversation cannot be formed from the given participants."""

    def __init__(self, reason: str, operation: str | None = "start_conversation", **details: Any):
        super().__init__(
            message=f"Invalid conversation participants: {reason}",
            code="INVALID_PARTICIPANTS",
            suggestion="A conversation needs the listing's seller and one other user",
            details=details,
            operation=operation,
        )


# =============================================================================
# Not Found Errors
# =============================================================================

class ConversationNotFoundError(NotFoundError):
    """
    Raised when a conversation doesn't exist or the caller isn't a participant.

    Non-participants get the same error so existence is never revealed.
    """

    def __init__(self, conversation_id: str, operation: str | None = None):
        super().__init__(
            message=f"Conversation not found: {conversation_id}",
            code="CONVERSATION_NOT_FOUND",
            suggestion="Check the conversation_id and that you are one of its participants",
            details={"conversation_id": conversation_id},
            operation=operation,
        )


class ListingNotFoundError(NotFoundError):
    """Raised when a listing ID doesn't exist."""

    def __init__(self, listing_id: str, operation: str | None = None):
        super().__init__(
            message=f"Listing not found: {listing_id}",
            code="LISTING_NOT_FOUND",
            suggestion="The listing may have been removed by its seller",
            details={"listing_id": listing_id},
            operation=operation,
        )


class UserNotFoundError(NotFoundError):
    """Raised when a user profile doesn't exist."""

    def __init__(self, user_id: str, operation: str | None = None):
        super().__init__(
            message=f"User not found: {user_id}",
            code="USER_NOT_FOUND",
            suggestion="Check that the user has completed signup",
            details={"user_id": user_id},
            operation=operation,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def marketplace_exception_handler(
    request: Request,
    exc: MarketplaceException
) -> JSONResponse:
    """
    Convert MarketplaceException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - operation: Which coordinator operation failed (if any)
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
