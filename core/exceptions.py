"""Application-wide exception classes."""

from __future__ import annotations

from typing import Any, Dict, Optional


class ApplicationError(Exception):
    """Base exception for all application errors.

    ``status_code`` and ``code`` drive the JSON error response; ``extra``
    carries additional response fields.
    """
    status_code = 500
    code = "internal"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.extra)
        return payload


class AuthenticationError(ApplicationError):
    """Raised when authentication fails."""
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required"


class UserNotFoundError(AuthenticationError):
    """Raised when a valid credential points at a user that no longer exists."""
    code = "user_not_found"
    default_message = "User not found. Please login again."


class AuthorizationError(ApplicationError):
    """Raised when authorization fails."""
    status_code = 403
    code = "forbidden"
    default_message = "Admin access required. This action is forbidden."


class NotFoundError(ApplicationError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ValidationError(ApplicationError):
    """Raised when data validation fails."""
    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class InvalidTicketCountError(ValidationError):
    code = "invalid_ticket_count"
    default_message = "Ticket count must be a positive integer"


class BelowMinimumError(ValidationError):
    code = "below_minimum"


class AboveMaximumError(ValidationError):
    code = "above_maximum"


class WebhookVerificationError(ValidationError):
    """Raised when a payment notification fails signature or format checks."""
    code = "webhook_verification_failed"
    default_message = "Webhook signature verification failed"


class ConflictError(ApplicationError):
    """Raised when a request conflicts with current state."""
    status_code = 409
    code = "conflict"
    default_message = "Request conflicts with current state"


class DuplicateAccountError(ConflictError):
    code = "duplicate_account"


class RaffleNotActiveError(ConflictError):
    code = "raffle_not_active"
    default_message = "Raffle is not active"


class RaffleNotYetOpenError(RaffleNotActiveError):
    code = "raffle_not_yet_open"
    default_message = "Raffle is not open for entries yet"


class RaffleEndedError(ConflictError):
    code = "raffle_ended"
    default_message = "Raffle has ended"


class CapacityExceededError(ConflictError):
    code = "capacity_exceeded"


class InsufficientBalanceError(ConflictError):
    code = "insufficient_balance"
    default_message = "Insufficient ticket balance"

    def __init__(self, required: int, available: int) -> None:
        super().__init__(required=required, available=available)
        self.required = required
        self.available = available


class HasDependentEntriesError(ConflictError):
    code = "has_dependent_entries"
    default_message = 'Cannot delete raffle with entries. Set status to "cancelled" instead.'


class AlreadyDrawnError(ConflictError):
    code = "already_drawn"
    default_message = "Raffle has already been drawn"


class NoEntriesError(ConflictError):
    code = "no_entries"
    default_message = "No entries for this raffle"


class RateLimitError(ApplicationError):
    """Raised when rate limit is exceeded."""
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests"


class DailyLimitReachedError(RateLimitError):
    code = "daily_limit_reached"


class ExternalServiceError(ApplicationError):
    """Raised when an upstream service is unreachable or failing."""
    status_code = 502
    code = "external_service_failure"
    default_message = "Upstream service unavailable"


class PaymentProviderError(ExternalServiceError):
    default_message = "Payment provider request failed"
