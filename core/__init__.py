"""Core application components."""

from core.logger import setup_logger, get_logger
from core.constants import (
    RaffleStatus,
    LedgerKind,
    UserRole,
    SubscriptionTier,
    DatabaseDefaults,
    AuthDefaults,
    AdDefaults,
    RaffleDefaults,
    PaginationDefaults,
    BillingDefaults,
    TICKET_PACKAGES,
)
from core.exceptions import (
    ApplicationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
    ConflictError,
    RateLimitError,
    ExternalServiceError,
)

__all__ = [
    # Logging
    'setup_logger',
    'get_logger',
    # Constants
    'RaffleStatus',
    'LedgerKind',
    'UserRole',
    'SubscriptionTier',
    'DatabaseDefaults',
    'AuthDefaults',
    'AdDefaults',
    'RaffleDefaults',
    'PaginationDefaults',
    'BillingDefaults',
    'TICKET_PACKAGES',
    # Exceptions
    'ApplicationError',
    'AuthenticationError',
    'AuthorizationError',
    'NotFoundError',
    'ValidationError',
    'ConflictError',
    'RateLimitError',
    'ExternalServiceError',
]
