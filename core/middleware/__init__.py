"""
Core middleware package.

- Error handling with sensitive data sanitization
- Structured logging with nonce and PII masking
- Capability-based authorization helpers
"""

from core.middleware.error_handling import (
    ErrorHandlingMiddleware,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredLoggingMiddleware,
    setup_logging,
    get_logger,
)

from core.middleware.authorization import (
    Capability,
    ROLE_CAPABILITIES,
    AuthorizationError,
    InsufficientCapabilities,
    can_edit_listing,
    check_capability,
    get_user_capabilities,
    user_can,
)

__all__ = [
    # Error handling
    "ErrorHandlingMiddleware",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredLoggingMiddleware",
    "setup_logging",
    "get_logger",
    # Authorization
    "Capability",
    "ROLE_CAPABILITIES",
    "AuthorizationError",
    "InsufficientCapabilities",
    "can_edit_listing",
    "check_capability",
    "get_user_capabilities",
    "user_can",
]
