"""Custom exception hierarchy for identity resolution and correction errors."""
from typing import Any, Dict, Optional


class IdentityEngineError(Exception):
    """Base exception for all supplier identity errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error with message and optional structured details."""
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainError(IdentityEngineError):
    """Expected business-rule outcome, reported to the caller as a typed result."""

    code = "domain_error"


class NotFoundError(DomainError):
    """Raised when a record is absent or outside the caller's scope.

    Scope violations use the same message as absence so foreign
    tenants' data cannot be probed.
    """

    code = "not_found"


class InvalidStateError(DomainError):
    """Raised when a record is in the wrong state for the requested transition."""

    code = "invalid_state"


class ValidationError(DomainError):
    """Raised when input validation fails (malformed GTIN, bad field values)."""

    code = "validation_error"


class UnauthorizedError(DomainError):
    """Raised when the caller lacks the role required for an operation."""

    code = "unauthorized"


class DatabaseError(IdentityEngineError):
    """Raised when database operations fail."""
    pass
