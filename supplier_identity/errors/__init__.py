"""Error handling module."""
from supplier_identity.errors.exceptions import (
    IdentityEngineError,
    DomainError,
    NotFoundError,
    InvalidStateError,
    ValidationError,
    UnauthorizedError,
    DatabaseError,
)

__all__ = [
    "IdentityEngineError",
    "DomainError",
    "NotFoundError",
    "InvalidStateError",
    "ValidationError",
    "UnauthorizedError",
    "DatabaseError",
]
