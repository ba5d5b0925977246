"""Database module."""
from supplier_identity.db.base import (
    Base,
    JSONVariant,
    UUIDMixin,
    TimestampMixin,
    get_engine,
    get_session_maker,
    get_session,
)

__all__ = [
    "Base",
    "JSONVariant",
    "UUIDMixin",
    "TimestampMixin",
    "get_engine",
    "get_session_maker",
    "get_session",
]
