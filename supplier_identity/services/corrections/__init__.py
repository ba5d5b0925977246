"""Supplier correction lifecycle service."""
from supplier_identity.services.corrections.service import CorrectionService

__all__ = ["CorrectionService"]
