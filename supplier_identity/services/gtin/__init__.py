"""GTIN validation services.

Key Components:
    - validate: Full length + check-digit validation
    - is_likely_format: Cheap pre-check for interactive callers
    - normalize_to_gtin14 / are_equivalent: Cross-format comparison
"""
from supplier_identity.services.gtin.validator import (
    GtinValidationResult,
    VALID_GTIN_LENGTHS,
    calculate_check_digit,
    clean_gtin,
    validate,
    is_likely_format,
    normalize_to_gtin14,
    are_equivalent,
    format_for_display,
)

__all__ = [
    "GtinValidationResult",
    "VALID_GTIN_LENGTHS",
    "calculate_check_digit",
    "clean_gtin",
    "validate",
    "is_likely_format",
    "normalize_to_gtin14",
    "are_equivalent",
    "format_for_display",
]
