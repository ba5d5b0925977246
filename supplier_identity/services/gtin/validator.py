"""GTIN (Global Trade Item Number) validation utilities.

Supports GTIN-8, GTIN-12 (UPC-A), GTIN-13 (EAN-13) and GTIN-14.
All functions are pure and total: they never raise on bad input.
"""
from dataclasses import dataclass
from typing import Optional
import re

VALID_GTIN_LENGTHS = (8, 12, 13, 14)

_SEPARATORS = re.compile(r"[\s\-.]")
_LIKELY_FORMAT = re.compile(r"^[0-9]{8,14}$")

_GTIN_TYPES = {
    8: "GTIN-8",
    12: "GTIN-12",
    13: "GTIN-13",
    14: "GTIN-14",
}


@dataclass(frozen=True)
class GtinValidationResult:
    """Outcome of GTIN validation.

    Attributes:
        valid: Whether the code is a well-formed GTIN
        error: Human-readable reason when invalid
        normalized: Digits-only code when valid
        gtin_type: GTIN-8, GTIN-12, GTIN-13 or GTIN-14 when valid
    """
    valid: bool
    error: Optional[str] = None
    normalized: Optional[str] = None
    gtin_type: Optional[str] = None


def clean_gtin(code: str) -> str:
    """Remove spaces, dashes and dots."""
    return _SEPARATORS.sub("", code)


def calculate_check_digit(body: str) -> int:
    """Calculate the GS1 modulo-10 check digit for a GTIN body.

    Weights alternate 3, 1, 3, ... starting from the rightmost body digit.
    """
    total = 0
    for position, char in enumerate(reversed(body)):
        weight = 3 if position % 2 == 0 else 1
        total += int(char) * weight
    return (10 - (total % 10)) % 10


def validate(code: Optional[str]) -> GtinValidationResult:
    """Validate a GTIN string.

    Args:
        code: Raw code, separators allowed

    Returns:
        GtinValidationResult describing the outcome
    """
    if code is None or not code.strip():
        return GtinValidationResult(valid=False, error="GTIN is required")

    cleaned = clean_gtin(code)

    if not cleaned.isdigit() or not cleaned.isascii():
        return GtinValidationResult(valid=False, error="GTIN must contain only digits")

    length = len(cleaned)
    if length not in VALID_GTIN_LENGTHS:
        return GtinValidationResult(
            valid=False,
            error=f"GTIN must be 8, 12, 13, or 14 digits. Got {length} digits.",
        )

    if cleaned.strip("0") == "":
        return GtinValidationResult(valid=False, error="GTIN cannot be all zeros")

    expected = calculate_check_digit(cleaned[:-1])
    provided = int(cleaned[-1])
    if provided != expected:
        return GtinValidationResult(
            valid=False,
            error=f"Invalid check digit. Expected {expected}, got {provided}.",
        )

    return GtinValidationResult(
        valid=True,
        normalized=cleaned,
        gtin_type=_GTIN_TYPES[length],
    )


def is_likely_format(code: Optional[str]) -> bool:
    """Cheap length/charset pre-check, no checksum.

    Lets interactive callers reject obviously malformed input before
    running full validation.
    """
    if not code:
        return False
    return bool(_LIKELY_FORMAT.match(clean_gtin(code)))


def normalize_to_gtin14(code: Optional[str]) -> Optional[str]:
    """Left-pad a valid GTIN to 14 digits, or None when invalid."""
    result = validate(code)
    if not result.valid or result.normalized is None:
        return None
    return result.normalized.zfill(14)


def are_equivalent(first: Optional[str], second: Optional[str]) -> bool:
    """Check if two GTINs identify the same trade item after GTIN-14 normalization."""
    left = normalize_to_gtin14(first)
    right = normalize_to_gtin14(second)
    if left is None or right is None:
        return False
    return left == right


def format_for_display(code: str) -> str:
    """Group a GTIN for display.

    GTIN-13: X XXXXXX XXXXX X (1-6-5-1)
    GTIN-14: X XX XXXXX XXXXX X (1-2-5-5-1)
    Invalid codes are returned unchanged.
    """
    result = validate(code)
    if not result.valid or result.normalized is None:
        return code

    digits = result.normalized
    if len(digits) == 13:
        return f"{digits[0]} {digits[1:7]} {digits[7:12]} {digits[12]}"
    if len(digits) == 14:
        return f"{digits[0]} {digits[1:3]} {digits[3:8]} {digits[8:13]} {digits[13]}"
    return digits
