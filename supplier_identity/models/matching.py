"""Pydantic models for supplier item identity resolution.

This module defines the data transfer objects passed into and out of
the identity matcher and the catalog ingestion service.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional
from uuid import UUID
from decimal import Decimal
from enum import Enum


class MatchMethodEnum(str, Enum):
    """Strategy that produced a match (mirrors the ORM enum).

    Order of evaluation in the matcher:
        - exact_gtin: raw GTIN equals a product GTIN
        - supplier_mapped: curated (supplier, sku) mapping
        - barcode_scan: scanned code equivalent to a product GTIN
        - fuzzy_name: name similarity above the fuzzy floor
        - manual: nothing matched; a human has to decide
    """
    MANUAL = "manual"
    EXACT_GTIN = "exact_gtin"
    FUZZY_NAME = "fuzzy_name"
    BARCODE_SCAN = "barcode_scan"
    SUPPLIER_MAPPED = "supplier_mapped"


class RawSupplierItem(BaseModel):
    """One raw row from a supplier catalog.

    Attributes:
        supplier_id: Supplier that published the row
        supplier_sku: Supplier's SKU (unique per supplier)
        supplier_name: Product name as listed by the supplier
        supplier_description: Free-text description
        brand: Brand as listed by the supplier
        unit_price: Price per unit
        min_order_qty: Minimum order quantity
        currency: ISO 4217 code
        gtin: GTIN printed in the catalog
        scanned_code: Barcode captured by a scanner
    """

    supplier_id: UUID
    supplier_sku: str = Field(..., min_length=1, max_length=255)
    supplier_name: str = Field(..., min_length=1, max_length=500)
    supplier_description: Optional[str] = None
    brand: Optional[str] = Field(default=None, max_length=255)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    min_order_qty: Optional[int] = Field(default=None, ge=1)
    currency: str = Field(default="EUR", min_length=3, max_length=3)
    gtin: Optional[str] = Field(default=None, max_length=32)
    scanned_code: Optional[str] = Field(default=None, max_length=32)

    @field_validator("supplier_sku", "supplier_name")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("gtin", "scanned_code", "supplier_description", "brand", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def match_text(self) -> str:
        """Brand, name and description, as compared by the fuzzy strategy.

        The brand is left out when the name already contains it, the
        same way catalog products build their match text.
        """
        text = self.supplier_name
        if self.brand and self.brand.lower() not in text.lower():
            text = f"{self.brand} {text}"
        if self.supplier_description:
            text = f"{text} {self.supplier_description}"
        return text


class MatchCandidate(BaseModel):
    """A ranked candidate product kept for the reviewer.

    Attributes:
        product_id: Candidate product
        product_name: Display name
        score: Similarity in [0, 1]
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    product_name: str
    score: float = Field(..., ge=0, le=1)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON storage."""
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "score": round(self.score, 4),
        }


class MatchResult(BaseModel):
    """Outcome of resolving one raw supplier row.

    Attributes:
        method: Strategy that decided the result
        confidence: Confidence in [0, 1], None when nothing was linked
        product_id: Linked product, None for the manual fallback
        needs_review: True when confidence is missing or below threshold
        candidates: Ranked alternatives for the reviewer
    """

    model_config = ConfigDict(frozen=True)

    method: MatchMethodEnum
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    product_id: Optional[UUID] = None
    needs_review: bool = True
    candidates: List[MatchCandidate] = Field(default_factory=list)

    def candidates_payload(self) -> Optional[List[Dict[str, Any]]]:
        """Candidates in the shape stored on supplier_items.match_candidates."""
        if not self.candidates:
            return None
        return [c.to_dict() for c in self.candidates]


class IngestionMetrics(BaseModel):
    """Counters collected by one catalog ingestion call."""

    supplier_id: UUID
    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    needs_review: int = 0
    skipped_ignored: int = 0
    skipped_confirmed: int = 0
    by_method: Dict[str, int] = Field(default_factory=dict)
    duration_seconds: float = 0.0

    def record_method(self, method: MatchMethodEnum) -> None:
        self.by_method[method.value] = self.by_method.get(method.value, 0) + 1

    def to_log_dict(self) -> Dict[str, Any]:
        """Flatten for structured logging."""
        data = self.model_dump(mode="json")
        data["duration_seconds"] = round(self.duration_seconds, 3)
        return data
