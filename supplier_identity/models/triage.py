"""Pydantic models for the review queue (triage).

This module defines the filters, read models and inputs used when a
reviewer works through supplier items that need human attention.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime
from enum import Enum

from supplier_identity.models.matching import MatchMethodEnum


class IssueType(str, Enum):
    """Kinds of problems a reviewer can filter the queue by.

    Types:
        - needs_review: every item in the queue
        - low_confidence: linked with confidence below the review threshold
        - no_gtin: linked product has no GTIN, or nothing is linked
        - fuzzy_match: linked by name similarity
    """
    NEEDS_REVIEW = "needs_review"
    LOW_CONFIDENCE = "low_confidence"
    NO_GTIN = "no_gtin"
    FUZZY_MATCH = "fuzzy_match"


class TriageFilters(BaseModel):
    """Filter parameters for listing and navigating the queue.

    Attributes:
        issue_type: Narrow the queue to one kind of problem
        supplier_id: Only items of this supplier
        search: Case-insensitive text match on SKU, name, or raw GTIN
    """

    issue_type: IssueType = IssueType.NEEDS_REVIEW
    supplier_id: Optional[UUID] = None
    search: Optional[str] = Field(default=None, max_length=200)

    @field_validator("search", mode="before")
    @classmethod
    def blank_search_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class TriageItem(BaseModel):
    """A supplier item as shown in the review queue.

    Attributes:
        id: Supplier item UUID
        supplier_id: Owning supplier
        supplier_name: Supplier display name
        supplier_sku: Supplier's SKU
        item_name: Product name as listed by the supplier
        item_brand: Brand as listed by the supplier
        raw_gtin: GTIN from the catalog row
        product_id: Currently linked product
        product_name: Linked product name
        product_gtin: Linked product GTIN
        match_method: Strategy that produced the link
        match_confidence: Confidence in [0, 1]
        match_candidates: Ranked alternatives
        matched_at: When the match was written
    """

    id: UUID
    supplier_id: UUID
    supplier_name: Optional[str] = None
    supplier_sku: str
    item_name: str
    item_brand: Optional[str] = None
    raw_gtin: Optional[str] = None
    product_id: Optional[UUID] = None
    product_name: Optional[str] = None
    product_gtin: Optional[str] = None
    match_method: MatchMethodEnum
    match_confidence: Optional[float] = None
    match_candidates: List[Dict[str, Any]] = Field(default_factory=list)
    matched_at: Optional[datetime] = None

    @classmethod
    def from_orm_row(cls, item, supplier=None, product=None) -> "TriageItem":
        return cls(
            id=item.id,
            supplier_id=item.supplier_id,
            supplier_name=supplier.name if supplier is not None else None,
            supplier_sku=item.supplier_sku,
            item_name=item.supplier_name,
            item_brand=item.brand,
            raw_gtin=item.raw_gtin,
            product_id=item.product_id,
            product_name=product.name if product is not None else None,
            product_gtin=product.gtin if product is not None else None,
            match_method=MatchMethodEnum(item.match_method.value),
            match_confidence=item.match_confidence,
            match_candidates=item.match_candidates or [],
            matched_at=item.matched_at,
        )


class QueuePosition(BaseModel):
    """Where an item sits in the (filtered) queue.

    index is 0-based; None when the item is not in the queue.
    """

    index: Optional[int] = None
    total: int = 0
    previous_id: Optional[UUID] = None
    next_id: Optional[UUID] = None


class TriageStats(BaseModel):
    """Statistics for the review queue.

    Attributes:
        total_pending: Items awaiting review
        unlinked: Pending items with no product
        low_confidence: Pending items linked below the review threshold
        fuzzy_matches: Pending items linked by name similarity
        by_method: Pending counts per match method
        by_supplier: Pending counts keyed by supplier id
        avg_confidence: Mean confidence of pending linked items
        oldest_matched_at: Oldest matched_at among pending items
    """

    total_pending: int = Field(default=0, ge=0)
    unlinked: int = Field(default=0, ge=0)
    low_confidence: int = Field(default=0, ge=0)
    fuzzy_matches: int = Field(default=0, ge=0)
    by_method: Dict[str, int] = Field(default_factory=dict)
    by_supplier: Dict[str, int] = Field(default_factory=dict)
    avg_confidence: Optional[float] = Field(default=None, ge=0, le=1)
    oldest_matched_at: Optional[datetime] = None


class NewProductData(BaseModel):
    """Fields for a canonical product created from a supplier item.

    Any field left unset is taken from the item's raw data.
    """

    name: Optional[str] = Field(default=None, max_length=500)
    brand: Optional[str] = Field(default=None, max_length=255)
    gtin: Optional[str] = Field(default=None, max_length=32)
    description: Optional[str] = None

    @field_validator("name", "brand", "gtin", "description", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class MergeOutcome(BaseModel):
    """Summary returned by a product merge."""

    source_product_id: UUID
    target_product_id: UUID
    moved_items: int = 0
    deactivated_items: int = 0
