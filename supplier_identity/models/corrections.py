"""Pydantic models for the supplier correction workflow.

CorrectionFields is the versioned value object stored in
supplier_corrections.original_data / proposed_data. Every read and
write of those columns goes through it, so the snapshot and the
proposal can never drift from the supplier item's shape silently.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from supplier_identity.services.gtin import clean_gtin

CORRECTION_DATA_VERSION = 1

_CENTS = Decimal("0.01")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CorrectionStatusEnum(str, Enum):
    """Status of a supplier correction (mirrors the ORM enum)."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CorrectionFields(BaseModel):
    """Versioned snapshot of the correctable field set.

    Attributes:
        version: Payload schema version
        unit_price: Price per unit, two decimal places
        min_order_qty: Minimum order quantity (>= 1)
        supplier_description: Supplier's description text
        gtin: Linked product GTIN, digits only
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: Literal[1] = CORRECTION_DATA_VERSION
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    min_order_qty: Optional[int] = Field(default=None, ge=1)
    supplier_description: Optional[str] = None
    gtin: Optional[str] = None

    @field_validator("unit_price", "supplier_description", "gtin", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)

    @field_validator("unit_price")
    @classmethod
    def quantize_price(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is None:
            return None
        return v.quantize(_CENTS, rounding=ROUND_HALF_UP)

    @field_validator("gtin")
    @classmethod
    def strip_gtin_separators(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return clean_gtin(v.strip()) or None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for JSON storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CorrectionFields":
        """Load from a stored JSON payload."""
        return cls.model_validate(payload)

    def changed_fields(self, other: "CorrectionFields") -> List[str]:
        """Names of correctable fields whose values differ from other."""
        names = ("unit_price", "min_order_qty", "supplier_description", "gtin")
        return [name for name in names if getattr(self, name) != getattr(other, name)]


class ProposedCorrection(BaseModel):
    """Supplier input for saving a draft correction.

    Fields left unset keep their current value (the open draft's, or
    the original snapshot's for a new draft); fields explicitly set to
    None clear the value.
    """

    model_config = ConfigDict(extra="forbid")

    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    min_order_qty: Optional[int] = Field(default=None, ge=1)
    supplier_description: Optional[str] = None
    gtin: Optional[str] = Field(default=None, max_length=32)

    @field_validator("unit_price", "min_order_qty", "supplier_description", "gtin", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return _blank_to_none(v)

    def merge_onto(self, base: CorrectionFields) -> CorrectionFields:
        """Compute the full proposed field set on top of base."""
        values = base.model_dump()
        for name in self.model_fields_set:
            values[name] = getattr(self, name)
        return CorrectionFields(**values)


class SaveDraftResult(BaseModel):
    """Outcome of save_draft.

    Attributes:
        correction_id: Draft id (None when discarded)
        created: True when a new draft was created
        discarded: True when the proposal netted to no change
    """
    correction_id: Optional[UUID] = None
    created: bool = False
    discarded: bool = False


class CorrectionStatusCounts(BaseModel):
    """Per-status correction counts for a supplier dashboard."""
    draft: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class CorrectionView(BaseModel):
    """Read model of a correction with its item context."""

    id: UUID
    supplier_item_id: UUID
    supplier_id: UUID
    status: CorrectionStatusEnum
    original: CorrectionFields
    proposed: CorrectionFields
    changed_fields: List[str]
    supplier_sku: Optional[str] = None
    supplier_name: Optional[str] = None
    product_id: Optional[UUID] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    review_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_orm_row(cls, correction, item=None) -> "CorrectionView":
        """Build from a SupplierCorrection row and (optionally) its SupplierItem."""
        original = CorrectionFields.from_payload(correction.original_data)
        proposed = CorrectionFields.from_payload(correction.proposed_data)
        return cls(
            id=correction.id,
            supplier_item_id=correction.supplier_item_id,
            supplier_id=correction.supplier_id,
            status=CorrectionStatusEnum(correction.status.value),
            original=original,
            proposed=proposed,
            changed_fields=proposed.changed_fields(original),
            supplier_sku=item.supplier_sku if item is not None else None,
            supplier_name=item.supplier_name if item is not None else None,
            product_id=item.product_id if item is not None else None,
            submitted_at=correction.submitted_at,
            reviewed_at=correction.reviewed_at,
            reviewed_by=correction.reviewed_by,
            review_notes=correction.review_notes,
            created_at=correction.created_at,
            updated_at=correction.updated_at,
        )
