"""SupplierItem ORM model with match metadata and lifecycle flag."""
from sqlalchemy import String, ForeignKey, Numeric, CheckConstraint, UniqueConstraint, DateTime, Text, Integer, Boolean, Index, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from supplier_identity.db.base import Base, JSONVariant, UUIDMixin, TimestampMixin
from decimal import Decimal
from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from enum import Enum as PyEnum
import uuid

if TYPE_CHECKING:
    from supplier_identity.db.models.supplier import Supplier
    from supplier_identity.db.models.product import CanonicalProduct
    from supplier_identity.db.models.supplier_correction import SupplierCorrection


class MatchMethod(PyEnum):
    """How a supplier item got linked to its canonical product.

    MANUAL covers both the matcher's fallback (no link, needs review) and
    human-confirmed links from triage (needs_review cleared).
    """
    MANUAL = "manual"
    EXACT_GTIN = "exact_gtin"
    FUZZY_NAME = "fuzzy_name"
    BARCODE_SCAN = "barcode_scan"
    SUPPLIER_MAPPED = "supplier_mapped"


class SupplierItem(Base, UUIDMixin, TimestampMixin):
    """SupplierItem model representing one supplier's raw catalog row.

    Attributes:
        supplier_id: Owning supplier
        product_id: Linked canonical product (nullable until matched)
        supplier_sku: Supplier's SKU for this item
        supplier_name: Product name as the supplier lists it
        supplier_description: Supplier's description
        brand: Brand as the supplier lists it
        unit_price: Current price from supplier
        min_order_qty: Minimum order quantity
        currency: ISO 4217 currency code
        raw_gtin: GTIN carried on the supplier's catalog row
        scanned_code: Barcode captured during ingestion
        match_method: Strategy that produced the current link
        match_confidence: Confidence of the current link (0-1)
        match_candidates: Ranked candidates kept for the reviewer
        matched_at: When the current match metadata was written
        matched_by: Actor that produced the match (system or reviewer)
        needs_review: Item requires human triage
        is_active: False once ignored in triage

    Relationships:
        supplier: Reference to Supplier
        product: Reference to linked CanonicalProduct (if any)
        corrections: Correction history for this item
    """

    __tablename__ = "supplier_items"
    __table_args__ = (
        UniqueConstraint('supplier_id', 'supplier_sku', name='unique_supplier_sku'),
        CheckConstraint('unit_price IS NULL OR unit_price >= 0', name='check_unit_price_non_negative'),
        CheckConstraint('min_order_qty IS NULL OR min_order_qty > 0', name='check_min_order_qty_positive'),
        CheckConstraint(
            'match_confidence IS NULL OR (match_confidence >= 0 AND match_confidence <= 1)',
            name='check_match_confidence'
        ),
        Index(
            'idx_supplier_items_review_queue',
            'match_confidence',
            'matched_at',
            postgresql_where=text('is_active AND needs_review'),
        ),
    )

    supplier_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    product_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    supplier_sku: Mapped[str] = mapped_column(String(255), nullable=False)
    supplier_name: Mapped[str] = mapped_column(String(500), nullable=False)
    supplier_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    brand: Mapped[str | None] = mapped_column(String(255), nullable=True)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    min_order_qty: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="EUR", server_default="EUR")
    raw_gtin: Mapped[str | None] = mapped_column(String(32), nullable=True)
    scanned_code: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # Match metadata
    # Note: values_callable ensures SQLAlchemy uses enum VALUES (lowercase strings)
    # instead of enum NAMES (uppercase) to match PostgreSQL enum values
    match_method: Mapped[MatchMethod] = mapped_column(
        SQLEnum(
            MatchMethod,
            name="match_method",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False,
        default=MatchMethod.MANUAL,
        server_default=MatchMethod.MANUAL.value,
        index=True,
    )
    match_confidence: Mapped[float | None] = mapped_column(
        Numeric(5, 4, asdecimal=False),
        nullable=True,
        doc="Confidence of the current link (0-1)"
    )
    match_candidates: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(
        JSONVariant,
        nullable=True,
        doc="Ranked candidates [{product_id, product_name, score}]"
    )
    matched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    matched_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    needs_review: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default='true',
        index=True,
    )

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default='true',
        index=True,
    )
    ignored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ignored_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships
    supplier: Mapped["Supplier"] = relationship(back_populates="supplier_items")
    product: Mapped[Optional["CanonicalProduct"]] = relationship(back_populates="supplier_items")
    corrections: Mapped[List["SupplierCorrection"]] = relationship(
        back_populates="supplier_item",
        passive_deletes=True,
    )

    @property
    def is_human_resolved(self) -> bool:
        """True once triage confirmed or relinked this item."""
        return self.match_method == MatchMethod.MANUAL and not self.needs_review

    def __repr__(self) -> str:
        return (
            f"<SupplierItem(id={self.id}, sku='{self.supplier_sku}', "
            f"method='{self.match_method.value}', needs_review={self.needs_review})>"
        )
