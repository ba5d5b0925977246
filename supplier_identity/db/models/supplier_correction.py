"""SupplierCorrection ORM model for supplier-proposed data changes."""
from sqlalchemy import String, ForeignKey, DateTime, Text, Integer, Index, text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from supplier_identity.db.base import Base, JSONVariant, UUIDMixin, TimestampMixin
from datetime import datetime
from typing import Any, Dict, TYPE_CHECKING
from enum import Enum as PyEnum
import uuid

if TYPE_CHECKING:
    from supplier_identity.db.models.supplier import Supplier
    from supplier_identity.db.models.supplier_item import SupplierItem


class CorrectionStatus(PyEnum):
    """Status of a supplier correction.

    State Transitions:
        - draft → pending (supplier: batch submission)
        - pending → approved (platform reviewer)
        - pending → rejected (platform reviewer)
        - approved, rejected: terminal
    """
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (CorrectionStatus.APPROVED, CorrectionStatus.REJECTED)


OPEN_CORRECTION_STATUSES = (CorrectionStatus.DRAFT, CorrectionStatus.PENDING)

_OPEN_STATUS_PREDICATE = text("status IN ('draft', 'pending')")


class SupplierCorrection(Base, UUIDMixin, TimestampMixin):
    """Proposed change to one supplier item's commercial fields and linked GTIN.

    original_data and proposed_data hold serialized CorrectionFields value
    objects (see supplier_identity.models.corrections); they are never
    read as open maps.

    Attributes:
        supplier_item_id: Item the correction targets
        supplier_id: Owning supplier (scope)
        original_data: Snapshot taken when the draft was created
        proposed_data: Supplier's proposed values (mutable while draft)
        data_version: Schema version of the two payloads
        status: Current workflow status
        submitted_at: When the draft moved to pending
        reviewed_at: When a reviewer approved or rejected it
        reviewed_by: Reviewer identity
        review_notes: Reviewer notes (rejections)
    """

    __tablename__ = "supplier_corrections"
    __table_args__ = (
        # At most one open (draft or pending) correction per supplier item
        Index(
            "uq_open_correction_per_item",
            "supplier_item_id",
            unique=True,
            postgresql_where=_OPEN_STATUS_PREDICATE,
            sqlite_where=_OPEN_STATUS_PREDICATE,
        ),
        Index("ix_supplier_corrections_supplier_status", "supplier_id", "status"),
    )

    supplier_item_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("supplier_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    original_data: Mapped[Dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    proposed_data: Mapped[Dict[str, Any]] = mapped_column(JSONVariant, nullable=False)
    data_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    status: Mapped[CorrectionStatus] = mapped_column(
        SQLEnum(
            CorrectionStatus,
            name="correction_status",
            create_constraint=True,
            values_callable=lambda x: [e.value for e in x]
        ),
        nullable=False,
        default=CorrectionStatus.DRAFT,
        server_default=CorrectionStatus.DRAFT.value,
        index=True,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    supplier_item: Mapped["SupplierItem"] = relationship(back_populates="corrections")
    supplier: Mapped["Supplier"] = relationship(back_populates="corrections")

    def __repr__(self) -> str:
        return f"<SupplierCorrection(id={self.id}, status='{self.status.value}')>"
