"""Supplier ORM model (tenant scope for items and corrections)."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from supplier_identity.db.base import Base, UUIDMixin, TimestampMixin
from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from supplier_identity.db.models.supplier_item import SupplierItem
    from supplier_identity.db.models.supplier_correction import SupplierCorrection


class Supplier(Base, UUIDMixin, TimestampMixin):
    """Supplier whose catalog rows are linked to canonical products."""

    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Relationships (child rows go with ON DELETE CASCADE)
    supplier_items: Mapped[List["SupplierItem"]] = relationship(
        back_populates="supplier",
        passive_deletes=True,
    )
    corrections: Mapped[List["SupplierCorrection"]] = relationship(
        back_populates="supplier",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Supplier(id={self.id}, name='{self.name}')>"
