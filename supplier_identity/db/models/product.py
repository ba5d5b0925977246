"""CanonicalProduct ORM model.

The canonical product is the platform's single source of truth for a
physical product's identity. This subsystem only reads it, except for
the triage "create" action and the merge collaborator.
"""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from supplier_identity.db.base import Base, JSONVariant, UUIDMixin, TimestampMixin
from typing import Any, Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from supplier_identity.db.models.supplier_item import SupplierItem


class CanonicalProduct(Base, UUIDMixin, TimestampMixin):
    """Canonical product identity record.

    Attributes:
        name: Product display name
        brand: Manufacturer brand (optional)
        gtin: Global Trade Item Number, unique across products (optional)
        description: Free-text description (optional)
        quality_summary: Opaque quality-score summary produced externally

    Relationships:
        supplier_items: All supplier items linked to this product
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    brand: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gtin: Mapped[str | None] = mapped_column(
        String(14),
        nullable=True,
        unique=True,
        index=True,
        doc="GTIN-8/12/13/14, digits only"
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quality_summary: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONVariant,
        nullable=True,
        doc="Quality score summary (owned by the quality collaborator)"
    )

    # Relationships
    supplier_items: Mapped[List["SupplierItem"]] = relationship(
        back_populates="product"
    )

    def __repr__(self) -> str:
        return f"<CanonicalProduct(id={self.id}, name='{self.name}', gtin='{self.gtin}')>"
