"""Curated supplier SKU to product mapping table."""
from sqlalchemy import String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from supplier_identity.db.base import Base, UUIDMixin, TimestampMixin
import uuid


class SupplierProductMapping(Base, UUIDMixin, TimestampMixin):
    """Explicit link from one supplier's SKU to a canonical product."""

    __tablename__ = "supplier_product_mappings"
    __table_args__ = (
        UniqueConstraint('supplier_id', 'supplier_sku', name='unique_mapping_supplier_sku'),
    )

    supplier_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    supplier_sku: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    def __repr__(self) -> str:
        return f"<SupplierProductMapping(sku='{self.supplier_sku}', product_id={self.product_id})>"
