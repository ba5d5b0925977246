"""Database models for supplier identity resolution and corrections."""
from supplier_identity.db.models.supplier import Supplier
from supplier_identity.db.models.product import CanonicalProduct
from supplier_identity.db.models.supplier_product_mapping import SupplierProductMapping
from supplier_identity.db.models.supplier_item import SupplierItem, MatchMethod
from supplier_identity.db.models.supplier_correction import (
    SupplierCorrection,
    CorrectionStatus,
    OPEN_CORRECTION_STATUSES,
)

__all__ = [
    "Supplier",
    "CanonicalProduct",
    "SupplierProductMapping",
    "SupplierItem",
    "MatchMethod",
    "SupplierCorrection",
    "CorrectionStatus",
    "OPEN_CORRECTION_STATUSES",
]
