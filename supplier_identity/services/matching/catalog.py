"""Product catalog snapshot used by the identity matcher.

The matcher never touches the database. Ingestion loads a catalog
snapshot once per chunk and hands it to the matcher, which keeps
resolution pure and repeatable.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from supplier_identity.db.models import CanonicalProduct, SupplierProductMapping
from supplier_identity.services.gtin import clean_gtin, normalize_to_gtin14


@dataclass(frozen=True)
class CatalogProduct:
    """Canonical product fields the matcher reads."""
    id: UUID
    name: str
    brand: Optional[str] = None
    gtin: Optional[str] = None

    @property
    def match_text(self) -> str:
        """Brand plus name, as compared by the fuzzy strategy."""
        if self.brand and self.brand.lower() not in self.name.lower():
            return f"{self.brand} {self.name}"
        return self.name


class ProductCatalog(Protocol):
    """Read-only product lookup used by matching strategies."""

    def products(self) -> Sequence[CatalogProduct]:
        ...

    def get(self, product_id: UUID) -> Optional[CatalogProduct]:
        ...

    def find_by_gtin(self, gtin: str) -> Optional[CatalogProduct]:
        ...

    def find_equivalent_gtin(self, code: str) -> List[CatalogProduct]:
        ...

    def find_mapping(self, supplier_id: UUID, supplier_sku: str) -> Optional[UUID]:
        ...


class InMemoryProductCatalog:
    """Dictionary-backed ProductCatalog.

    Args:
        products: Canonical products to match against
        mappings: (supplier_id, supplier_sku) -> product_id
    """

    def __init__(
        self,
        products: Iterable[CatalogProduct],
        mappings: Optional[Dict[Tuple[UUID, str], UUID]] = None,
    ):
        self._products: List[CatalogProduct] = list(products)
        self._by_id: Dict[UUID, CatalogProduct] = {p.id: p for p in self._products}
        self._by_gtin: Dict[str, CatalogProduct] = {}
        self._by_gtin14: Dict[str, List[CatalogProduct]] = {}
        for product in self._products:
            if not product.gtin:
                continue
            self._by_gtin[product.gtin] = product
            gtin14 = normalize_to_gtin14(product.gtin)
            if gtin14 is not None:
                self._by_gtin14.setdefault(gtin14, []).append(product)
        self._mappings = dict(mappings or {})

    def products(self) -> Sequence[CatalogProduct]:
        return self._products

    def get(self, product_id: UUID) -> Optional[CatalogProduct]:
        return self._by_id.get(product_id)

    def find_by_gtin(self, gtin: str) -> Optional[CatalogProduct]:
        return self._by_gtin.get(clean_gtin(gtin))

    def find_equivalent_gtin(self, code: str) -> List[CatalogProduct]:
        gtin14 = normalize_to_gtin14(code)
        if gtin14 is None:
            return []
        return list(self._by_gtin14.get(gtin14, []))

    def find_mapping(self, supplier_id: UUID, supplier_sku: str) -> Optional[UUID]:
        product_id = self._mappings.get((supplier_id, supplier_sku))
        # Mappings pointing at deleted products are ignored
        if product_id is None or product_id not in self._by_id:
            return None
        return product_id

    def __len__(self) -> int:
        return len(self._products)


async def load_catalog(session: AsyncSession, supplier_id: UUID) -> InMemoryProductCatalog:
    """Load all canonical products and one supplier's SKU mappings."""
    product_rows = await session.execute(
        select(
            CanonicalProduct.id,
            CanonicalProduct.name,
            CanonicalProduct.brand,
            CanonicalProduct.gtin,
        )
    )
    products = [
        CatalogProduct(id=row.id, name=row.name, brand=row.brand, gtin=row.gtin)
        for row in product_rows
    ]

    mapping_rows = await session.execute(
        select(SupplierProductMapping.supplier_sku, SupplierProductMapping.product_id)
        .where(SupplierProductMapping.supplier_id == supplier_id)
    )
    mappings = {(supplier_id, row.supplier_sku): row.product_id for row in mapping_rows}

    return InMemoryProductCatalog(products, mappings)
