"""Pytest configuration and fixtures for the test suite.

This is the root-level conftest.py that provides:
- Environment variable defaults (set before the package is imported)
- An in-memory SQLite database built from the ORM metadata
- A DataFactory for seeding suppliers, products, items and corrections
"""
import os

# Set environment variables BEFORE importing modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "INFO")

from decimal import Decimal
from typing import Optional
import uuid

import pytest
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from supplier_identity.config import AmbiguousScanPolicy, MatchingSettings
from supplier_identity.db import Base
from supplier_identity.db.models import (
    CanonicalProduct,
    CorrectionStatus,
    MatchMethod,
    Supplier,
    SupplierCorrection,
    SupplierItem,
    SupplierProductMapping,
)
from supplier_identity.models.corrections import CorrectionFields

# Loggers must not freeze their processors, so capture_logs() sees every event
structlog.configure(cache_logger_on_first_use=False)


@pytest.fixture
async def engine(tmp_path):
    """Fresh file-backed database per test; each session gets its own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def matching_config():
    """Matching settings with defaults, independent of the environment."""
    return MatchingSettings(
        review_threshold=0.90,
        fuzzy_floor=0.70,
        gtin_variant_confidence=0.99,
        max_candidates=5,
        ambiguous_scan_policy=AmbiguousScanPolicy.MANUAL_REVIEW,
        system_actor="system:identity-matcher",
    )


class DataFactory:
    """Seeds rows through short committed transactions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _add(self, obj):
        async with self._session_factory() as session:
            async with session.begin():
                session.add(obj)
        return obj

    async def supplier(self, name: str = "Acme Medical") -> Supplier:
        return await self._add(Supplier(name=name))

    async def product(
        self,
        name: str = "Nitrile Gloves M",
        gtin: Optional[str] = None,
        brand: Optional[str] = None,
    ) -> CanonicalProduct:
        return await self._add(CanonicalProduct(name=name, gtin=gtin, brand=brand))

    async def mapping(self, supplier: Supplier, sku: str, product: CanonicalProduct) -> SupplierProductMapping:
        return await self._add(
            SupplierProductMapping(supplier_id=supplier.id, supplier_sku=sku, product_id=product.id)
        )

    async def item(
        self,
        supplier: Supplier,
        sku: str = "SKU-1",
        name: str = "Gloves nitrile medium",
        product: Optional[CanonicalProduct] = None,
        **fields,
    ) -> SupplierItem:
        values = {
            "unit_price": Decimal("10.00"),
            "min_order_qty": 1,
            "supplier_description": "Box of 100",
            "match_method": MatchMethod.MANUAL,
            "needs_review": True,
            "is_active": True,
        }
        values.update(fields)
        return await self._add(
            SupplierItem(
                supplier_id=supplier.id,
                supplier_sku=sku,
                supplier_name=name,
                product_id=product.id if product is not None else None,
                **values,
            )
        )

    async def correction(
        self,
        item: SupplierItem,
        status: CorrectionStatus = CorrectionStatus.DRAFT,
        original: Optional[CorrectionFields] = None,
        proposed: Optional[CorrectionFields] = None,
    ) -> SupplierCorrection:
        original = original or CorrectionFields(
            unit_price=item.unit_price,
            min_order_qty=item.min_order_qty,
            supplier_description=item.supplier_description,
        )
        proposed = proposed or original.model_copy(update={"unit_price": Decimal("99.00")})
        return await self._add(
            SupplierCorrection(
                supplier_item_id=item.id,
                supplier_id=item.supplier_id,
                original_data=original.to_payload(),
                proposed_data=proposed.to_payload(),
                status=status,
            )
        )

    async def get(self, model, row_id: uuid.UUID):
        """Re-read a row in a fresh session."""
        async with self._session_factory() as session:
            return await session.get(model, row_id)


@pytest.fixture
def factory(session_factory):
    return DataFactory(session_factory)
