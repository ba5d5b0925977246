"""Product merge collaborator used by the triage merge action.

Merging two canonical products touches every supplier linked to them,
so the triage service only depends on the ProductMerger protocol. The
default implementation below works inside the caller's transaction.
"""
from datetime import datetime, timezone
from typing import Collection, Protocol
import uuid

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from supplier_identity.db.models import CanonicalProduct, SupplierItem, SupplierProductMapping
from supplier_identity.models.triage import MergeOutcome

logger = structlog.get_logger(__name__)


class ProductMerger(Protocol):
    """Merge source product into target inside an open transaction."""

    async def merge(
        self,
        session: AsyncSession,
        source_product_id: uuid.UUID,
        target_product_id: uuid.UUID,
        actor: str,
        keep_item_ids: Collection[uuid.UUID] = (),
    ) -> MergeOutcome:
        ...


class SupplierLinkMerger:
    """Default merger: relink supplier items, then delete the source.

    Steps:
        1. Every supplier item linked to the source is relinked to the target
        2. Items whose supplier already has an active item on the target are
           deactivated as duplicates (except keep_item_ids)
        3. Curated SKU mappings follow the target
        4. The source product is deleted
    """

    async def merge(
        self,
        session: AsyncSession,
        source_product_id: uuid.UUID,
        target_product_id: uuid.UUID,
        actor: str,
        keep_item_ids: Collection[uuid.UUID] = (),
    ) -> MergeOutcome:
        log = logger.bind(
            source_product_id=str(source_product_id),
            target_product_id=str(target_product_id),
        )
        keep = set(keep_item_ids)
        now = datetime.now(timezone.utc)

        target_suppliers = set(
            (
                await session.execute(
                    select(SupplierItem.supplier_id)
                    .where(SupplierItem.product_id == target_product_id)
                    .where(SupplierItem.is_active.is_(True))
                )
            ).scalars().all()
        )

        source_items = (
            await session.execute(
                select(SupplierItem.id, SupplierItem.supplier_id, SupplierItem.is_active)
                .where(SupplierItem.product_id == source_product_id)
                .with_for_update()
            )
        ).all()

        duplicate_ids = [
            row.id
            for row in source_items
            if row.is_active and row.supplier_id in target_suppliers and row.id not in keep
        ]

        await session.execute(
            update(SupplierItem)
            .where(SupplierItem.product_id == source_product_id)
            .values(product_id=target_product_id)
            .execution_options(synchronize_session=False)
        )
        if duplicate_ids:
            await session.execute(
                update(SupplierItem)
                .where(SupplierItem.id.in_(duplicate_ids))
                .values(is_active=False, ignored_at=now, ignored_by=actor)
                .execution_options(synchronize_session=False)
            )

        await session.execute(
            update(SupplierProductMapping)
            .where(SupplierProductMapping.product_id == source_product_id)
            .values(product_id=target_product_id)
            .execution_options(synchronize_session=False)
        )
        await session.execute(
            delete(CanonicalProduct)
            .where(CanonicalProduct.id == source_product_id)
            .execution_options(synchronize_session=False)
        )

        outcome = MergeOutcome(
            source_product_id=source_product_id,
            target_product_id=target_product_id,
            moved_items=len(source_items) - len(duplicate_ids),
            deactivated_items=len(duplicate_ids),
        )
        log.info(
            "products_merged",
            actor=actor,
            moved_items=outcome.moved_items,
            deactivated_items=outcome.deactivated_items,
        )
        return outcome
