"""Review queue (triage) over supplier items that need a human decision.

Queue membership is `is_active AND needs_review`. Reads share one
stable ordering: lowest confidence first with unscored items on top,
then oldest match, then id. Every terminal action is a guarded UPDATE
that only succeeds while the item is still in the queue; none of them
re-enters the matcher.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union
import uuid

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supplier_identity.config import MatchingSettings, matching_settings
from supplier_identity.db.models import CanonicalProduct, MatchMethod, Supplier, SupplierItem
from supplier_identity.errors import DatabaseError, InvalidStateError, NotFoundError, ValidationError
from supplier_identity.models.triage import (
    IssueType,
    MergeOutcome,
    NewProductData,
    QueuePosition,
    TriageFilters,
    TriageItem,
    TriageStats,
)
from supplier_identity.services.gtin import validate
from supplier_identity.services.triage.merger import ProductMerger, SupplierLinkMerger

logger = structlog.get_logger(__name__)

ITEM_NOT_FOUND = "Supplier item not found"
PRODUCT_NOT_FOUND = "Product not found"

IN_QUEUE = and_(SupplierItem.is_active.is_(True), SupplierItem.needs_review.is_(True))

QUEUE_ORDER = (
    SupplierItem.match_confidence.asc().nulls_first(),
    SupplierItem.matched_at.asc().nulls_first(),
    SupplierItem.id.asc(),
)


class TriageService:
    """Review queue reads and the five terminal actions.

    Args:
        session_factory: Async session factory
        settings: Matching settings (review threshold for filters)
        merger: Product merge collaborator
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[MatchingSettings] = None,
        merger: Optional[ProductMerger] = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or matching_settings
        self._merger = merger or SupplierLinkMerger()

    # ========== Reads ==========

    def _criteria(self, filters: Optional[TriageFilters]) -> List[Any]:
        filters = filters or TriageFilters()
        criteria: List[Any] = [IN_QUEUE]

        if filters.issue_type == IssueType.LOW_CONFIDENCE:
            criteria.append(SupplierItem.product_id.is_not(None))
            criteria.append(SupplierItem.match_confidence < self._settings.review_threshold)
        elif filters.issue_type == IssueType.NO_GTIN:
            criteria.append(SupplierItem.product_id.is_not(None))
            criteria.append(CanonicalProduct.gtin.is_(None))
        elif filters.issue_type == IssueType.FUZZY_MATCH:
            criteria.append(SupplierItem.match_method == MatchMethod.FUZZY_NAME)

        if filters.supplier_id is not None:
            criteria.append(SupplierItem.supplier_id == filters.supplier_id)

        if filters.search:
            pattern = f"%{filters.search}%"
            criteria.append(
                or_(
                    SupplierItem.supplier_sku.ilike(pattern),
                    SupplierItem.supplier_name.ilike(pattern),
                    SupplierItem.raw_gtin.ilike(pattern),
                    CanonicalProduct.name.ilike(pattern),
                    CanonicalProduct.gtin.ilike(pattern),
                )
            )
        return criteria

    async def list_items(
        self,
        filters: Optional[TriageFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[TriageItem]:
        """List queue items matching filters, in queue order."""
        query = (
            select(SupplierItem, Supplier, CanonicalProduct)
            .join(Supplier, SupplierItem.supplier_id == Supplier.id)
            .outerjoin(CanonicalProduct, SupplierItem.product_id == CanonicalProduct.id)
            .where(*self._criteria(filters))
            .order_by(*QUEUE_ORDER)
            .limit(limit)
            .offset(offset)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except SQLAlchemyError as e:
            logger.error("triage_query_failed", error=str(e), error_type=type(e).__name__)
            raise DatabaseError(f"Failed to query review queue: {e}") from e

        return [TriageItem.from_orm_row(item, supplier, product) for item, supplier, product in rows]

    async def find_pending_for_review(self, limit: int = 50) -> List[TriageItem]:
        """The head of the unfiltered queue."""
        return await self.list_items(TriageFilters(), limit=limit)

    async def count_pending(self, filters: Optional[TriageFilters] = None) -> int:
        async with self._session_factory() as session:
            return await self._count(session, *self._criteria(filters))

    async def get_item(self, item_id: uuid.UUID) -> TriageItem:
        """Load one supplier item with its supplier and linked product."""
        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(SupplierItem, Supplier, CanonicalProduct)
                    .join(Supplier, SupplierItem.supplier_id == Supplier.id)
                    .outerjoin(CanonicalProduct, SupplierItem.product_id == CanonicalProduct.id)
                    .where(SupplierItem.id == item_id)
                )
            ).first()
        if row is None:
            raise NotFoundError(ITEM_NOT_FOUND)
        return TriageItem.from_orm_row(row[0], row[1], row[2])

    async def navigate(self, item_id: uuid.UUID, filters: Optional[TriageFilters] = None) -> QueuePosition:
        """Position of an item in the filtered queue with its neighbours.

        An item outside the queue gets index None and the queue head
        as next_id, so a reviewer can continue after acting on it.
        """
        async with self._session_factory() as session:
            ids = list(
                (
                    await session.execute(
                        select(SupplierItem.id)
                        .outerjoin(CanonicalProduct, SupplierItem.product_id == CanonicalProduct.id)
                        .where(*self._criteria(filters))
                        .order_by(*QUEUE_ORDER)
                    )
                ).scalars().all()
            )

        total = len(ids)
        if item_id not in ids:
            return QueuePosition(index=None, total=total, next_id=ids[0] if ids else None)

        index = ids.index(item_id)
        return QueuePosition(
            index=index,
            total=total,
            previous_id=ids[index - 1] if index > 0 else None,
            next_id=ids[index + 1] if index + 1 < total else None,
        )

    async def get_stats(self) -> TriageStats:
        """Queue statistics for the reviewer dashboard."""
        threshold = self._settings.review_threshold
        async with self._session_factory() as session:
            total = await self._count(session, IN_QUEUE)
            unlinked = await self._count(session, IN_QUEUE, SupplierItem.product_id.is_(None))
            low_confidence = await self._count(
                session,
                IN_QUEUE,
                SupplierItem.product_id.is_not(None),
                SupplierItem.match_confidence < threshold,
            )
            fuzzy = await self._count(session, IN_QUEUE, SupplierItem.match_method == MatchMethod.FUZZY_NAME)

            by_method_rows = await session.execute(
                select(SupplierItem.match_method, func.count(SupplierItem.id))
                .where(IN_QUEUE)
                .group_by(SupplierItem.match_method)
            )
            by_supplier_rows = await session.execute(
                select(SupplierItem.supplier_id, func.count(SupplierItem.id))
                .where(IN_QUEUE)
                .group_by(SupplierItem.supplier_id)
            )
            aggregates = (
                await session.execute(
                    select(func.avg(SupplierItem.match_confidence), func.min(SupplierItem.matched_at))
                    .where(IN_QUEUE)
                )
            ).one()

        avg_confidence = aggregates[0]
        return TriageStats(
            total_pending=total,
            unlinked=unlinked,
            low_confidence=low_confidence,
            fuzzy_matches=fuzzy,
            by_method={method.value: count for method, count in by_method_rows.all()},
            by_supplier={str(supplier_id): count for supplier_id, count in by_supplier_rows.all()},
            avg_confidence=round(float(avg_confidence), 4) if avg_confidence is not None else None,
            oldest_matched_at=aggregates[1],
        )

    async def search_products(self, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Find reassignment / merge targets by name, brand or GTIN."""
        query = (query or "").strip()
        if len(query) < 2:
            return []

        pattern = f"%{query}%"
        async with self._session_factory() as session:
            products = (
                await session.execute(
                    select(CanonicalProduct)
                    .where(
                        or_(
                            CanonicalProduct.name.ilike(pattern),
                            CanonicalProduct.brand.ilike(pattern),
                            CanonicalProduct.gtin.ilike(pattern),
                        )
                    )
                    .order_by(CanonicalProduct.name, CanonicalProduct.id)
                    .limit(limit)
                )
            ).scalars().all()

        return [
            {"id": p.id, "name": p.name, "brand": p.brand, "gtin": p.gtin}
            for p in products
        ]

    # ========== Terminal actions ==========

    async def confirm(self, item_id: uuid.UUID, reviewer: str) -> uuid.UUID:
        """Accept the current link as correct.

        Returns:
            The confirmed product id

        Raises:
            NotFoundError: Item does not exist
            InvalidStateError: Item not in the queue, or has no linked product
        """
        async with self._session_factory() as session:
            async with session.begin():
                item = await self._get_reviewable(session, item_id)
                if item.product_id is None:
                    raise InvalidStateError("Item has no linked product to confirm")
                product_id = item.product_id
                await self._resolve(session, item_id, product_id, reviewer)

        logger.info("triage_match_confirmed", supplier_item_id=str(item_id), product_id=str(product_id), reviewer=reviewer)
        return product_id

    async def reassign(self, item_id: uuid.UUID, product_id: uuid.UUID, reviewer: str) -> uuid.UUID:
        """Link the item to a different existing product.

        Raises:
            NotFoundError: Item or product does not exist
            InvalidStateError: Item not in the queue
        """
        async with self._session_factory() as session:
            async with session.begin():
                item = await self._get_reviewable(session, item_id)
                if await session.get(CanonicalProduct, product_id) is None:
                    raise NotFoundError(PRODUCT_NOT_FOUND, details={"product_id": str(product_id)})
                previous = item.product_id
                await self._resolve(session, item_id, product_id, reviewer)

        logger.info(
            "triage_product_reassigned",
            supplier_item_id=str(item_id),
            previous_product_id=str(previous) if previous else None,
            product_id=str(product_id),
            reviewer=reviewer,
        )
        return product_id

    async def create(
        self,
        item_id: uuid.UUID,
        reviewer: str,
        data: Union[NewProductData, Mapping[str, Any], None] = None,
    ) -> uuid.UUID:
        """Create a canonical product from the item and link it.

        Unset fields default to the item's raw data. The item's raw GTIN
        is used only when it validates and no product carries it yet.

        Returns:
            The new product id

        Raises:
            NotFoundError: Item does not exist
            InvalidStateError: Item not in the queue
            ValidationError: GTIN invalid or already used
        """
        data = self._parse_product_data(data)

        async with self._session_factory() as session:
            async with session.begin():
                item = await self._get_reviewable(session, item_id)

                gtin = None
                if data.gtin:
                    result = validate(data.gtin)
                    if not result.valid:
                        raise ValidationError(f"Invalid GTIN: {result.error}", details={"gtin": data.gtin})
                    gtin = result.normalized
                    existing = await self._product_id_by_gtin(session, gtin)
                    if existing is not None:
                        raise ValidationError(
                            f"A product with GTIN {gtin} already exists",
                            details={"gtin": gtin, "product_id": str(existing)},
                        )
                elif item.raw_gtin:
                    result = validate(item.raw_gtin)
                    if result.valid and await self._product_id_by_gtin(session, result.normalized) is None:
                        gtin = result.normalized

                product = CanonicalProduct(
                    name=data.name or item.supplier_name,
                    brand=data.brand or item.brand,
                    gtin=gtin,
                    description=data.description or item.supplier_description,
                )
                session.add(product)
                await session.flush()
                product_id = product.id

                await self._resolve(session, item_id, product_id, reviewer)

        logger.info(
            "triage_product_created",
            supplier_item_id=str(item_id),
            product_id=str(product_id),
            gtin=gtin,
            reviewer=reviewer,
        )
        return product_id

    async def merge(self, item_id: uuid.UUID, target_product_id: uuid.UUID, reviewer: str) -> MergeOutcome:
        """Merge the item's linked product into target and resolve the item.

        Raises:
            NotFoundError: Item or target product does not exist
            InvalidStateError: Item not in the queue, or has no linked product
            ValidationError: Target is the item's own product
        """
        async with self._session_factory() as session:
            async with session.begin():
                item = await self._get_reviewable(session, item_id)
                source_product_id = item.product_id
                if source_product_id is None:
                    raise InvalidStateError("Item has no linked product to merge")
                if source_product_id == target_product_id:
                    raise ValidationError("Cannot merge a product with itself")
                if await session.get(CanonicalProduct, target_product_id) is None:
                    raise NotFoundError(PRODUCT_NOT_FOUND, details={"product_id": str(target_product_id)})

                outcome = await self._merger.merge(
                    session,
                    source_product_id,
                    target_product_id,
                    reviewer,
                    keep_item_ids=(item_id,),
                )
                await self._resolve(session, item_id, target_product_id, reviewer)

        logger.info(
            "triage_products_merged",
            supplier_item_id=str(item_id),
            source_product_id=str(source_product_id),
            target_product_id=str(target_product_id),
            reviewer=reviewer,
        )
        return outcome

    async def ignore(self, item_id: uuid.UUID, reviewer: str) -> None:
        """Deactivate the item; it leaves the queue for good.

        The link and needs_review flag are left as they are.
        """
        async with self._session_factory() as session:
            async with session.begin():
                await self._get_reviewable(session, item_id)
                result = await session.execute(
                    update(SupplierItem)
                    .where(SupplierItem.id == item_id)
                    .where(IN_QUEUE)
                    .values(
                        is_active=False,
                        ignored_at=datetime.now(timezone.utc),
                        ignored_by=reviewer,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise InvalidStateError("Item is no longer in the review queue")

        logger.info("triage_item_ignored", supplier_item_id=str(item_id), reviewer=reviewer)

    # ========== Helpers ==========

    @staticmethod
    async def _count(session: AsyncSession, *criteria) -> int:
        query = (
            select(func.count(SupplierItem.id))
            .select_from(SupplierItem)
            .outerjoin(CanonicalProduct, SupplierItem.product_id == CanonicalProduct.id)
            .where(*criteria)
        )
        return (await session.scalar(query)) or 0

    @staticmethod
    async def _get_reviewable(session: AsyncSession, item_id: uuid.UUID) -> SupplierItem:
        item = await session.get(SupplierItem, item_id, with_for_update=True)
        if item is None:
            raise NotFoundError(ITEM_NOT_FOUND)
        if not (item.is_active and item.needs_review):
            raise InvalidStateError(
                "Item is not in the review queue",
                details={"is_active": item.is_active, "needs_review": item.needs_review},
            )
        return item

    @staticmethod
    async def _product_id_by_gtin(session: AsyncSession, gtin: str) -> Optional[uuid.UUID]:
        return await session.scalar(select(CanonicalProduct.id).where(CanonicalProduct.gtin == gtin))

    @staticmethod
    async def _resolve(
        session: AsyncSession,
        item_id: uuid.UUID,
        product_id: uuid.UUID,
        reviewer: str,
    ) -> None:
        """Guarded transition out of the queue with a human-confirmed link."""
        result = await session.execute(
            update(SupplierItem)
            .where(SupplierItem.id == item_id)
            .where(IN_QUEUE)
            .values(
                product_id=product_id,
                match_method=MatchMethod.MANUAL,
                match_confidence=1.0,
                needs_review=False,
                matched_at=datetime.now(timezone.utc),
                matched_by=reviewer,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError("Item is no longer in the review queue")

    @staticmethod
    def _parse_product_data(data: Union[NewProductData, Mapping[str, Any], None]) -> NewProductData:
        if data is None:
            return NewProductData()
        if isinstance(data, NewProductData):
            return data
        try:
            return NewProductData.model_validate(dict(data))
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"Invalid value for {field}: {first['msg']}") from e
