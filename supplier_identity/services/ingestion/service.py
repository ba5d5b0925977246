"""Catalog ingestion: upsert supplier rows and write match metadata.

One call processes one chunk of a supplier's catalog inside a single
transaction. Large catalogs are chunked by the caller.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import time
import uuid

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supplier_identity.config import MatchingSettings, matching_settings
from supplier_identity.db.models import MatchMethod, Supplier, SupplierItem
from supplier_identity.errors import DatabaseError, NotFoundError, ValidationError
from supplier_identity.models.matching import IngestionMetrics, MatchResult, RawSupplierItem
from supplier_identity.services.matching import NameScorer, create_matcher, load_catalog

logger = structlog.get_logger(__name__)

RawRow = Union[RawSupplierItem, Mapping[str, Any]]


class CatalogIngestionService:
    """Upsert raw supplier rows and resolve their identity.

    Rules per row:
        - Inactive (ignored) items are left untouched
        - Human-resolved items keep their link; only raw fields refresh
        - Everything else is resolved again; an unchanged result keeps
          its matched_at / matched_by

    Args:
        session_factory: Async session factory
        settings: Matching settings
        scorer: Optional name similarity override
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[MatchingSettings] = None,
        scorer: Optional[NameScorer] = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or matching_settings
        self._scorer = scorer

    async def ingest(self, supplier_id: uuid.UUID, rows: Iterable[RawRow]) -> IngestionMetrics:
        """Ingest one chunk of a supplier catalog.

        Args:
            supplier_id: Supplier publishing the rows
            rows: RawSupplierItem instances or plain mappings

        Returns:
            IngestionMetrics for this call

        Raises:
            ValidationError: A row is malformed or belongs to another supplier
            NotFoundError: Supplier does not exist
            DatabaseError: Persistence failed
        """
        start_time = time.time()
        metrics = IngestionMetrics(supplier_id=supplier_id)
        log = logger.bind(supplier_id=str(supplier_id))

        parsed = self._parse_rows(supplier_id, rows)
        log.info("catalog_ingestion_started", rows=len(parsed))

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    supplier = await session.get(Supplier, supplier_id)
                    if supplier is None:
                        raise NotFoundError(
                            "Supplier not found",
                            details={"supplier_id": str(supplier_id)},
                        )

                    catalog = await load_catalog(session, supplier_id)
                    matcher = create_matcher(catalog, self._settings, self._scorer)
                    log.debug("catalog_loaded", products=len(catalog))

                    existing = await self._load_existing(session, supplier_id, list(parsed))
                    now = datetime.now(timezone.utc)

                    for sku, row in parsed.items():
                        metrics.processed += 1
                        item = existing.get(sku)

                        if item is None:
                            item = SupplierItem(supplier_id=supplier_id, supplier_sku=sku)
                            self._apply_raw_fields(item, row)
                            session.add(item)
                            metrics.created += 1
                        elif not item.is_active:
                            metrics.skipped_ignored += 1
                            continue
                        else:
                            self._apply_raw_fields(item, row)
                            metrics.updated += 1
                            if item.is_human_resolved:
                                metrics.skipped_confirmed += 1
                                continue

                        result = matcher.resolve(row)
                        metrics.record_method(result.method)
                        if result.needs_review:
                            metrics.needs_review += 1

                        if not self._apply_match(item, result, now):
                            metrics.unchanged += 1

        except (NotFoundError, ValidationError):
            raise
        except SQLAlchemyError as e:
            log.error(
                "catalog_ingestion_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise DatabaseError(f"Failed to ingest supplier catalog: {e}") from e

        metrics.duration_seconds = time.time() - start_time
        log.info("catalog_ingestion_completed", **metrics.to_log_dict())
        return metrics

    def _parse_rows(self, supplier_id: uuid.UUID, rows: Iterable[RawRow]) -> Dict[str, RawSupplierItem]:
        """Validate rows; later rows with the same SKU replace earlier ones."""
        parsed: Dict[str, RawSupplierItem] = {}
        for index, row in enumerate(rows):
            if isinstance(row, RawSupplierItem):
                item = row
            else:
                try:
                    item = RawSupplierItem.model_validate({"supplier_id": supplier_id, **row})
                except PydanticValidationError as e:
                    raise ValidationError(
                        f"Invalid catalog row at position {index}",
                        details={"row": index, "errors": e.errors(include_url=False)},
                    ) from e

            if item.supplier_id != supplier_id:
                raise ValidationError(
                    f"Catalog row at position {index} belongs to another supplier",
                    details={"row": index, "supplier_sku": item.supplier_sku},
                )
            if item.supplier_sku in parsed:
                logger.warning(
                    "duplicate_sku_in_chunk",
                    supplier_id=str(supplier_id),
                    supplier_sku=item.supplier_sku,
                )
            parsed[item.supplier_sku] = item
        return parsed

    async def _load_existing(
        self,
        session: AsyncSession,
        supplier_id: uuid.UUID,
        skus: List[str],
    ) -> Dict[str, SupplierItem]:
        if not skus:
            return {}
        result = await session.execute(
            select(SupplierItem)
            .where(SupplierItem.supplier_id == supplier_id)
            .where(SupplierItem.supplier_sku.in_(skus))
            .with_for_update()
        )
        return {item.supplier_sku: item for item in result.scalars().all()}

    @staticmethod
    def _apply_raw_fields(item: SupplierItem, row: RawSupplierItem) -> None:
        item.supplier_name = row.supplier_name
        item.supplier_description = row.supplier_description
        item.brand = row.brand
        item.unit_price = row.unit_price
        item.min_order_qty = row.min_order_qty
        item.currency = row.currency
        item.raw_gtin = row.gtin
        item.scanned_code = row.scanned_code

    def _apply_match(self, item: SupplierItem, result: MatchResult, now: datetime) -> bool:
        """Write match metadata. Returns False when nothing changed."""
        method = MatchMethod(result.method.value)
        candidates = result.candidates_payload()

        unchanged = (
            item.matched_at is not None
            and item.match_method == method
            and item.match_confidence == result.confidence
            and item.product_id == result.product_id
            and item.needs_review == result.needs_review
            and (item.match_candidates or None) == candidates
        )
        if unchanged:
            return False

        item.product_id = result.product_id
        item.match_method = method
        item.match_confidence = result.confidence
        item.match_candidates = candidates
        item.needs_review = result.needs_review
        item.matched_at = now
        item.matched_by = self._settings.system_actor
        return True
