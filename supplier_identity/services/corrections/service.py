"""Supplier correction lifecycle: DRAFT -> PENDING -> APPROVED | REJECTED.

Every public operation runs in its own transaction. Status changes
re-check their precondition under a row lock and then flip the status
with a compare-and-set UPDATE whose row count is verified, so two
reviewers acting on the same correction cannot both win.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
import uuid

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from supplier_identity.config import CorrectionSettings, correction_settings
from supplier_identity.db.models import (
    CanonicalProduct,
    CorrectionStatus,
    OPEN_CORRECTION_STATUSES,
    SupplierCorrection,
    SupplierItem,
)
from supplier_identity.errors import (
    DatabaseError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from supplier_identity.models.corrections import (
    CORRECTION_DATA_VERSION,
    CorrectionFields,
    CorrectionStatusCounts,
    CorrectionView,
    ProposedCorrection,
    SaveDraftResult,
)
from supplier_identity.services.gtin import validate

logger = structlog.get_logger(__name__)

ProposalInput = Union[ProposedCorrection, Mapping[str, Any]]

ITEM_NOT_FOUND = "Supplier item not found"
CORRECTION_NOT_FOUND = "Correction not found"


def _load_fields(payload: Dict[str, Any], correction_id: uuid.UUID) -> CorrectionFields:
    try:
        return CorrectionFields.from_payload(payload)
    except PydanticValidationError as e:
        raise DatabaseError(
            f"Stored correction data is unreadable for correction {correction_id}: {e}"
        ) from e


class CorrectionService:
    """Supplier-side drafting and reviewer-side approval of corrections.

    Args:
        session_factory: Async session factory
        settings: Correction settings (defaults to the global instance)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[CorrectionSettings] = None,
    ):
        self._session_factory = session_factory
        self._settings = settings or correction_settings

    # ========== Supplier operations ==========

    async def save_draft(
        self,
        supplier_id: uuid.UUID,
        supplier_item_id: uuid.UUID,
        proposed: ProposalInput,
    ) -> SaveDraftResult:
        """Create or update the draft correction for one supplier item.

        Fields not supplied keep the value from the open draft, or from
        the original snapshot when there is none. The complete proposal
        must carry a valid GTIN or none, even when the GTIN was inherited.
        A proposal equal to the snapshot is not a correction: any
        existing draft is deleted and nothing is persisted.

        Args:
            supplier_id: Caller's supplier scope
            supplier_item_id: Item to correct
            proposed: Proposed field values

        Returns:
            SaveDraftResult

        Raises:
            NotFoundError: Item absent, inactive, or owned by another supplier
            ValidationError: Proposed values are malformed
            InvalidStateError: A correction for the item is already pending
        """
        proposal = self._parse_proposal(proposed)
        log = logger.bind(supplier_id=str(supplier_id), supplier_item_id=str(supplier_item_id))

        try:
            return await self._save_draft_once(supplier_id, supplier_item_id, proposal, log)
        except IntegrityError:
            # Another request created the open correction between our read
            # and our insert; the retry finds it and updates it instead.
            log.warning("correction_draft_conflict_retry")
        try:
            return await self._save_draft_once(supplier_id, supplier_item_id, proposal, log)
        except IntegrityError as e:
            raise DatabaseError(f"Failed to save correction draft: {e}") from e

    async def _save_draft_once(
        self,
        supplier_id: uuid.UUID,
        supplier_item_id: uuid.UUID,
        proposal: ProposedCorrection,
        log: Any,
    ) -> SaveDraftResult:
        async with self._session_factory() as session:
            async with session.begin():
                item = await self._get_owned_item(session, supplier_id, supplier_item_id)

                result = await session.execute(
                    select(SupplierCorrection)
                    .where(SupplierCorrection.supplier_item_id == item.id)
                    .where(SupplierCorrection.status.in_(OPEN_CORRECTION_STATUSES))
                    .with_for_update()
                )
                existing = result.scalar_one_or_none()

                if existing is not None and existing.status == CorrectionStatus.PENDING:
                    raise InvalidStateError(
                        "A correction for this item is already pending review",
                        details={"correction_id": str(existing.id)},
                    )

                if existing is not None:
                    original = _load_fields(existing.original_data, existing.id)
                    base = _load_fields(existing.proposed_data, existing.id)
                else:
                    original = await self._snapshot(session, item)
                    base = original

                proposed_fields = proposal.merge_onto(base)
                # Covers a GTIN inherited from the linked product as well
                self._check_gtin(proposed_fields.gtin, "Invalid GTIN")

                if proposed_fields == original:
                    if existing is not None:
                        await session.delete(existing)
                    log.info(
                        "correction_draft_discarded",
                        correction_id=str(existing.id) if existing is not None else None,
                    )
                    return SaveDraftResult(discarded=True)

                if existing is not None:
                    existing.proposed_data = proposed_fields.to_payload()
                    log.info(
                        "correction_draft_updated",
                        correction_id=str(existing.id),
                        changed_fields=proposed_fields.changed_fields(original),
                    )
                    return SaveDraftResult(correction_id=existing.id, created=False)

                correction = SupplierCorrection(
                    supplier_item_id=item.id,
                    supplier_id=supplier_id,
                    original_data=original.to_payload(),
                    proposed_data=proposed_fields.to_payload(),
                    data_version=CORRECTION_DATA_VERSION,
                    status=CorrectionStatus.DRAFT,
                )
                session.add(correction)
                await session.flush()

                log.info(
                    "correction_draft_created",
                    correction_id=str(correction.id),
                    changed_fields=proposed_fields.changed_fields(original),
                )
                return SaveDraftResult(correction_id=correction.id, created=True)

    async def delete_draft(self, supplier_id: uuid.UUID, correction_id: uuid.UUID) -> None:
        """Delete one of the caller's draft corrections.

        Raises:
            NotFoundError: Correction absent or owned by another supplier
            InvalidStateError: Correction is no longer a draft
        """
        async with self._session_factory() as session:
            async with session.begin():
                correction = await session.get(SupplierCorrection, correction_id, with_for_update=True)
                if correction is None or correction.supplier_id != supplier_id:
                    raise NotFoundError(CORRECTION_NOT_FOUND)
                if correction.status != CorrectionStatus.DRAFT:
                    raise InvalidStateError(
                        "Only draft corrections can be deleted",
                        details={"status": correction.status.value},
                    )
                await session.delete(correction)

        logger.info(
            "correction_draft_deleted",
            supplier_id=str(supplier_id),
            correction_id=str(correction_id),
        )

    async def submit_all(self, supplier_id: uuid.UUID) -> int:
        """Move every draft of the supplier to pending, all or nothing.

        Every proposed GTIN is validated before anything changes; one
        invalid draft aborts the whole batch.

        Returns:
            Number of corrections submitted (0 when there are no drafts)

        Raises:
            ValidationError: A draft carries an invalid GTIN
            InvalidStateError: A draft changed state during submission
        """
        log = logger.bind(supplier_id=str(supplier_id))

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(SupplierCorrection, SupplierItem)
                    .join(SupplierItem, SupplierCorrection.supplier_item_id == SupplierItem.id)
                    .where(SupplierCorrection.supplier_id == supplier_id)
                    .where(SupplierCorrection.status == CorrectionStatus.DRAFT)
                    .order_by(SupplierCorrection.created_at, SupplierCorrection.id)
                    .with_for_update(of=SupplierCorrection)
                )
                drafts = result.all()

                if not drafts:
                    log.info("correction_submit_no_drafts")
                    return 0

                for correction, item in drafts:
                    proposed = _load_fields(correction.proposed_data, correction.id)
                    self._check_gtin(
                        proposed.gtin,
                        f"Invalid GTIN for item {item.supplier_sku} ({item.supplier_name}) "
                        f"in correction {correction.id}",
                        details={
                            "correction_id": str(correction.id),
                            "supplier_item_id": str(item.id),
                            "supplier_sku": item.supplier_sku,
                        },
                    )

                ids = [correction.id for correction, _ in drafts]
                now = datetime.now(timezone.utc)
                update_result = await session.execute(
                    update(SupplierCorrection)
                    .where(SupplierCorrection.id.in_(ids))
                    .where(SupplierCorrection.status == CorrectionStatus.DRAFT)
                    .values(status=CorrectionStatus.PENDING, submitted_at=now)
                    .execution_options(synchronize_session=False)
                )
                if update_result.rowcount != len(ids):
                    raise InvalidStateError(
                        "Drafts changed while submitting; nothing was submitted",
                        details={"expected": len(ids), "updated": update_result.rowcount},
                    )

        log.info("corrections_submitted", count=len(ids))
        return len(ids)

    # ========== Reviewer operations ==========

    async def approve(self, correction_id: uuid.UUID, reviewer: str) -> CorrectionView:
        """Approve a pending correction and apply it to the supplier item.

        unit_price, min_order_qty and supplier_description are written
        to the item. A GTIN change is only logged as
        gtin_change_requested; the canonical product is never touched
        because its GTIN is shared by every supplier linked to it.

        Raises:
            NotFoundError: Correction does not exist
            InvalidStateError: Correction is not pending, or lost a race
            ValidationError: Proposed GTIN no longer validates
        """
        log = logger.bind(correction_id=str(correction_id), reviewer=reviewer)

        async with self._session_factory() as session:
            async with session.begin():
                correction = await session.get(SupplierCorrection, correction_id, with_for_update=True)
                if correction is None:
                    raise NotFoundError(CORRECTION_NOT_FOUND)
                if correction.status != CorrectionStatus.PENDING:
                    raise InvalidStateError(
                        "Only pending corrections can be approved",
                        details={"status": correction.status.value},
                    )

                original = _load_fields(correction.original_data, correction.id)
                proposed = _load_fields(correction.proposed_data, correction.id)
                self._check_gtin(
                    proposed.gtin,
                    f"Invalid GTIN in correction {correction.id}",
                    details={"correction_id": str(correction.id)},
                )

                item = await session.get(SupplierItem, correction.supplier_item_id, with_for_update=True)
                if item is None:
                    raise NotFoundError(ITEM_NOT_FOUND)

                now = datetime.now(timezone.utc)
                await self._compare_and_set(
                    session,
                    correction.id,
                    CorrectionStatus.APPROVED,
                    reviewed_at=now,
                    reviewed_by=reviewer,
                )

                item.unit_price = proposed.unit_price
                item.min_order_qty = proposed.min_order_qty
                item.supplier_description = proposed.supplier_description

                if proposed.gtin != original.gtin:
                    current_gtin = None
                    if item.product_id is not None:
                        current_gtin = await session.scalar(
                            select(CanonicalProduct.gtin).where(CanonicalProduct.id == item.product_id)
                        )
                    log.info(
                        "gtin_change_requested",
                        supplier_item_id=str(item.id),
                        supplier_id=str(item.supplier_id),
                        product_id=str(item.product_id) if item.product_id else None,
                        old_gtin=original.gtin,
                        current_gtin=current_gtin,
                        new_gtin=proposed.gtin,
                    )

                await session.refresh(correction)
                view = CorrectionView.from_orm_row(correction, item)

        log.info(
            "correction_approved",
            supplier_item_id=str(view.supplier_item_id),
            changed_fields=view.changed_fields,
        )
        return view

    async def reject(
        self,
        correction_id: uuid.UUID,
        reviewer: str,
        notes: Optional[str] = None,
    ) -> CorrectionView:
        """Reject a pending correction. The supplier item is not modified.

        Raises:
            NotFoundError: Correction does not exist
            InvalidStateError: Correction is not pending, or lost a race
            ValidationError: Notes exceed the configured length
        """
        notes = notes.strip() if notes else None
        if notes and len(notes) > self._settings.max_review_notes_length:
            raise ValidationError(
                f"Review notes must be at most {self._settings.max_review_notes_length} characters"
            )

        async with self._session_factory() as session:
            async with session.begin():
                correction = await session.get(SupplierCorrection, correction_id, with_for_update=True)
                if correction is None:
                    raise NotFoundError(CORRECTION_NOT_FOUND)
                if correction.status != CorrectionStatus.PENDING:
                    raise InvalidStateError(
                        "Only pending corrections can be rejected",
                        details={"status": correction.status.value},
                    )

                await self._compare_and_set(
                    session,
                    correction.id,
                    CorrectionStatus.REJECTED,
                    reviewed_at=datetime.now(timezone.utc),
                    reviewed_by=reviewer,
                    review_notes=notes,
                )
                await session.refresh(correction)
                item = await session.get(SupplierItem, correction.supplier_item_id)
                view = CorrectionView.from_orm_row(correction, item)

        logger.info(
            "correction_rejected",
            correction_id=str(correction_id),
            reviewer=reviewer,
            has_notes=notes is not None,
        )
        return view

    # ========== Reads ==========

    async def get(self, correction_id: uuid.UUID, supplier_id: Optional[uuid.UUID] = None) -> CorrectionView:
        """Fetch one correction, optionally restricted to a supplier scope."""
        async with self._session_factory() as session:
            row = (
                await session.execute(
                    select(SupplierCorrection, SupplierItem)
                    .join(SupplierItem, SupplierCorrection.supplier_item_id == SupplierItem.id)
                    .where(SupplierCorrection.id == correction_id)
                )
            ).first()
        if row is None or (supplier_id is not None and row[0].supplier_id != supplier_id):
            raise NotFoundError(CORRECTION_NOT_FOUND)
        return CorrectionView.from_orm_row(row[0], row[1])

    async def count_by_status(self, supplier_id: uuid.UUID) -> CorrectionStatusCounts:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SupplierCorrection.status, func.count(SupplierCorrection.id))
                .where(SupplierCorrection.supplier_id == supplier_id)
                .group_by(SupplierCorrection.status)
            )
            counts = {status.value: count for status, count in result.all()}
        return CorrectionStatusCounts(**counts)

    async def find_drafts_by_supplier(self, supplier_id: uuid.UUID) -> List[CorrectionView]:
        """Drafts of one supplier, most recently edited first."""
        return await self._find(
            SupplierCorrection.supplier_id == supplier_id,
            SupplierCorrection.status == CorrectionStatus.DRAFT,
            order_by=(SupplierCorrection.updated_at.desc(), SupplierCorrection.id),
        )

    async def find_by_supplier(
        self,
        supplier_id: uuid.UUID,
        statuses: Optional[Sequence[CorrectionStatus]] = None,
    ) -> List[CorrectionView]:
        """All corrections of one supplier, newest first."""
        criteria = [SupplierCorrection.supplier_id == supplier_id]
        if statuses:
            criteria.append(SupplierCorrection.status.in_(list(statuses)))
        return await self._find(
            *criteria,
            order_by=(SupplierCorrection.created_at.desc(), SupplierCorrection.id),
        )

    async def find_pending_for_review(self, limit: Optional[int] = None) -> List[CorrectionView]:
        """Pending corrections across suppliers, oldest submission first."""
        return await self._find(
            SupplierCorrection.status == CorrectionStatus.PENDING,
            order_by=(SupplierCorrection.submitted_at, SupplierCorrection.id),
            limit=self._settings.pending_review_limit if limit is None else limit,
        )

    async def count_pending(self) -> int:
        async with self._session_factory() as session:
            count = await session.scalar(
                select(func.count(SupplierCorrection.id))
                .where(SupplierCorrection.status == CorrectionStatus.PENDING)
            )
        return count or 0

    # ========== Helpers ==========

    async def _find(self, *criteria, order_by, limit: Optional[int] = None) -> List[CorrectionView]:
        query = (
            select(SupplierCorrection, SupplierItem)
            .join(SupplierItem, SupplierCorrection.supplier_item_id == SupplierItem.id)
            .where(*criteria)
            .order_by(*order_by)
        )
        if limit is not None:
            query = query.limit(limit)

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(query)).all()
        except SQLAlchemyError as e:
            logger.error("correction_query_failed", error=str(e), error_type=type(e).__name__)
            raise DatabaseError(f"Failed to query corrections: {e}") from e

        return [CorrectionView.from_orm_row(correction, item) for correction, item in rows]

    def _parse_proposal(self, proposed: ProposalInput) -> ProposedCorrection:
        if isinstance(proposed, ProposedCorrection):
            proposal = proposed
        else:
            try:
                proposal = ProposedCorrection.model_validate(dict(proposed))
            except PydanticValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"])
                raise ValidationError(
                    f"Invalid value for {field}: {first['msg']}",
                    details={"errors": e.errors(include_url=False, include_context=False)},
                ) from e

        description = proposal.supplier_description
        if description and len(description) > self._settings.max_description_length:
            raise ValidationError(
                f"Description must be at most {self._settings.max_description_length} characters"
            )

        if "gtin" in proposal.model_fields_set and proposal.gtin:
            self._check_gtin(proposal.gtin, "Invalid GTIN")
        return proposal

    @staticmethod
    def _check_gtin(gtin: Optional[str], message: str, details: Optional[Dict[str, Any]] = None) -> None:
        if not gtin:
            return
        result = validate(gtin)
        if not result.valid:
            raise ValidationError(f"{message}: {result.error}", details={"gtin": gtin, **(details or {})})

    @staticmethod
    async def _get_owned_item(
        session: AsyncSession,
        supplier_id: uuid.UUID,
        supplier_item_id: uuid.UUID,
    ) -> SupplierItem:
        item = await session.get(SupplierItem, supplier_item_id, with_for_update=True)
        # Absence and foreign ownership are indistinguishable to the caller
        if item is None or item.supplier_id != supplier_id or not item.is_active:
            raise NotFoundError(ITEM_NOT_FOUND)
        return item

    @staticmethod
    async def _snapshot(session: AsyncSession, item: SupplierItem) -> CorrectionFields:
        gtin = None
        if item.product_id is not None:
            gtin = await session.scalar(
                select(CanonicalProduct.gtin).where(CanonicalProduct.id == item.product_id)
            )
        return CorrectionFields(
            unit_price=item.unit_price,
            min_order_qty=item.min_order_qty,
            supplier_description=item.supplier_description,
            gtin=gtin,
        )

    @staticmethod
    async def _compare_and_set(
        session: AsyncSession,
        correction_id: uuid.UUID,
        new_status: CorrectionStatus,
        **values: Any,
    ) -> None:
        """Flip PENDING to new_status only if it is still PENDING."""
        result = await session.execute(
            update(SupplierCorrection)
            .where(SupplierCorrection.id == correction_id)
            .where(SupplierCorrection.status == CorrectionStatus.PENDING)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                "Correction was already reviewed",
                details={"correction_id": str(correction_id)},
            )
