"""Correction workflow actions for suppliers and platform reviewers."""
from typing import Any, Mapping, Optional, Union
import uuid

from supplier_identity.actions.base import require_platform_reviewer, require_supplier_scope, run_action
from supplier_identity.models.actions import ActionResult, ActorContext
from supplier_identity.models.corrections import ProposedCorrection
from supplier_identity.services.corrections import CorrectionService


class CorrectionActions:
    """Entry points wrapping CorrectionService with role checks."""

    def __init__(self, service: CorrectionService):
        self._service = service

    # Supplier side

    async def save_draft(
        self,
        actor: ActorContext,
        supplier_item_id: uuid.UUID,
        proposed: Union[ProposedCorrection, Mapping[str, Any]],
    ) -> ActionResult:
        async def op():
            result = await self._service.save_draft(actor.supplier_id, supplier_item_id, proposed)
            return result.model_dump()

        return await run_action(
            "save_correction_draft",
            actor,
            op,
            authorize=require_supplier_scope,
            supplier_item_id=supplier_item_id,
        )

    async def delete_draft(self, actor: ActorContext, correction_id: uuid.UUID) -> ActionResult:
        async def op():
            await self._service.delete_draft(actor.supplier_id, correction_id)

        return await run_action(
            "delete_correction_draft",
            actor,
            op,
            authorize=require_supplier_scope,
            correction_id=correction_id,
        )

    async def submit_all(self, actor: ActorContext) -> ActionResult:
        async def op():
            return {"submitted": await self._service.submit_all(actor.supplier_id)}

        return await run_action("submit_corrections", actor, op, authorize=require_supplier_scope)

    async def list_drafts(self, actor: ActorContext) -> ActionResult:
        async def op():
            return await self._service.find_drafts_by_supplier(actor.supplier_id)

        return await run_action("list_correction_drafts", actor, op, authorize=require_supplier_scope)

    async def status_counts(self, actor: ActorContext) -> ActionResult:
        async def op():
            return await self._service.count_by_status(actor.supplier_id)

        return await run_action("count_corrections", actor, op, authorize=require_supplier_scope)

    # Reviewer side

    async def approve(self, actor: ActorContext, correction_id: uuid.UUID) -> ActionResult:
        async def op():
            return await self._service.approve(correction_id, actor.actor_id)

        return await run_action(
            "approve_correction",
            actor,
            op,
            authorize=require_platform_reviewer,
            correction_id=correction_id,
        )

    async def reject(
        self,
        actor: ActorContext,
        correction_id: uuid.UUID,
        notes: Optional[str] = None,
    ) -> ActionResult:
        async def op():
            return await self._service.reject(correction_id, actor.actor_id, notes)

        return await run_action(
            "reject_correction",
            actor,
            op,
            authorize=require_platform_reviewer,
            correction_id=correction_id,
        )

    async def pending_for_review(self, actor: ActorContext, limit: Optional[int] = None) -> ActionResult:
        async def op():
            return await self._service.find_pending_for_review(limit)

        return await run_action("list_pending_corrections", actor, op, authorize=require_platform_reviewer)
