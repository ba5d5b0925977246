"""Review queue actions for platform reviewers."""
from typing import Any, Mapping, Optional, Union
import uuid

from supplier_identity.actions.base import require_platform_reviewer, run_action
from supplier_identity.models.actions import ActionResult, ActorContext
from supplier_identity.models.triage import NewProductData, TriageFilters
from supplier_identity.services.triage import TriageService


class TriageActions:
    """Entry points wrapping TriageService; every call needs a platform reviewer."""

    def __init__(self, service: TriageService):
        self._service = service

    async def _run(self, operation: str, actor: ActorContext, op, **context: Any) -> ActionResult:
        return await run_action(operation, actor, op, authorize=require_platform_reviewer, **context)

    async def list_items(
        self,
        actor: ActorContext,
        filters: Optional[TriageFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> ActionResult:
        async def op():
            return {
                "items": await self._service.list_items(filters, limit, offset),
                "total": await self._service.count_pending(filters),
            }

        return await self._run("list_triage_items", actor, op)

    async def navigate(
        self,
        actor: ActorContext,
        item_id: uuid.UUID,
        filters: Optional[TriageFilters] = None,
    ) -> ActionResult:
        async def op():
            return await self._service.navigate(item_id, filters)

        return await self._run("navigate_triage", actor, op, supplier_item_id=item_id)

    async def stats(self, actor: ActorContext) -> ActionResult:
        return await self._run("triage_stats", actor, self._service.get_stats)

    async def confirm(self, actor: ActorContext, item_id: uuid.UUID) -> ActionResult:
        async def op():
            return {"product_id": await self._service.confirm(item_id, actor.actor_id)}

        return await self._run("confirm_match", actor, op, supplier_item_id=item_id)

    async def reassign(self, actor: ActorContext, item_id: uuid.UUID, product_id: uuid.UUID) -> ActionResult:
        async def op():
            return {"product_id": await self._service.reassign(item_id, product_id, actor.actor_id)}

        return await self._run("reassign_product", actor, op, supplier_item_id=item_id, product_id=product_id)

    async def create(
        self,
        actor: ActorContext,
        item_id: uuid.UUID,
        data: Union[NewProductData, Mapping[str, Any], None] = None,
    ) -> ActionResult:
        async def op():
            return {"product_id": await self._service.create(item_id, actor.actor_id, data)}

        return await self._run("create_product_and_link", actor, op, supplier_item_id=item_id)

    async def merge(self, actor: ActorContext, item_id: uuid.UUID, target_product_id: uuid.UUID) -> ActionResult:
        async def op():
            return await self._service.merge(item_id, target_product_id, actor.actor_id)

        return await self._run(
            "merge_products",
            actor,
            op,
            supplier_item_id=item_id,
            target_product_id=target_product_id,
        )

    async def ignore(self, actor: ActorContext, item_id: uuid.UUID) -> ActionResult:
        async def op():
            await self._service.ignore(item_id, actor.actor_id)

        return await self._run("mark_ignored", actor, op, supplier_item_id=item_id)
