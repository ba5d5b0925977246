"""Shared plumbing for action entry points.

Actions are what the application layer calls. They check the caller's
role, run one service operation and turn every outcome into an
ActionResult: domain errors keep their message, anything else is
logged with its traceback and reported generically.
"""
from typing import Any, Awaitable, Callable, Optional
import uuid

import structlog

from supplier_identity.errors import DomainError, UnauthorizedError
from supplier_identity.models.actions import ActionResult, ActorContext

logger = structlog.get_logger(__name__)

GENERIC_ERROR = "An unexpected error occurred. Please try again."
INTERNAL_ERROR_CODE = "internal_error"


def require_supplier_scope(actor: ActorContext) -> uuid.UUID:
    """Supplier id the actor may act for."""
    if actor.supplier_id is None:
        raise UnauthorizedError("Supplier access required")
    return actor.supplier_id


def require_platform_reviewer(actor: ActorContext) -> None:
    if not actor.is_platform_reviewer:
        raise UnauthorizedError("Platform reviewer access required")


async def run_action(
    operation: str,
    actor: ActorContext,
    func: Callable[[], Awaitable[Any]],
    authorize: Optional[Callable[[ActorContext], Any]] = None,
    **context: Any,
) -> ActionResult:
    """Authorize, run and convert the outcome of one operation.

    Args:
        operation: Name used in log events
        actor: Authenticated caller
        func: Zero-argument coroutine function doing the work
        authorize: Role check raising UnauthorizedError
        **context: Extra correlation fields for logs

    Returns:
        ActionResult with the operation's return value as data
    """
    log = logger.bind(
        operation=operation,
        actor_id=actor.actor_id,
        supplier_id=str(actor.supplier_id) if actor.supplier_id else None,
        request_id=actor.request_id,
        **{key: str(value) if isinstance(value, uuid.UUID) else value for key, value in context.items()},
    )

    try:
        if authorize is not None:
            authorize(actor)
        data = await func()
    except DomainError as e:
        log.warning(
            "action_rejected",
            error=e.message,
            error_code=e.code,
        )
        return ActionResult.fail(e.message, e.code)
    except Exception as e:
        log.error(
            "action_failed",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return ActionResult.fail(GENERIC_ERROR, INTERNAL_ERROR_CODE)

    log.debug("action_succeeded")
    return ActionResult.ok(data)
