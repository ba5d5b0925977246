"""Models exchanged at the action boundary."""
from pydantic import BaseModel, ConfigDict
from typing import Any, Optional
from uuid import UUID


class ActorContext(BaseModel):
    """Already-authenticated caller identity.

    Attributes:
        actor_id: Stable identity of the user (recorded in audit fields)
        supplier_id: Supplier scope for supplier-side operations
        is_platform_reviewer: May act on the correction review and triage queues
        request_id: Optional correlation id for logs
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str
    supplier_id: Optional[UUID] = None
    is_platform_reviewer: bool = False
    request_id: Optional[str] = None


class ActionResult(BaseModel):
    """Typed outcome of an action.

    Exactly one of data / error is meaningful, depending on success.
    """

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ActionResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: str) -> "ActionResult":
        return cls(success=False, error=error, error_code=error_code)
