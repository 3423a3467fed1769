"""
Kube Actuator - K8s Executor API Schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from shared.constants import TurboActionStatus
from shared.schemas.actions import ActionItem, TurboAction


class ExecuteRequest(BaseModel):
    """Request to execute one action item."""
    action_item: ActionItem = Field(...)


class ExecuteResponse(BaseModel):
    """Outcome of an action execution."""
    action_uid: str
    status: TurboActionStatus
    message: str
    action: Optional[TurboAction] = None
    error_type: Optional[str] = None
    mutation_committed: bool = False
    executed_at: datetime = Field(default_factory=datetime.utcnow)


class ActionListResponse(BaseModel):
    """Recent action records."""
    actions: list[TurboAction]
    count: int
    active: int
