"""
Kube Actuator - Action Schemas
==============================

Pydantic models for the action item received from the analysis engine
and for the action record (Turbo Action) the executor reports back.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from shared.constants import (
    EntityType,
    ActionItemType,
    TurboActionType,
    TurboActionStatus,
    ObjectKind,
)


# =============================================================================
# Inbound: action item
# =============================================================================

class CommodityBought(BaseModel):
    """A commodity an entity buys from a provider."""

    provider_id: str = Field(..., description="Identifier of the selling entity")
    provider_type: EntityType = Field(..., description="Entity type of the provider")

    class Config:
        frozen = True


class EntityRef(BaseModel):
    """Reference to an entity in the supply chain."""

    id: str = Field(..., description="Entity identifier (pod UID for pods)")
    display_name: str = Field(default="")
    entity_type: EntityType = Field(...)
    commodities_bought: tuple[CommodityBought, ...] = Field(
        default_factory=tuple,
        description="Providers this entity buys from"
    )

    class Config:
        frozen = True


class ProviderInfo(BaseModel):
    """A provider of the target entity along with its identifiers."""

    entity_type: EntityType = Field(...)
    ids: tuple[str, ...] = Field(default_factory=tuple)

    class Config:
        frozen = True


class ActionItem(BaseModel):
    """
    A single action recommended by the analysis engine.

    Immutable once received. ``current_se`` is only set for unbind
    requests, which target a virtual application and name the
    application currently bound to it.
    """

    uuid: str = Field(..., description="Action identifier assigned upstream")
    action_type: ActionItemType = Field(...)
    target_se: EntityRef = Field(..., description="Entity the action applies to")
    current_se: Optional[EntityRef] = Field(None)
    providers: tuple[ProviderInfo, ...] = Field(default_factory=tuple)

    class Config:
        frozen = True


# =============================================================================
# Outbound: action record
# =============================================================================

class TargetObject(BaseModel):
    """The concrete pod an action operates on."""

    uid: str
    namespace: str
    name: str
    kind: ObjectKind = ObjectKind.POD


class ParentObjectRef(BaseModel):
    """The controller that owns the target pod."""

    uid: str
    namespace: str
    name: str
    kind: ObjectKind


class ScaleSpec(BaseModel):
    """Replica change for a horizontal scaling action."""

    original_replicas: int
    new_replicas: int = Field(..., ge=0)


class TurboActionContent(BaseModel):
    """What an action does and to which objects."""

    action_type: TurboActionType
    target_object: TargetObject
    parent_object_ref: Optional[ParentObjectRef] = None
    action_spec: Optional[Union[ScaleSpec, dict]] = None


class TurboAction(BaseModel):
    """
    Durable record of one action execution.

    Created once per incoming action item and moved through
    pending -> executing -> executed | failed by the executor.
    """

    uid: str
    namespace: str
    content: TurboActionContent
    status: TurboActionStatus = TurboActionStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
    error_message: Optional[str] = None

    class Config:
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }
