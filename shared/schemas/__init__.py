"""
Kube Actuator - Shared Schemas
==============================

Pydantic models shared with the upstream analysis service.
"""

from shared.schemas.actions import (
    ActionItem,
    CommodityBought,
    EntityRef,
    ProviderInfo,
    TargetObject,
    ParentObjectRef,
    ScaleSpec,
    TurboActionContent,
    TurboAction,
)

__all__ = [
    # Inbound
    "ActionItem",
    "CommodityBought",
    "EntityRef",
    "ProviderInfo",
    # Outbound
    "TargetObject",
    "ParentObjectRef",
    "ScaleSpec",
    "TurboActionContent",
    "TurboAction",
]
