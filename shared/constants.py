"""
Kube Actuator - Shared Constants
================================

Enumerations shared by the action agent and the upstream analysis
service contract. Values mirror what the analysis engine sends.
"""

from enum import Enum


class ServiceName(str, Enum):
    """Names of the Kube Actuator services."""
    K8S_EXECUTOR = "k8s-executor"


class EntityType(str, Enum):
    """Entity types an action item can reference."""
    CONTAINER_POD = "CONTAINER_POD"
    APPLICATION = "APPLICATION"
    VIRTUAL_APPLICATION = "VIRTUAL_APPLICATION"
    VIRTUAL_MACHINE = "VIRTUAL_MACHINE"
    CONTAINER = "CONTAINER"
    UNKNOWN = "UNKNOWN"


class ActionItemType(str, Enum):
    """Action kinds as sent by the analysis engine."""
    PROVISION = "PROVISION"
    MOVE = "MOVE"          # unbind requests arrive as MOVE
    RESIZE = "RESIZE"
    SUSPEND = "SUSPEND"
    UNKNOWN = "UNKNOWN"


class TurboActionType(str, Enum):
    """Action kinds the executor records."""
    PROVISION = "provision"   # scale out
    UNBIND = "unbind"         # scale in


class TurboActionStatus(str, Enum):
    """Lifecycle status of an action record."""
    PENDING = "pending"
    EXECUTING = "executing"
    EXECUTED = "executed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TurboActionStatus.EXECUTED, TurboActionStatus.FAILED})


class ObjectKind(str, Enum):
    """Kubernetes object kinds the executor deals with."""
    POD = "Pod"
    REPLICATION_CONTROLLER = "ReplicationController"
    REPLICA_SET = "ReplicaSet"
    DEPLOYMENT = "Deployment"


# Entity types that can be the target of a horizontal scaling action
SCALABLE_ENTITY_TYPES = frozenset({
    EntityType.CONTAINER_POD,
    EntityType.APPLICATION,
    EntityType.VIRTUAL_APPLICATION,
})

# Controller kinds a pod may be resolved to
PARENT_KINDS = frozenset({
    ObjectKind.REPLICATION_CONTROLLER,
    ObjectKind.REPLICA_SET,
})


class Timing:
    """Timing constants for action execution."""
    SCALE_OUT_TIMEOUT_SECONDS = 300   # 5 minutes to see the new pod
    WATCH_RESTART_DELAY_SECONDS = 5   # back-off before re-opening a pod watch
