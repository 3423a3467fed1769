"""
Kube Actuator - K8s Executor Core Package
"""

from src.core.k8s_client import K8sClient
from src.core.resolver import ClusterObjectResolver
from src.core.replica_mutator import ReplicaMutator
from src.core.pod_broker import PodBroker
from src.core.placement import NodeBindingPlacement
from src.core.action_store import ActionStore
from src.core.horizontal_scaler import HorizontalScaler
from src.core.pod_watcher import PodWatcher
from src.core.action_reporter import ActionReporter

__all__ = [
    "K8sClient",
    "ClusterObjectResolver",
    "ReplicaMutator",
    "PodBroker",
    "NodeBindingPlacement",
    "ActionStore",
    "HorizontalScaler",
    "PodWatcher",
    "ActionReporter",
]
