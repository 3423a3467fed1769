"""
Kube Actuator - Placement Handoff
=================================

Assigns a pod created by a scale-out to a node. The executor only
depends on the ``Placement`` protocol; ``NodeBindingPlacement`` is the
default implementation, binding the pod to the ready node that
currently runs the fewest pods.
"""

import asyncio
from collections import Counter
from typing import Optional, Protocol

from kubernetes.client import V1Node, V1Pod
from kubernetes.client.rest import ApiException

from shared.utils.logging import get_logger

from src.core.errors import PlacementError
from src.core.k8s_client import K8sClient

logger = get_logger(__name__)


class Placement(Protocol):
    async def place(self, pod: V1Pod) -> None:
        """Place ``pod`` on a node; raise PlacementError on failure."""
        ...


def _is_available(node: V1Node) -> bool:
    if node.spec and node.spec.unschedulable:
        return False
    conditions = (node.status.conditions if node.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


class NodeBindingPlacement:
    """Binds pods to the least loaded ready node."""

    def __init__(self, k8s: K8sClient):
        self._k8s = k8s

    async def place(self, pod: V1Pod) -> None:
        await asyncio.to_thread(self._place, pod)

    def _place(self, pod: V1Pod) -> None:
        pod_id = f"{pod.metadata.namespace}/{pod.metadata.name}"
        try:
            # the watch event may predate a binding by another scheduler
            bound_to = self._bound_node(pod)
            if bound_to:
                logger.info(f"Pod {pod_id} is already placed on {bound_to}")
                return

            node_name = self._select_node()
            try:
                self._k8s.bind_pod(pod, node_name)
            except ApiException as e:
                # 409: another scheduler bound it after the check above
                bound_to = self._bound_node(pod) if e.status == 409 else None
                if not bound_to:
                    raise
                logger.info(f"Pod {pod_id} was placed on {bound_to} by another scheduler")
                return
        except ApiException as e:
            raise PlacementError(f"Error scheduling the new provisioned pod {pod_id}: {e.status} {e.reason}") from e

        logger.info(f"Bound pod {pod_id} to node {node_name}", extra={"node": node_name})

    def _bound_node(self, pod: V1Pod) -> Optional[str]:
        current = self._k8s.read_pod(pod.metadata.namespace, pod.metadata.name)
        return current.spec.node_name if current.spec else None

    def _select_node(self) -> str:
        available = sorted(n.metadata.name for n in self._k8s.list_nodes() if _is_available(n))
        if not available:
            raise PlacementError("No ready, schedulable node to place the new pod on")

        load = Counter(
            p.spec.node_name for p in self._k8s.list_all_pods()
            if p.spec and p.spec.node_name
        )
        return min(available, key=lambda name: load[name])
