"""
Kube Actuator - Kubernetes Client
=================================

Thin wrapper around the official Kubernetes Python client exposing the
namespace-scoped get/list/update calls the executor needs. API errors
are raised as ``kubernetes.client.rest.ApiException``; callers decide
how to classify them.
"""

from typing import Any, Iterator, Optional

from kubernetes import client, config, watch

from src.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class K8sClient:
    """
    Kubernetes API access for action execution.

    API objects can be injected for testing; otherwise the client loads
    in-cluster config or a kubeconfig according to settings.
    """

    def __init__(
        self,
        core_v1: Optional[client.CoreV1Api] = None,
        apps_v1: Optional[client.AppsV1Api] = None,
    ):
        if core_v1 is None or apps_v1 is None:
            self._load_config()
        self._core_v1 = core_v1 or client.CoreV1Api()
        self._apps_v1 = apps_v1 or client.AppsV1Api()

    @staticmethod
    def _load_config() -> None:
        settings = get_settings()
        try:
            if settings.k8s_in_cluster:
                config.load_incluster_config()
            else:
                config.load_kube_config(config_file=settings.k8s_kubeconfig or None)
        except config.ConfigException as e:
            raise RuntimeError(f"Unable to load Kubernetes configuration: {e}") from e
        logger.info("Loaded Kubernetes configuration", extra={"in_cluster": settings.k8s_in_cluster})

    # -------------------------------------------------------------------------
    # Pods
    # -------------------------------------------------------------------------

    def get_pod_by_uid(self, uid: str) -> Optional[client.V1Pod]:
        """
        Find a pod by UID across all namespaces.

        The API has no UID lookup, so this lists every pod and compares.
        """
        pods = self._core_v1.list_pod_for_all_namespaces()
        for pod in pods.items:
            if pod.metadata.uid == uid:
                return pod
        return None

    def read_pod(self, namespace: str, name: str) -> client.V1Pod:
        return self._core_v1.read_namespaced_pod(name, namespace)

    def list_all_pods(self) -> list[client.V1Pod]:
        return self._core_v1.list_pod_for_all_namespaces().items

    def watch_pods(self, namespace: str = "", timeout_seconds: int = 0) -> Iterator[dict[str, Any]]:
        """Stream pod watch events; all namespaces when ``namespace`` is empty."""
        w = watch.Watch()
        if namespace:
            return w.stream(
                self._core_v1.list_namespaced_pod,
                namespace,
                timeout_seconds=timeout_seconds,
            )
        return w.stream(
            self._core_v1.list_pod_for_all_namespaces,
            timeout_seconds=timeout_seconds,
        )

    # -------------------------------------------------------------------------
    # Controllers
    # -------------------------------------------------------------------------

    def list_replication_controllers(self, namespace: str) -> list[client.V1ReplicationController]:
        return self._core_v1.list_namespaced_replication_controller(namespace).items

    def list_replica_sets(self, namespace: str) -> list[client.V1ReplicaSet]:
        return self._apps_v1.list_namespaced_replica_set(namespace).items

    def list_deployments(self, namespace: str) -> list[client.V1Deployment]:
        return self._apps_v1.list_namespaced_deployment(namespace).items

    def read_replication_controller(self, namespace: str, name: str) -> client.V1ReplicationController:
        return self._core_v1.read_namespaced_replication_controller(name, namespace)

    def replace_replication_controller(
        self, rc: client.V1ReplicationController
    ) -> client.V1ReplicationController:
        """Write back a controller; fails with 409 if it changed since it was read."""
        return self._core_v1.replace_namespaced_replication_controller(
            rc.metadata.name, rc.metadata.namespace, rc
        )

    def replace_deployment(self, deployment: client.V1Deployment) -> client.V1Deployment:
        """Write back a deployment; fails with 409 if it changed since it was read."""
        return self._apps_v1.replace_namespaced_deployment(
            deployment.metadata.name, deployment.metadata.namespace, deployment
        )

    # -------------------------------------------------------------------------
    # Nodes and binding
    # -------------------------------------------------------------------------

    def list_nodes(self) -> list[client.V1Node]:
        return self._core_v1.list_node().items

    def bind_pod(self, pod: client.V1Pod, node_name: str) -> None:
        """Bind a pending pod to a node."""
        binding = client.V1Binding(
            api_version="v1",
            kind="Binding",
            metadata=client.V1ObjectMeta(
                name=pod.metadata.name,
                namespace=pod.metadata.namespace
            ),
            target=client.V1ObjectReference(
                api_version="v1",
                kind="Node",
                name=node_name
            )
        )
        # The generated client fails to deserialize the Status the API
        # returns for bindings unless the response is left raw.
        self._core_v1.create_namespaced_binding(
            namespace=pod.metadata.namespace,
            body=binding,
            _preload_content=False,
        )


def controller_uid(pod: client.V1Pod) -> Optional[str]:
    """UID of the controller owner reference of ``pod``, if any."""
    for ref in pod.metadata.owner_references or []:
        if ref.controller:
            return ref.uid
    return None
