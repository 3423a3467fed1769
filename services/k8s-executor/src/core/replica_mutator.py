"""
Kube Actuator - Replica Mutator
===============================

Changes the desired replica count of the controller that owns a pod.

The controller is read again right before it is written so the update
is based on the latest version; a concurrent change still surfaces as
a 409 conflict from the API server. Failures are raised as-is, without
retry.
"""

from typing import Any, Optional

from kubernetes.client import V1Pod
from kubernetes.client.rest import ApiException

from shared.constants import ObjectKind, PARENT_KINDS
from shared.schemas.actions import TargetObject, ParentObjectRef
from shared.utils.logging import get_logger

from src.core.errors import ActionValidationError, MutationError, ResolutionError
from src.core.k8s_client import K8sClient
from src.core.resolver import ClusterObjectResolver

logger = get_logger(__name__)


class ReplicaMutator:
    """Applies a new desired replica count to an owning controller."""

    def __init__(self, k8s: K8sClient, resolver: ClusterObjectResolver):
        self._k8s = k8s
        self._resolver = resolver

    def apply_replicas(
        self,
        parent_ref: ParentObjectRef,
        target_object: TargetObject,
        new_replicas: int,
    ) -> None:
        """
        Set ``new_replicas`` on the controller behind ``parent_ref``.

        Raises:
            ActionValidationError: negative count or unsupported controller kind
            MutationError: controller could not be read or the update was rejected
        """
        if new_replicas < 0:
            raise ActionValidationError(
                f"Invalid new replica count {new_replicas} for "
                f"{parent_ref.namespace}/{parent_ref.name}"
            )
        if parent_ref.kind not in PARENT_KINDS:
            raise ActionValidationError(
                f"Unsupported provider type {parent_ref.kind.value} for "
                f"{parent_ref.namespace}/{parent_ref.name}"
            )

        controller = self._fetch_controller(parent_ref, target_object)
        controller.spec.replicas = new_replicas

        if parent_ref.kind == ObjectKind.REPLICATION_CONTROLLER:
            updated = self._replace(self._k8s.replace_replication_controller, controller, "replication controller")
        else:
            updated = self._replace(self._k8s.replace_deployment, controller, "deployment")

        logger.info(
            f"New replicas of {updated.metadata.namespace}/{updated.metadata.name} is {updated.spec.replicas}",
            extra={"controller": updated.metadata.name, "replicas": updated.spec.replicas}
        )

    def _fetch_controller(self, parent_ref: ParentObjectRef, target_object: TargetObject) -> Any:
        pod: Optional[V1Pod] = None
        if parent_ref.kind == ObjectKind.REPLICA_SET:
            try:
                pod = self._k8s.read_pod(target_object.namespace, target_object.name)
            except ApiException as e:
                raise MutationError(
                    f"Failed to find pod {target_object.namespace}/{target_object.name} for finishing "
                    f"the scaling action: {e.status} {e.reason}"
                ) from e

        try:
            return self._resolver.find_scaling_controller(parent_ref, pod)
        except ResolutionError as e:
            raise MutationError(f"Failed to find the controller for finishing the scaling action: {e}") from e

    @staticmethod
    def _replace(replace: Any, controller: Any, what: str) -> Any:
        try:
            return replace(controller)
        except ApiException as e:
            raise MutationError(
                f"Error updating {what} {controller.metadata.namespace}/{controller.metadata.name}: "
                f"{e.status} {e.reason}"
            ) from e
