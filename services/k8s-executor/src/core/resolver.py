"""
Kube Actuator - Cluster Object Resolver
=======================================

Turns an action item into the concrete pod it is about and the
controller that owns that pod. Read-only against the cluster.

Ownership is decided by label selectors: a controller owns a pod when
every key of its selector is present in the pod labels with the same,
non-empty value. When several controllers match, the one named by the
pod's controller owner reference wins; otherwise candidates are ordered
by (kind, name) and the first is used, unless strict matching is on,
in which case the ambiguity is an error.
"""

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from kubernetes.client import V1Pod, V1Deployment
from kubernetes.client.rest import ApiException

from shared.constants import EntityType, ObjectKind, SCALABLE_ENTITY_TYPES
from shared.schemas.actions import ActionItem, TargetObject, ParentObjectRef
from shared.utils.logging import get_logger

from src.core.errors import ActionValidationError, ResolutionError
from src.core.k8s_client import K8sClient, controller_uid

logger = get_logger(__name__)


@dataclass
class ScalingTarget:
    """A resolved pod together with its owning controller."""
    pod: V1Pod
    target_object: TargetObject
    parent_ref: ParentObjectRef


def selector_matches(selector: Optional[dict[str, str]], labels: Optional[dict[str, str]]) -> bool:
    """True if every selector entry is in ``labels`` with an equal, non-empty value."""
    if not selector or not labels:
        return False
    for key, value in selector.items():
        if not labels.get(key) or labels[key] != value:
            return False
    return True


def _match_labels(obj: Any) -> Optional[dict[str, str]]:
    """Selector of a ReplicaSet or Deployment (``matchExpressions`` are ignored)."""
    selector = obj.spec.selector if obj.spec else None
    return selector.match_labels if selector else None


def _rc_selector(obj: Any) -> Optional[dict[str, str]]:
    return obj.spec.selector if obj.spec else None


def _pod_id(pod: V1Pod) -> str:
    return f"{pod.metadata.namespace}/{pod.metadata.name}"


class ClusterObjectResolver:
    """Locates pods and their owning controllers for scaling actions."""

    def __init__(self, k8s: K8sClient, strict_owner_match: bool = False):
        self._k8s = k8s
        self._strict = strict_owner_match

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def resolve(self, action_item: ActionItem) -> ScalingTarget:
        """
        Resolve the pod an action item targets and its owning controller.

        Raises:
            ActionValidationError: wrong target or current entity type
                (checked before any cluster call)
            ResolutionError: pod or owning controller not found
        """
        self.validate_entity_types(action_item)

        pod = self.find_target_pod(action_item)
        logger.info(f"Got the provider pod {_pod_id(pod)}", extra={"pod_uid": pod.metadata.uid})

        kind, controller = self.find_owning_controller(pod)

        target_object = TargetObject(
            uid=pod.metadata.uid,
            namespace=pod.metadata.namespace,
            name=pod.metadata.name,
            kind=ObjectKind.POD,
        )
        parent_ref = ParentObjectRef(
            uid=controller.metadata.uid or "",
            namespace=controller.metadata.namespace,
            name=controller.metadata.name,
            kind=kind,
        )
        return ScalingTarget(pod=pod, target_object=target_object, parent_ref=parent_ref)

    @staticmethod
    def validate_entity_types(action_item: ActionItem) -> None:
        target_type = action_item.target_se.entity_type
        if target_type not in SCALABLE_ENTITY_TYPES:
            raise ActionValidationError(
                f"Wrong entity type for scaling: {target_type.value} "
                f"(target {action_item.target_se.id})"
            )

        if target_type == EntityType.VIRTUAL_APPLICATION:
            current = action_item.current_se
            if current is None or current.entity_type != EntityType.APPLICATION:
                current_type = current.entity_type.value if current else "none"
                raise ActionValidationError(
                    f"Unexpected current entity type for an unbind action on "
                    f"{action_item.target_se.id}: {current_type}"
                )

    # -------------------------------------------------------------------------
    # Pod lookup
    # -------------------------------------------------------------------------

    def find_target_pod(self, action_item: ActionItem) -> V1Pod:
        target = action_item.target_se
        target_type = target.entity_type

        if target_type == EntityType.CONTAINER_POD:
            return self._get_pod(target.id, target.display_name)

        if target_type == EntityType.APPLICATION:
            return self._find_application_pod_provider(action_item)

        # VIRTUAL_APPLICATION: the hosting pod is what the current
        # application buys from.
        current = action_item.current_se
        pod_id = next(
            (
                cb.provider_id
                for cb in current.commodities_bought
                if cb.provider_type == EntityType.CONTAINER_POD and cb.provider_id
            ),
            None,
        )
        if pod_id is None:
            raise ResolutionError(
                f"Cannot find provider pod for application {current.display_name or current.id} "
                f"based on its commodities bought"
            )
        return self._get_pod(pod_id, current.display_name)

    def _get_pod(self, uid: str, display_name: str = "") -> V1Pod:
        try:
            pod = self._k8s.get_pod_by_uid(uid)
        except ApiException as e:
            raise ResolutionError(
                f"Error listing pods while looking for {display_name or uid}: {e.status} {e.reason}"
            ) from e
        if pod is None:
            raise ResolutionError(f"Cannot find pod {display_name or uid} (uid {uid}) in the cluster")
        return pod

    def _find_application_pod_provider(self, action_item: ActionItem) -> V1Pod:
        pod_providers = [
            p for p in action_item.providers
            if p.entity_type == EntityType.CONTAINER_POD
        ]
        if not pod_providers:
            raise ResolutionError(
                f"Cannot find any pod provider for application "
                f"{action_item.target_se.display_name or action_item.target_se.id}"
            )

        for provider in pod_providers:
            for pod_id in provider.ids:
                try:
                    return self._get_pod(pod_id)
                except ResolutionError as e:
                    logger.warning(f"Skipping pod provider {pod_id}: {e}")

        raise ResolutionError(
            f"None of the pod providers of application "
            f"{action_item.target_se.display_name or action_item.target_se.id} exist in the cluster"
        )

    # -------------------------------------------------------------------------
    # Controller lookup
    # -------------------------------------------------------------------------

    def find_owning_controller(self, pod: V1Pod) -> tuple[ObjectKind, Any]:
        """Return ``(kind, controller)`` of the ReplicationController or ReplicaSet owning ``pod``."""
        namespace = pod.metadata.namespace
        labels = pod.metadata.labels or {}
        if not labels:
            raise ResolutionError(
                f"Pod {_pod_id(pod)} has no labels, it is not owned by a recognized controller"
            )

        try:
            rcs = self._k8s.list_replication_controllers(namespace)
            replica_sets = self._k8s.list_replica_sets(namespace)
        except ApiException as e:
            raise ResolutionError(
                f"Error listing controllers in namespace {namespace}: {e.status} {e.reason}"
            ) from e

        candidates = [
            (ObjectKind.REPLICATION_CONTROLLER, rc)
            for rc in rcs if selector_matches(_rc_selector(rc), labels)
        ] + [
            (ObjectKind.REPLICA_SET, rs)
            for rs in replica_sets if selector_matches(_match_labels(rs), labels)
        ]

        if not candidates:
            raise ResolutionError(
                f"Pod {_pod_id(pod)} is not owned by a recognized controller; make sure it is "
                f"managed by a replication controller or replica set"
            )
        if len(candidates) == 1:
            return candidates[0]

        owner_uid = controller_uid(pod)
        for kind, controller in candidates:
            if owner_uid and controller.metadata.uid == owner_uid:
                return kind, controller

        return self._break_tie(
            candidates,
            key=lambda c: (c[0].value, c[1].metadata.name),
            describe=lambda c: f"{c[0].value}/{c[1].metadata.name}",
            subject=f"pod {_pod_id(pod)}",
        )

    def find_deployment_for_pod(self, pod: V1Pod) -> V1Deployment:
        """Find the Deployment whose selector matches the pod labels."""
        namespace = pod.metadata.namespace
        labels = pod.metadata.labels or {}
        try:
            deployments = self._k8s.list_deployments(namespace)
        except ApiException as e:
            raise ResolutionError(
                f"Error listing deployments in namespace {namespace}: {e.status} {e.reason}"
            ) from e

        matches = [d for d in deployments if selector_matches(_match_labels(d), labels)]
        if not matches:
            raise ResolutionError(f"No Deployment has selectors matching the labels of pod {_pod_id(pod)}")
        if len(matches) == 1:
            return matches[0]
        return self._break_tie(
            matches,
            key=lambda d: d.metadata.name,
            describe=lambda d: f"Deployment/{d.metadata.name}",
            subject=f"pod {_pod_id(pod)}",
        )

    def find_scaling_controller(self, parent_ref: ParentObjectRef, pod: V1Pod) -> Any:
        """
        The object whose ``spec.replicas`` is changed for ``parent_ref``.

        A ReplicationController is scaled directly. A ReplicaSet is only a
        proxy: the Deployment that manages it is found again from the pod.
        """
        if parent_ref.kind == ObjectKind.REPLICATION_CONTROLLER:
            try:
                return self._k8s.read_replication_controller(parent_ref.namespace, parent_ref.name)
            except ApiException as e:
                raise ResolutionError(
                    f"Failed to find replication controller {parent_ref.namespace}/{parent_ref.name}: "
                    f"{e.status} {e.reason}"
                ) from e

        if parent_ref.kind == ObjectKind.REPLICA_SET:
            return self.find_deployment_for_pod(pod)

        raise ResolutionError(
            f"Scaling {parent_ref.kind.value} {parent_ref.namespace}/{parent_ref.name} is not supported"
        )

    def _break_tie(
        self,
        candidates: Sequence[Any],
        key: Callable[[Any], Any],
        describe: Callable[[Any], str],
        subject: str,
    ) -> Any:
        ordered = sorted(candidates, key=key)
        names = [describe(c) for c in ordered]
        if self._strict:
            raise ResolutionError(f"Ambiguous owner for {subject}: {', '.join(names)} all match")
        logger.warning(
            f"Several controllers match {subject}, using {names[0]}",
            extra={"candidates": names}
        )
        return ordered[0]
