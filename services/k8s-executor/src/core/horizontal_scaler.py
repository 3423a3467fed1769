"""
Kube Actuator - Horizontal Scaler
=================================

Executes horizontal scaling actions and owns each action record from
creation to a terminal state.

Lifecycle: pending -> executing -> executed | failed

Scale out (PROVISION):
1. build and validate the scaling plan
2. subscribe to the pod broker under the owning controller's UID
3. raise the desired replica count
4. wait for the new pod (bounded), release the subscription
5. place the pod on a node
6. mark the record executed

Scale in (MOVE, i.e. unbind): steps 1, 3 and 6 only.

The subscription is taken before the replica count changes so the new
pod cannot be published before anyone is listening. Once the count is
changed it is never reverted: a rendezvous or placement failure leaves
the cluster scaled with the record marked failed.
"""

import asyncio
from typing import Optional

from shared.constants import ActionItemType, TurboActionType, TurboActionStatus
from shared.schemas.actions import (
    ActionItem,
    ScaleSpec,
    TurboAction,
    TurboActionContent,
)
from shared.utils.logging import get_logger, action_context

from src.core.action_store import ActionStore
from src.core.errors import (
    ActionExecutionError,
    ActionValidationError,
    RendezvousTimeoutError,
)
from src.core.placement import Placement
from src.core.pod_broker import PodBroker, PodSubscription
from src.core.replica_mutator import ReplicaMutator
from src.core.resolver import ClusterObjectResolver

logger = get_logger(__name__)

# Replica count the API server assumes when spec.replicas is unset
DEFAULT_REPLICAS = 1


def build_scale_spec(action_type: TurboActionType, original_replicas: int, delta: int) -> ScaleSpec:
    """
    Compute the replica change for an action.

    Raises:
        ActionValidationError: the result would be negative
    """
    diff = delta if action_type == TurboActionType.PROVISION else -delta
    new_replicas = original_replicas + diff
    if new_replicas < 0:
        raise ActionValidationError(
            f"Invalid new replica count {new_replicas} (current {original_replicas}, change {diff})"
        )
    return ScaleSpec(original_replicas=original_replicas, new_replicas=new_replicas)


def scaling_action_type(action_item: ActionItem) -> TurboActionType:
    """Map the upstream action kind to a scaling direction."""
    if action_item.action_type == ActionItemType.PROVISION:
        return TurboActionType.PROVISION
    if action_item.action_type == ActionItemType.MOVE:
        # unbind requests arrive as MOVE
        return TurboActionType.UNBIND
    raise ActionValidationError(
        f"Action {action_item.uuid} of type {action_item.action_type.value} is not a scaling action"
    )


class HorizontalScaler:
    """Runs scaling actions against the cluster."""

    def __init__(
        self,
        resolver: ClusterObjectResolver,
        mutator: ReplicaMutator,
        broker: PodBroker,
        placement: Placement,
        store: ActionStore,
        scale_delta: int = 1,
        timeout_seconds: float = 300.0,
    ):
        self._resolver = resolver
        self._mutator = mutator
        self._broker = broker
        self._placement = placement
        self._store = store
        self._scale_delta = scale_delta
        self._timeout_seconds = timeout_seconds

    async def execute(self, action_item: ActionItem) -> TurboAction:
        """
        Execute one action item and return its executed record.

        A record that already finished successfully is returned as-is
        instead of scaling again.
        Only one execution per action UID runs at a time; a second one
        is rejected while the first is in flight.

        Raises:
            ActionExecutionError: any failure; the stored record, if one
                was built, is marked failed
        """
        with action_context(action_item.uuid):
            existing = self._store.reserve(action_item.uuid)
            if existing is not None:
                logger.info(f"Action {action_item.uuid} was already executed")
                return existing

            try:
                return await self._execute(action_item)
            finally:
                self._store.release(action_item.uuid)

    async def _execute(self, action_item: ActionItem) -> TurboAction:
        action = await self.build_pending_action(action_item)
        self._store.add(action)

        try:
            await self._horizontal_scale(action)
        except ActionExecutionError as e:
            self._store.update_status(action.uid, TurboActionStatus.FAILED, str(e))
            logger.error(
                f"Horizontal scaling action {action.uid} failed: {e}",
                extra={"error_type": e.error_type, "mutation_committed": e.mutation_committed}
            )
            raise
        except Exception as e:
            self._store.update_status(action.uid, TurboActionStatus.FAILED, f"Unexpected error: {e}")
            logger.error(f"Horizontal scaling action {action.uid} crashed: {e}", exc_info=True)
            raise

        self._store.update_status(action.uid, TurboActionStatus.EXECUTED)
        logger.info(
            f"Horizontal scaling action {action.uid} executed",
            extra={"action_spec": action.content.action_spec.model_dump()}
        )
        return action

    async def build_pending_action(self, action_item: ActionItem) -> TurboAction:
        """
        Validate an action item and turn it into a pending record.

        Action kind and entity types are checked before the cluster is
        queried.
        """
        action_type = scaling_action_type(action_item)
        ClusterObjectResolver.validate_entity_types(action_item)

        target = await asyncio.to_thread(self._resolver.resolve, action_item)
        parent_ref = target.parent_ref

        controller = await asyncio.to_thread(
            self._resolver.find_scaling_controller, parent_ref, target.pod
        )
        original = controller.spec.replicas
        if original is None:
            original = DEFAULT_REPLICAS

        try:
            scale_spec = build_scale_spec(action_type, original, self._scale_delta)
        except ActionValidationError as e:
            raise ActionValidationError(f"{e} for {parent_ref.namespace}/{parent_ref.name}") from e

        content = TurboActionContent(
            action_type=action_type,
            target_object=target.target_object,
            parent_object_ref=parent_ref,
            action_spec=scale_spec,
        )
        action = TurboAction(
            uid=action_item.uuid,
            namespace=parent_ref.namespace,
            content=content,
        )
        logger.debug(f"Horizontal scaling action is built as {action.model_dump()}")
        return action

    async def _horizontal_scale(self, action: TurboAction) -> None:
        content = action.content
        scale_spec = content.action_spec
        if not isinstance(scale_spec, ScaleSpec) or scale_spec.new_replicas < 0:
            raise ActionValidationError(f"Action {action.uid} does not carry a valid scale spec")

        parent_ref = content.parent_object_ref
        if parent_ref is None or not parent_ref.uid:
            raise ActionValidationError(
                f"Action {action.uid}: failed to retrieve the UID of the replication controller "
                f"or replica set"
            )

        self._store.update_status(action.uid, TurboActionStatus.EXECUTING)
        key = parent_ref.uid

        subscription: Optional[PodSubscription] = None
        if content.action_type == TurboActionType.PROVISION:
            subscription = self._broker.subscribe(key)
            logger.info(
                f"Listening for pods created by {parent_ref.kind.value} "
                f"{parent_ref.namespace}/{parent_ref.name}",
                extra={"key": key}
            )

        try:
            await asyncio.to_thread(
                self._mutator.apply_replicas,
                parent_ref,
                content.target_object,
                scale_spec.new_replicas,
            )
            if subscription is None:
                return
            pod = await self._wait_for_pod(subscription, action)
        finally:
            if subscription is not None:
                self._broker.unsubscribe(key, subscription)

        await self._placement.place(pod)

    async def _wait_for_pod(self, subscription: PodSubscription, action: TurboAction):
        parent_ref = action.content.parent_object_ref
        try:
            return await asyncio.wait_for(subscription.receive(), timeout=self._timeout_seconds)
        except asyncio.TimeoutError:
            raise RendezvousTimeoutError(
                f"Timed out after {self._timeout_seconds}s waiting for the pod created by scaling "
                f"{parent_ref.namespace}/{parent_ref.name}; the new replica count stays in place"
            ) from None
