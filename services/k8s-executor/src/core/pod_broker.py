"""
Kube Actuator - Pod-Creation Broker
===================================

Keyed rendezvous between the pod watcher, which publishes newly seen
pods under the UID of their owning controller, and scale-out actions,
which wait for the pod their replica change produced.

- One live subscription per key is expected; the action that is
  scaling a controller owns that controller's key until it returns.
- A publish with no subscriber is dropped. Nothing is queued.
- Each subscription receives at most one pod.

Subscriptions wrap an asyncio future on the subscriber's event loop.
The watcher runs in a thread and goes through ``publish_threadsafe``.
"""

import asyncio
import threading
from typing import Optional

from kubernetes.client import V1Pod

from shared.utils.logging import get_logger

from src.core.errors import BrokerClosedError

logger = get_logger(__name__)


class PodSubscription:
    """Single-shot receiver for the first pod published under ``key``."""

    def __init__(self, key: str, loop: asyncio.AbstractEventLoop):
        self.key = key
        self._loop = loop
        self._future: asyncio.Future = loop.create_future()

    @property
    def done(self) -> bool:
        return self._future.done()

    async def receive(self) -> V1Pod:
        """
        Wait for the pod.

        Raises:
            BrokerClosedError: the broker was closed before a pod arrived
        """
        return await self._future

    def _deliver(self, pod: V1Pod) -> bool:
        if self._future.done():
            return False
        self._future.set_result(pod)
        return True

    def _fail(self, exc: Exception) -> None:
        if not self._future.done():
            self._future.set_exception(exc)


class PodBroker:
    """
    Process-wide pod rendezvous keyed by controller UID.

    Created once by the application and passed to the executor and the
    pod watcher.
    """

    def __init__(self):
        self._subscriptions: dict[str, PodSubscription] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, key: str) -> PodSubscription:
        """
        Register interest in the next pod published for ``key``.

        Must be called from a running event loop.
        """
        subscription = PodSubscription(key, asyncio.get_running_loop())
        with self._lock:
            if self._closed:
                raise BrokerClosedError(
                    f"Pod broker is closed, cannot subscribe to {key}", mutation_committed=False
                )
            previous = self._subscriptions.get(key)
            if previous is not None and not previous.done:
                logger.warning(f"Replacing a live subscription for key {key}", extra={"key": key})
            self._subscriptions[key] = subscription

        logger.debug(f"Subscribed to pods created by {key}", extra={"key": key})
        return subscription

    def unsubscribe(self, key: str, subscription: PodSubscription) -> None:
        """Release ``key`` if ``subscription`` still holds it. Safe to call twice."""
        with self._lock:
            if self._subscriptions.get(key) is subscription:
                del self._subscriptions[key]
                logger.debug(f"Unsubscribed from {key}", extra={"key": key})

    def publish(self, key: str, pod: V1Pod) -> bool:
        """
        Hand ``pod`` to the subscriber of ``key``.

        Must be called on the subscriber's event loop. Returns False when
        nobody is waiting or the subscriber already got a pod.
        """
        with self._lock:
            subscription = self._subscriptions.get(key)
        if subscription is None:
            return False
        delivered = subscription._deliver(pod)
        if delivered:
            logger.info(
                f"Delivered pod {pod.metadata.namespace}/{pod.metadata.name} to subscriber of {key}",
                extra={"key": key}
            )
        return delivered

    def publish_threadsafe(self, key: str, pod: V1Pod) -> bool:
        """
        Publish from a thread other than the subscriber's event loop.

        Returns whether a subscriber was waiting when the pod was handed
        off; the delivery itself runs on the subscriber's loop.
        """
        with self._lock:
            subscription = self._subscriptions.get(key)
        if subscription is None or subscription.done:
            return False
        try:
            subscription._loop.call_soon_threadsafe(self.publish, key, pod)
        except RuntimeError:
            # subscriber's loop is already closed
            logger.warning(f"Dropping pod for {key}: subscriber loop is closed", extra={"key": key})
            return False
        return True

    def has_subscriber(self, key: str) -> bool:
        with self._lock:
            return key in self._subscriptions

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """Tear down the broker; waiting subscribers get BrokerClosedError."""
        with self._lock:
            self._closed = True
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()

        for subscription in subscriptions:
            exc = BrokerClosedError(f"Pod broker closed while waiting on {subscription.key}")
            try:
                subscription._loop.call_soon_threadsafe(subscription._fail, exc)
            except RuntimeError:
                # loop already closed, nothing is waiting on it
                continue
        logger.info(f"Pod broker closed, released {len(subscriptions)} subscriptions")
