"""
Kube Actuator - Pod Watcher
===========================

Watches the cluster for newly created, not yet placed pods and
publishes each one to the pod broker under the UID of the controller
that created it. Runs in a background thread; the watch is re-opened
whenever the API server closes it.
"""

import threading
from typing import Any, Optional

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from shared.constants import Timing
from shared.utils.logging import get_logger

from src.core.k8s_client import K8sClient, controller_uid
from src.core.pod_broker import PodBroker

logger = get_logger(__name__)

# Server-side watch timeout; the stream is re-opened after it expires
WATCH_TIMEOUT_SECONDS = 300


class PodWatcher:
    """Feeds newly created pods into the broker."""

    def __init__(
        self,
        k8s: K8sClient,
        broker: PodBroker,
        namespace: str = "",
        scheduler_name: str = "",
    ):
        self._k8s = k8s
        self._broker = broker
        self._namespace = namespace
        self._scheduler_name = scheduler_name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning("Pod watcher already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="pod-watcher", daemon=True)
        self._thread.start()
        logger.info(
            "Pod watcher started",
            extra={"namespace": self._namespace or "*", "scheduler_name": self._scheduler_name or "*"}
        )

    def stop(self, timeout: float = 10.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        logger.info("Pod watcher stopped")

    def handle_event(self, event: dict[str, Any]) -> bool:
        """
        Publish the pod of an ADDED event if it still has to be placed.

        Returns whether a waiting subscriber took it.
        """
        if event.get("type") != "ADDED":
            return False

        pod = event.get("object")
        if pod is None or pod.spec is None or pod.spec.node_name:
            return False
        if self._scheduler_name and pod.spec.scheduler_name != self._scheduler_name:
            return False

        key = controller_uid(pod)
        if key is None:
            return False

        delivered = self._broker.publish_threadsafe(key, pod)
        logger.debug(
            f"New pod {pod.metadata.namespace}/{pod.metadata.name} from {key}",
            extra={"key": key, "delivered": delivered}
        )
        return delivered

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                for event in self._k8s.watch_pods(self._namespace, timeout_seconds=WATCH_TIMEOUT_SECONDS):
                    if self._stop.is_set():
                        return
                    self.handle_event(event)
            except (ApiException, Urllib3HTTPError) as e:
                logger.error(f"Pod watch failed, restarting: {e}")
                self._stop.wait(Timing.WATCH_RESTART_DELAY_SECONDS)
            except Exception as e:
                logger.error(f"Unexpected error in pod watch, restarting: {e}", exc_info=True)
                self._stop.wait(Timing.WATCH_RESTART_DELAY_SECONDS)
