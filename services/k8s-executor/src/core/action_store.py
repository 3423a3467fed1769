"""
Kube Actuator - Action Store
============================

In-memory store of action records for status queries. Records are
only ever created and updated by the executor; when the store is full
the oldest finished records are evicted first.
"""

from datetime import datetime
from threading import Lock
from typing import Optional

from shared.constants import TurboActionStatus, TERMINAL_STATUSES
from shared.schemas.actions import TurboAction
from shared.utils.logging import get_logger

from src.core.errors import ActionValidationError

logger = get_logger(__name__)


class ActionStore:
    """Thread-safe in-memory action record storage."""

    def __init__(self, max_records: int = 500):
        self._actions: dict[str, TurboAction] = {}
        self._in_flight: set[str] = set()
        self._max_records = max_records
        self._lock = Lock()

    def reserve(self, uid: str) -> Optional[TurboAction]:
        """
        Claim ``uid`` for one execution.

        Returns the existing record if the action already executed, in
        which case nothing is claimed. A failed record may be run again.

        Raises:
            ActionValidationError: the action is pending or executing
        """
        with self._lock:
            existing = self._actions.get(uid)
            if uid in self._in_flight:
                raise ActionValidationError(f"Action {uid} is already in progress")
            if existing is not None:
                if existing.status == TurboActionStatus.EXECUTED:
                    return existing
                if existing.status != TurboActionStatus.FAILED:
                    raise ActionValidationError(f"Action {uid} is already {existing.status.value}")
            self._in_flight.add(uid)
            return None

    def release(self, uid: str) -> None:
        with self._lock:
            self._in_flight.discard(uid)

    def add(self, action: TurboAction) -> TurboAction:
        """Store a new record, replacing a finished record with the same UID."""
        with self._lock:
            self._actions.pop(action.uid, None)
            self._actions[action.uid] = action
            self._evict()
            logger.debug(f"Stored action {action.uid}", extra={"status": action.status.value})
            return action

    def get(self, uid: str) -> Optional[TurboAction]:
        return self._actions.get(uid)

    def update_status(
        self,
        uid: str,
        status: TurboActionStatus,
        error_message: Optional[str] = None
    ) -> Optional[TurboAction]:
        """Move a record to ``status``. Finished records are not changed."""
        with self._lock:
            action = self._actions.get(uid)
            if action is None:
                return None
            if action.status in TERMINAL_STATUSES:
                logger.warning(
                    f"Ignoring transition of finished action {uid} to {status.value}",
                    extra={"current": action.status.value}
                )
                return action

            action.status = status
            action.updated_at = datetime.utcnow()
            if error_message is not None:
                action.error_message = error_message
            return action

    def list_actions(
        self,
        status: Optional[TurboActionStatus] = None,
        limit: int = 20
    ) -> list[TurboAction]:
        """Most recent records first, optionally filtered by status."""
        actions = [
            a for a in self._actions.values()
            if status is None or a.status == status
        ]
        actions.sort(key=lambda a: a.created_at, reverse=True)
        return actions[:limit]

    def count(self) -> int:
        return len(self._actions)

    def active_count(self) -> int:
        return sum(1 for a in self._actions.values() if a.status not in TERMINAL_STATUSES)

    def _evict(self) -> None:
        overflow = len(self._actions) - self._max_records
        if overflow <= 0:
            return
        finished = [a for a in self._actions.values() if a.status in TERMINAL_STATUSES]
        finished.sort(key=lambda a: a.created_at)
        for action in finished[:overflow]:
            del self._actions[action.uid]
