"""
Kube Actuator - K8s Executor API Tests
======================================

Tests for the HTTP surface with the executor components replaced by
mocks; the application lifespan is not run.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shared.constants import ObjectKind, TurboActionStatus, TurboActionType
from shared.schemas.actions import ParentObjectRef, ScaleSpec, TargetObject, TurboAction, TurboActionContent
from src.core.action_store import ActionStore
from src.core.errors import ActionValidationError, RendezvousTimeoutError
from src.main import app


ACTION_ITEM = {
    "uuid": "action-1",
    "action_type": "PROVISION",
    "target_se": {
        "id": "pod-uid-1",
        "display_name": "default/web-7d4b9-abcde",
        "entity_type": "CONTAINER_POD",
    },
}


def _record(status=TurboActionStatus.EXECUTED):
    return TurboAction(
        uid="action-1",
        namespace="default",
        content=TurboActionContent(
            action_type=TurboActionType.PROVISION,
            target_object=TargetObject(uid="pod-uid-1", namespace="default", name="web-7d4b9-abcde"),
            parent_object_ref=ParentObjectRef(
                uid="rs-uid-1", namespace="default", name="web-7d4b9", kind=ObjectKind.REPLICA_SET
            ),
            action_spec=ScaleSpec(original_replicas=2, new_replicas=3),
        ),
        status=status,
    )


class TestActionRoutes:
    """Tests for /api/v1/actions endpoints."""

    @pytest.fixture
    def store(self):
        return ActionStore()

    @pytest.fixture
    def scaler(self):
        scaler = MagicMock()
        scaler.execute = AsyncMock()
        return scaler

    @pytest.fixture
    def reporter(self):
        reporter = MagicMock()
        reporter.report = AsyncMock(return_value=True)
        return reporter

    @pytest.fixture
    def client(self, store, scaler, reporter):
        app.state.store = store
        app.state.scaler = scaler
        app.state.reporter = reporter
        app.state.broker = MagicMock(subscriber_count=MagicMock(return_value=0))
        app.state.watcher = MagicMock(is_running=True)
        return TestClient(app)

    def test_execute_success(self, client, scaler, reporter):
        record = _record()
        scaler.execute.return_value = record

        response = client.post("/api/v1/actions/execute", json={"action_item": ACTION_ITEM})

        assert response.status_code == 200
        data = response.json()
        assert data["action_uid"] == "action-1"
        assert data["status"] == "executed"
        assert data["error_type"] is None
        assert data["action"]["content"]["action_spec"] == {"original_replicas": 2, "new_replicas": 3}
        assert scaler.execute.await_args.args[0].uuid == "action-1"
        reporter.report.assert_awaited_once_with(record)

    def test_execute_failure_after_mutation(self, client, scaler, store, reporter):
        failed = store.add(_record(TurboActionStatus.FAILED))
        scaler.execute.side_effect = RendezvousTimeoutError("Timed out after 300s")

        response = client.post("/api/v1/actions/execute", json={"action_item": ACTION_ITEM})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "failed"
        assert data["error_type"] == "rendezvous"
        assert data["mutation_committed"] is True
        assert data["message"] == "Timed out after 300s"
        reporter.report.assert_awaited_once_with(failed)

    def test_execute_validation_failure_without_record(self, client, scaler, reporter):
        scaler.execute.side_effect = ActionValidationError("Wrong entity type for scaling")

        response = client.post("/api/v1/actions/execute", json={"action_item": ACTION_ITEM})

        data = response.json()
        assert data["status"] == "failed"
        assert data["error_type"] == "validation"
        assert data["action"] is None
        reporter.report.assert_not_called()

    def test_execute_rejects_malformed_item(self, client, scaler):
        item = dict(ACTION_ITEM, action_type="TELEPORT")

        response = client.post("/api/v1/actions/execute", json={"action_item": item})

        assert response.status_code == 422
        scaler.execute.assert_not_called()

    def test_list_actions(self, client, store):
        store.add(_record())

        response = client.get("/api/v1/actions", params={"status": "executed"})

        data = response.json()
        assert data["count"] == 1
        assert data["active"] == 0
        assert data["actions"][0]["uid"] == "action-1"

    def test_get_action(self, client, store):
        store.add(_record())

        response = client.get("/api/v1/actions/action-1")

        assert response.status_code == 200
        assert response.json()["status"] == "executed"

    def test_get_missing_action(self, client):
        response = client.get("/api/v1/actions/nope")

        assert response.status_code == 404


class TestHealthRoutes:
    """Tests for health endpoints and middleware."""

    @pytest.fixture
    def client(self):
        app.state.store = ActionStore()
        app.state.broker = MagicMock(subscriber_count=MagicMock(return_value=2))
        app.state.watcher = MagicMock(is_running=True)
        return TestClient(app)

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        data = client.get("/ready").json()

        assert data["status"] == "ready"
        assert data["pending_rendezvous"] == 2

    def test_correlation_id_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "corr-123"})

        assert response.headers["X-Correlation-ID"] == "corr-123"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
