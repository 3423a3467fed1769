"""
Kube Actuator - Replica Mutator Tests
=====================================

Unit tests for writing the new desired replica count.
"""

import pytest
from unittest.mock import MagicMock

from kubernetes.client.rest import ApiException

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from shared.constants import ObjectKind
from shared.schemas.actions import ParentObjectRef, TargetObject
from src.core.errors import ActionValidationError, MutationError, ResolutionError
from src.core.k8s_client import K8sClient
from src.core.replica_mutator import ReplicaMutator
from src.core.resolver import ClusterObjectResolver

from k8s_objects import make_deployment, make_pod, make_rc


RC_REF = ParentObjectRef(uid="rc-uid-1", namespace="default", name="web-rc", kind=ObjectKind.REPLICATION_CONTROLLER)
RS_REF = ParentObjectRef(uid="rs-uid-1", namespace="default", name="web-7d4b9", kind=ObjectKind.REPLICA_SET)
TARGET = TargetObject(uid="pod-uid-1", namespace="default", name="web-7d4b9-abcde")


class TestReplicaMutator:
    """Tests for ReplicaMutator."""

    @pytest.fixture
    def k8s(self):
        k8s = MagicMock(spec=K8sClient)
        k8s.read_pod.return_value = make_pod()
        k8s.replace_replication_controller.side_effect = lambda rc: rc
        k8s.replace_deployment.side_effect = lambda d: d
        return k8s

    @pytest.fixture
    def resolver(self):
        return MagicMock(spec=ClusterObjectResolver)

    @pytest.fixture
    def mutator(self, k8s, resolver):
        return ReplicaMutator(k8s, resolver)

    def test_scale_replication_controller(self, mutator, k8s, resolver):
        rc = make_rc(replicas=2)
        resolver.find_scaling_controller.return_value = rc

        mutator.apply_replicas(RC_REF, TARGET, 3)

        resolver.find_scaling_controller.assert_called_once_with(RC_REF, None)
        k8s.replace_replication_controller.assert_called_once_with(rc)
        assert rc.spec.replicas == 3
        k8s.read_pod.assert_not_called()

    def test_scale_replica_set_updates_deployment(self, mutator, k8s, resolver):
        deployment = make_deployment(replicas=3)
        resolver.find_scaling_controller.return_value = deployment

        mutator.apply_replicas(RS_REF, TARGET, 2)

        k8s.read_pod.assert_called_once_with("default", "web-7d4b9-abcde")
        k8s.replace_deployment.assert_called_once_with(deployment)
        assert deployment.spec.replicas == 2

    def test_scale_to_zero_allowed(self, mutator, k8s, resolver):
        resolver.find_scaling_controller.return_value = make_rc(replicas=1)

        mutator.apply_replicas(RC_REF, TARGET, 0)

        assert k8s.replace_replication_controller.call_args[0][0].spec.replicas == 0

    def test_negative_replicas_rejected(self, mutator, k8s, resolver):
        with pytest.raises(ActionValidationError):
            mutator.apply_replicas(RC_REF, TARGET, -1)

        resolver.find_scaling_controller.assert_not_called()
        k8s.replace_replication_controller.assert_not_called()

    def test_unsupported_parent_kind(self, mutator, k8s):
        ref = ParentObjectRef(uid="d", namespace="default", name="web", kind=ObjectKind.DEPLOYMENT)

        with pytest.raises(ActionValidationError):
            mutator.apply_replicas(ref, TARGET, 2)

        k8s.replace_deployment.assert_not_called()

    def test_conflict_surfaces_as_mutation_error(self, mutator, k8s, resolver):
        resolver.find_scaling_controller.return_value = make_rc()
        k8s.replace_replication_controller.side_effect = ApiException(status=409, reason="Conflict")

        with pytest.raises(MutationError) as exc_info:
            mutator.apply_replicas(RC_REF, TARGET, 3)

        assert exc_info.value.error_type == "mutation"
        assert exc_info.value.mutation_committed is False
        assert k8s.replace_replication_controller.call_count == 1

    def test_vanished_pod(self, mutator, k8s):
        k8s.read_pod.side_effect = ApiException(status=404, reason="Not Found")

        with pytest.raises(MutationError):
            mutator.apply_replicas(RS_REF, TARGET, 4)

        k8s.replace_deployment.assert_not_called()

    def test_controller_lookup_failure(self, mutator, k8s, resolver):
        resolver.find_scaling_controller.side_effect = ResolutionError("no deployment")

        with pytest.raises(MutationError):
            mutator.apply_replicas(RS_REF, TARGET, 4)

        k8s.replace_deployment.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
