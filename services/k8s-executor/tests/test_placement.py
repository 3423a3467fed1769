"""
Kube Actuator - Placement Tests
===============================

Unit tests for binding new pods to nodes.
"""

import pytest
from unittest.mock import MagicMock

from kubernetes.client.rest import ApiException

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.core.errors import PlacementError
from src.core.k8s_client import K8sClient
from src.core.placement import NodeBindingPlacement

from k8s_objects import make_node, make_pod


class TestNodeBindingPlacement:
    """Tests for NodeBindingPlacement."""

    @pytest.fixture
    def k8s(self, pod):
        k8s = MagicMock(spec=K8sClient)
        k8s.read_pod.return_value = pod
        k8s.list_nodes.return_value = [make_node("node-a"), make_node("node-b")]
        k8s.list_all_pods.return_value = [
            make_pod(name="p1", uid="p1", node_name="node-a"),
            make_pod(name="p2", uid="p2", node_name="node-a"),
            make_pod(name="p3", uid="p3", node_name="node-b"),
        ]
        return k8s

    @pytest.fixture
    def placement(self, k8s):
        return NodeBindingPlacement(k8s)

    @pytest.mark.asyncio
    async def test_binds_to_least_loaded_node(self, placement, k8s, pod):
        await placement.place(pod)

        k8s.bind_pod.assert_called_once_with(pod, "node-b")

    @pytest.mark.asyncio
    async def test_skips_unready_and_cordoned_nodes(self, placement, k8s, pod):
        k8s.list_nodes.return_value = [
            make_node("node-a"),
            make_node("node-b", ready=False),
            make_node("node-c", unschedulable=True),
        ]

        await placement.place(pod)

        k8s.bind_pod.assert_called_once_with(pod, "node-a")

    @pytest.mark.asyncio
    async def test_already_placed_pod_left_alone(self, placement, k8s, pod):
        k8s.read_pod.return_value = make_pod(node_name="node-a")

        await placement.place(pod)

        k8s.bind_pod.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_available_node(self, placement, k8s, pod):
        k8s.list_nodes.return_value = [make_node("node-a", ready=False)]

        with pytest.raises(PlacementError) as exc_info:
            await placement.place(pod)

        assert exc_info.value.mutation_committed is True
        k8s.bind_pod.assert_not_called()

    @pytest.mark.asyncio
    async def test_binding_rejected(self, placement, k8s, pod):
        k8s.bind_pod.side_effect = ApiException(status=409, reason="Conflict")

        with pytest.raises(PlacementError) as exc_info:
            await placement.place(pod)

        assert exc_info.value.error_type == "placement"

    @pytest.mark.asyncio
    async def test_lost_binding_race_is_not_a_failure(self, placement, k8s, pod):
        """Another scheduler binds the pod between the check and our binding."""
        k8s.read_pod.side_effect = [pod, make_pod(node_name="node-a")]
        k8s.bind_pod.side_effect = ApiException(status=409, reason="Conflict")

        await placement.place(pod)

        k8s.bind_pod.assert_called_once_with(pod, "node-b")
        assert k8s.read_pod.call_count == 2

    @pytest.mark.asyncio
    async def test_conflict_on_unbound_pod_fails(self, placement, k8s, pod):
        k8s.bind_pod.side_effect = ApiException(status=409, reason="Conflict")

        with pytest.raises(PlacementError):
            await placement.place(pod)

        assert k8s.read_pod.call_count == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
