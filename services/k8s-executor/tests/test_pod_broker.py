"""
Kube Actuator - Pod Broker Tests
================================

Unit tests for the pod-creation rendezvous.
"""

import asyncio

import pytest

import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.core.errors import BrokerClosedError
from src.core.pod_broker import PodBroker

from k8s_objects import make_pod


class TestPodBroker:
    """Tests for subscribe / publish / unsubscribe."""

    @pytest.fixture
    def broker(self):
        return PodBroker()

    def test_publish_without_subscriber_is_dropped(self, broker):
        assert broker.publish("rs-uid-1", make_pod()) is False
        assert broker.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_subscriber_receives_published_pod(self, broker):
        pod = make_pod()
        subscription = broker.subscribe("rs-uid-1")

        assert broker.publish("rs-uid-1", pod) is True
        received = await asyncio.wait_for(subscription.receive(), timeout=1)

        assert received is pod
        assert subscription.done

    @pytest.mark.asyncio
    async def test_at_most_one_pod_per_subscription(self, broker):
        first = make_pod(name="web-1", uid="pod-a")
        second = make_pod(name="web-2", uid="pod-b")
        subscription = broker.subscribe("rs-uid-1")

        assert broker.publish("rs-uid-1", first) is True
        assert broker.publish("rs-uid-1", second) is False

        assert await subscription.receive() is first

    @pytest.mark.asyncio
    async def test_publish_other_key_not_delivered(self, broker):
        subscription = broker.subscribe("rs-uid-1")

        assert broker.publish("rs-uid-2", make_pod()) is False
        assert not subscription.done

    @pytest.mark.asyncio
    async def test_unsubscribe_releases_key(self, broker):
        subscription = broker.subscribe("rs-uid-1")
        broker.unsubscribe("rs-uid-1", subscription)

        assert not broker.has_subscriber("rs-uid-1")
        assert broker.publish("rs-uid-1", make_pod()) is False

        # Idempotent
        broker.unsubscribe("rs-uid-1", subscription)

    @pytest.mark.asyncio
    async def test_stale_unsubscribe_keeps_newer_subscription(self, broker):
        old = broker.subscribe("rs-uid-1")
        new = broker.subscribe("rs-uid-1")

        broker.unsubscribe("rs-uid-1", old)

        assert broker.has_subscriber("rs-uid-1")
        assert broker.publish("rs-uid-1", make_pod()) is True
        assert new.done
        assert not old.done

    @pytest.mark.asyncio
    async def test_publish_threadsafe_from_watcher_thread(self, broker):
        pod = make_pod()
        subscription = broker.subscribe("rs-uid-1")

        handed_off = await asyncio.to_thread(broker.publish_threadsafe, "rs-uid-1", pod)
        received = await asyncio.wait_for(subscription.receive(), timeout=1)

        assert handed_off is True
        assert received is pod

    @pytest.mark.asyncio
    async def test_publish_threadsafe_without_subscriber(self, broker):
        handed_off = await asyncio.to_thread(broker.publish_threadsafe, "rs-uid-1", make_pod())
        assert handed_off is False

    @pytest.mark.asyncio
    async def test_timed_out_subscription_gets_nothing_late(self, broker):
        subscription = broker.subscribe("rs-uid-1")

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(subscription.receive(), timeout=0.05)
        broker.unsubscribe("rs-uid-1", subscription)

        assert broker.publish("rs-uid-1", make_pod()) is False

    @pytest.mark.asyncio
    async def test_close_fails_waiting_subscribers(self, broker):
        subscription = broker.subscribe("rs-uid-1")

        broker.close()

        with pytest.raises(BrokerClosedError):
            await asyncio.wait_for(subscription.receive(), timeout=1)
        assert broker.closed
        assert broker.subscriber_count() == 0

    @pytest.mark.asyncio
    async def test_subscribe_after_close_rejected(self, broker):
        broker.close()

        with pytest.raises(BrokerClosedError) as exc_info:
            broker.subscribe("rs-uid-1")

        assert exc_info.value.mutation_committed is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
