"""Tests for runtime wiring and start/stop ordering."""

import time
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from sqs_dispatch.consumer.pool import WorkerPool
from sqs_dispatch.consumer.runtime import ConsumerRuntime
from sqs_dispatch.core.config import Settings
from sqs_dispatch.core.errors import QueueResolutionError
from sqs_dispatch.models import LifecycleState
from sqs_dispatch.transport.payload import S3PayloadStore

from fakes import QUEUE_URL, ScriptedHandler


def make_settings(**overrides) -> Settings:
    values = {
        "queue_name": "orders",
        "poll_interval_seconds": 0.01,
        "shutdown_grace_seconds": 5,
        "core_pool_size": 2,
        "max_pool_size": 4,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def sqs_client():
    client = MagicMock()
    client.get_queue_url.return_value = {"QueueUrl": QUEUE_URL}
    client.receive_message.return_value = {}
    client.send_message.return_value = {"MessageId": "sent-1"}
    return client


class TestFromSettings:
    """Tests for building a runtime from settings."""

    def test_without_bucket_no_offload(self, sqs_client):
        runtime = ConsumerRuntime.from_settings(make_settings(), sqs_client=sqs_client)

        assert runtime.transport.payload_store is None
        assert runtime.pool.max_concurrency == 4

    def test_with_bucket_builds_payload_store(self, sqs_client):
        s3_client = MagicMock()
        settings = make_settings(payload_bucket="payloads", payload_size_threshold=1024)

        runtime = ConsumerRuntime.from_settings(settings, sqs_client=sqs_client, s3_client=s3_client)

        store = runtime.transport.payload_store
        assert isinstance(store, S3PayloadStore)
        assert store.bucket == "payloads"
        assert store.size_threshold == 1024
        assert store.s3_client is s3_client

    def test_publisher_unavailable_before_startup(self, sqs_client):
        runtime = ConsumerRuntime.from_settings(make_settings(), sqs_client=sqs_client)

        with pytest.raises(RuntimeError):
            runtime.publisher


class TestStartupShutdown:
    """Tests for the start/stop sequence."""

    def test_startup_resolves_once_and_polls(self, sqs_client):
        runtime = ConsumerRuntime.from_settings(make_settings(), sqs_client=sqs_client)

        runtime.startup()
        runtime.startup()
        try:
            deadline = time.monotonic() + 5
            while sqs_client.receive_message.call_count == 0 and time.monotonic() < deadline:
                time.sleep(0.01)

            assert sqs_client.get_queue_url.call_count == 1
            assert sqs_client.receive_message.called
            assert runtime.health()["consumer"] == LifecycleState.RUNNING.value
        finally:
            runtime.shutdown()

    def test_unresolvable_queue_prevents_startup(self, sqs_client):
        sqs_client.get_queue_url.side_effect = ClientError(
            {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "x"}},
            "GetQueueUrl",
        )
        runtime = ConsumerRuntime.from_settings(make_settings(), sqs_client=sqs_client)

        with pytest.raises(QueueResolutionError):
            runtime.startup()

        assert runtime.controller is None
        sqs_client.receive_message.assert_not_called()

    def test_polling_stops_before_drain(self, sqs_client):
        """Shutdown stops the poll loop first and drains the pool afterwards."""
        events = []
        pool = MagicMock(spec=WorkerPool)
        pool.drain_and_await.side_effect = lambda timeout: events.append(("drain", timeout)) or True
        runtime = ConsumerRuntime(make_settings(), MagicMock(), pool=pool)
        controller = MagicMock()

        def stop(callback=None):
            events.append("stop")
            callback()

        controller.stop.side_effect = stop
        runtime.controller = controller

        runtime.shutdown()

        assert events == ["stop", ("drain", 5)]

    def test_shutdown_drains_in_flight_messages(self, sqs_client):
        """Messages received before shutdown finish and are deleted."""
        sqs_client.receive_message.side_effect = [
            {"Messages": [
                {"MessageId": f"msg-{i}", "ReceiptHandle": f"receipt-{i}", "Body": "b"}
                for i in range(3)
            ]},
        ] + [{}] * 10000
        handler = ScriptedHandler()
        runtime = ConsumerRuntime.from_settings(
            make_settings(), sqs_client=sqs_client, handler=handler
        )

        runtime.startup()
        deadline = time.monotonic() + 5
        while sqs_client.delete_message.call_count < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        runtime.shutdown()

        deleted = sorted(
            c.kwargs["ReceiptHandle"] for c in sqs_client.delete_message.call_args_list
        )
        assert deleted == ["receipt-0", "receipt-1", "receipt-2"]
        assert runtime.pool.accepting is False
        assert runtime.health()["consumer"] == LifecycleState.STOPPED.value

    def test_shutdown_without_startup_drains(self, sqs_client):
        runtime = ConsumerRuntime.from_settings(make_settings(), sqs_client=sqs_client)

        runtime.shutdown()
        runtime.shutdown()

        assert runtime.pool.accepting is False


class TestHealth:
    """Tests for the health report."""

    def test_health_before_start(self, sqs_client):
        runtime = ConsumerRuntime.from_settings(make_settings(), sqs_client=sqs_client)

        assert runtime.health() == {
            "status": "degraded",
            "consumer": "stopped",
            "queue_name": "orders",
            "queue_url": None,
            "active_tasks": 0,
            "max_concurrency": 4,
        }
