"""Wiring of transport, worker pool, poll loop and publisher for one process."""

from typing import Any, Optional

from sqs_dispatch.consumer.dispatcher import Dispatcher
from sqs_dispatch.consumer.handler import LoggingMessageHandler, MessageHandler
from sqs_dispatch.consumer.lifecycle import LifecycleController
from sqs_dispatch.consumer.pool import WorkerPool
from sqs_dispatch.core import get_logger
from sqs_dispatch.core.config import Settings
from sqs_dispatch.models import LifecycleState, QueueEndpoint
from sqs_dispatch.publisher.service import PublishService
from sqs_dispatch.transport.clients import create_s3_client, create_sqs_client
from sqs_dispatch.transport.payload import S3PayloadStore
from sqs_dispatch.transport.sqs import QueueAcknowledger, SqsTransport

logger = get_logger(__name__)


class ConsumerRuntime:
    """Owns the consumer's components and their start/stop order.

    Startup resolves the queue once and starts polling. Shutdown stops
    polling first and only then drains the worker pool, so nothing new is
    submitted while in-flight messages finish.
    """

    def __init__(
        self,
        settings: Settings,
        transport: SqsTransport,
        pool: Optional[WorkerPool] = None,
        handler: Optional[MessageHandler] = None,
    ):
        self.settings = settings
        self.transport = transport
        self.pool = pool or WorkerPool(
            max_concurrency=settings.max_pool_size,
            core_size=settings.core_pool_size,
            queue_capacity=settings.queue_capacity,
        )
        self.handler = handler or LoggingMessageHandler()
        self.endpoint: Optional[QueueEndpoint] = None
        self.controller: Optional[LifecycleController] = None
        self._publisher: Optional[PublishService] = None
        self._drained: Optional[bool] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sqs_client: Optional[Any] = None,
        s3_client: Optional[Any] = None,
        handler: Optional[MessageHandler] = None,
    ) -> "ConsumerRuntime":
        """Build a runtime, creating boto3 clients where none are given."""
        payload_store = None
        if settings.payload_offload_enabled:
            payload_store = S3PayloadStore(
                s3_client or create_s3_client(settings),
                bucket=settings.payload_bucket,
                size_threshold=settings.payload_size_threshold,
                always_offload=settings.payload_always_offload,
                cleanup=settings.payload_cleanup,
            )

        transport = SqsTransport(
            sqs_client or create_sqs_client(settings),
            payload_store=payload_store,
            visibility_timeout=settings.visibility_timeout_seconds,
        )
        return cls(settings, transport, handler=handler)

    @property
    def publisher(self) -> PublishService:
        if self._publisher is None:
            raise RuntimeError("Consumer runtime has not been started")
        return self._publisher

    def startup(self) -> None:
        """Resolve the queue and start polling.

        Raises:
            QueueResolutionError: If the queue cannot be resolved; the
                process must not start.
        """
        if self.controller is not None and self.controller.is_running():
            return

        if self.endpoint is None:
            self.endpoint = self.transport.resolve_queue_url(self.settings.queue_name)

        self._publisher = PublishService(self.transport, self.endpoint)
        dispatcher = Dispatcher(
            self.transport,
            self.endpoint,
            self.pool,
            self.handler,
            acknowledger=QueueAcknowledger(self.transport, self.endpoint),
            poll_interval_seconds=self.settings.poll_interval_seconds,
            wait_seconds=self.settings.receive_wait_seconds,
            batch_ceiling=self.settings.receive_batch_ceiling,
        )
        self.controller = LifecycleController(
            dispatcher,
            stop_timeout_seconds=self.settings.shutdown_grace_seconds,
        )
        self.controller.start()

    def shutdown(self) -> None:
        """Stop polling, then drain in-flight work."""
        logger.info("consumer_shutdown_requested")
        if self.controller is not None:
            self.controller.stop(callback=self.drain)
        else:
            self.drain()

    def drain(self) -> bool:
        """Wait up to the grace period for in-flight tasks; runs once."""
        if self._drained is None:
            self._drained = self.pool.drain_and_await(self.settings.shutdown_grace_seconds)
        return self._drained

    def health(self) -> dict[str, Any]:
        snapshot = self.pool.snapshot()
        state = self.controller.state if self.controller else LifecycleState.STOPPED
        return {
            "status": "ok" if state == LifecycleState.RUNNING else "degraded",
            "consumer": state.value,
            "queue_name": self.settings.queue_name,
            "queue_url": self.endpoint.url if self.endpoint else None,
            "active_tasks": snapshot.active_count,
            "max_concurrency": snapshot.max_concurrency,
        }
