"""Capacity-aware poll loop.

Each iteration sizes its receive call to the worker pool's free slots, so
every fetched message can start processing immediately and no message sits
in memory while its visibility timeout runs down. When the pool is full the
iteration skips the receive call altogether.
"""

import threading
from dataclasses import dataclass
from functools import partial
from typing import Optional

from sqs_dispatch.consumer.handler import MessageHandler
from sqs_dispatch.consumer.pool import WorkerPool
from sqs_dispatch.core import get_logger
from sqs_dispatch.core.errors import (
    ConfigurationError,
    MessageProcessingError,
    PoolSaturatedError,
    PoolShutdownError,
)
from sqs_dispatch.core.resilience import get_error_logger
from sqs_dispatch.models import Message, QueueEndpoint
from sqs_dispatch.transport.sqs import (
    MAX_RECEIVE_BATCH,
    Acknowledger,
    QueueAcknowledger,
    SqsTransport,
)

logger = get_logger(__name__)


@dataclass
class PollOutcome:
    """What a single poll iteration did."""

    requested: int = 0
    received: int = 0
    dispatched: int = 0
    already_in_flight: int = 0
    skipped: bool = False
    failed: bool = False


class Dispatcher:
    """Fetches messages and hands them to the worker pool."""

    def __init__(
        self,
        transport: SqsTransport,
        endpoint: QueueEndpoint,
        pool: WorkerPool,
        handler: MessageHandler,
        acknowledger: Optional[Acknowledger] = None,
        poll_interval_seconds: float = 1.0,
        wait_seconds: int = 0,
        batch_ceiling: int = MAX_RECEIVE_BATCH,
    ):
        """Initialize the dispatcher.

        Args:
            transport: Queue transport used for receive.
            endpoint: Resolved queue to poll.
            pool: Worker pool executing message tasks.
            handler: Message handler invoked by each task.
            acknowledger: Deletes messages whose handler succeeded.
            poll_interval_seconds: Sleep before each iteration.
            wait_seconds: Long-poll wait passed to receive.
            batch_ceiling: Transport per-call receive maximum.
        """
        if not 1 <= batch_ceiling <= MAX_RECEIVE_BATCH:
            raise ConfigurationError(
                f"batch_ceiling must be between 1 and {MAX_RECEIVE_BATCH}, got {batch_ceiling}",
                setting="receive_batch_ceiling",
            )

        self.transport = transport
        self.endpoint = endpoint
        self.pool = pool
        self.handler = handler
        self.acknowledger = acknowledger or QueueAcknowledger(transport, endpoint)
        self.poll_interval_seconds = poll_interval_seconds
        self.wait_seconds = wait_seconds
        self.batch_ceiling = batch_ceiling
        self._iterations = 0
        self._in_flight_lock = threading.Lock()
        self._in_flight: set[str] = set()

    @property
    def iterations(self) -> int:
        """Number of poll iterations run so far."""
        return self._iterations

    def run(self, stop_event: threading.Event) -> None:
        """Poll until stop_event is set.

        A stop request takes effect before the next iteration; the one in
        progress always completes.
        """
        logger.info(
            "poll_loop_started",
            queue_url=self.endpoint.url,
            max_concurrency=self.pool.max_concurrency,
            poll_interval_seconds=self.poll_interval_seconds,
        )
        try:
            while not stop_event.is_set():
                if stop_event.wait(self.poll_interval_seconds):
                    break
                self.run_once()
        finally:
            logger.info("poll_loop_exited", iterations=self._iterations)

    def run_once(self) -> PollOutcome:
        """Run one poll iteration.

        Never raises: a failed iteration is logged and the loop carries on.
        """
        self._iterations += 1
        outcome = PollOutcome()

        try:
            snapshot = self.pool.snapshot()
            if snapshot.saturated:
                outcome.skipped = True
                logger.debug(
                    "poll_skipped_pool_saturated",
                    active_count=snapshot.active_count,
                    max_concurrency=snapshot.max_concurrency,
                )
                return outcome

            fetch_count = snapshot.fetch_count(self.batch_ceiling)
            outcome.requested = fetch_count
            messages = self.transport.receive(self.endpoint, fetch_count, self.wait_seconds)
            outcome.received = len(messages)
            if not messages:
                return outcome

            if len(messages) > fetch_count:
                logger.warning(
                    "receive_returned_excess",
                    requested=fetch_count,
                    received=len(messages),
                    undispatched=[m.message_id for m in messages[fetch_count:]],
                )
                messages = messages[:fetch_count]

            logger.info(
                "messages_received",
                count=len(messages),
                message_ids=[m.message_id for m in messages],
            )

            for message in messages:
                if not self._claim(message):
                    outcome.already_in_flight += 1
                    logger.warning(
                        "message_already_in_flight",
                        message_id=message.message_id,
                        receive_count=message.receive_count,
                    )
                    continue
                try:
                    self.pool.submit(partial(self._process, message))
                except (PoolSaturatedError, PoolShutdownError) as e:
                    self._release(message)
                    # The rest of the batch is redelivered after its visibility timeout
                    get_error_logger().log_error(
                        e,
                        "dispatcher",
                        details={"message_id": message.message_id},
                    )
                    break
                outcome.dispatched += 1

        except Exception as e:
            outcome.failed = True
            get_error_logger().log_error(
                e,
                "dispatcher",
                details={"queue_url": self.endpoint.url, "iteration": self._iterations},
            )

        return outcome

    def _claim(self, message: Message) -> bool:
        """Mark a message id as in flight; False if it already is."""
        with self._in_flight_lock:
            if message.message_id in self._in_flight:
                return False
            self._in_flight.add(message.message_id)
            return True

    def _release(self, message: Message) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(message.message_id)

    def _process(self, message: Message) -> None:
        try:
            self._handle(message)
        finally:
            self._release(message)

    def _handle(self, message: Message) -> None:
        log = logger.bind(message_id=message.message_id)

        try:
            succeeded = self.handler.process(message)
        except Exception as e:
            get_error_logger().log_error(
                e,
                "message_handler",
                details={
                    "message_id": message.message_id,
                    "receive_count": message.receive_count,
                },
            )
            return

        if not succeeded:
            get_error_logger().log_error(
                MessageProcessingError(
                    "Handler reported failure", message_id=message.message_id
                ),
                "message_handler",
                details={
                    "message_id": message.message_id,
                    "receive_count": message.receive_count,
                },
            )
            return

        try:
            if self.acknowledger.ack(message):
                log.debug("message_acknowledged")
        except Exception as e:
            get_error_logger().log_error(
                e,
                "acknowledger",
                details={"message_id": message.message_id},
            )
