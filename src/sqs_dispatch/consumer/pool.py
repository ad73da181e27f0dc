"""Fixed-capacity worker pool for message processing tasks."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from sqs_dispatch.core import get_logger
from sqs_dispatch.core.errors import (
    ConfigurationError,
    PoolSaturatedError,
    PoolShutdownError,
)
from sqs_dispatch.core.resilience import get_error_logger
from sqs_dispatch.models import PoolCapacitySnapshot

logger = get_logger(__name__)


class WorkerPool:
    """Thread pool with explicit task accounting and no hidden queueing.

    A task occupies a slot from submit() until it finishes. With
    queue_capacity=0 (the default) every admitted task is executing, and a
    submission beyond max_concurrency is rejected with PoolSaturatedError
    instead of being queued.
    """

    def __init__(
        self,
        max_concurrency: int = 10,
        core_size: Optional[int] = None,
        queue_capacity: int = 0,
        thread_name_prefix: str = "ConsumerThread",
    ):
        """Initialize the pool.

        Args:
            max_concurrency: Maximum number of concurrently executing tasks.
            core_size: Threads expected under steady load; informational,
                threads are started on demand up to max_concurrency.
            queue_capacity: Extra tasks admitted to wait for a thread.
            thread_name_prefix: Prefix for worker thread names.
        """
        if max_concurrency < 1:
            raise ConfigurationError(
                f"max_concurrency must be at least 1, got {max_concurrency}",
                setting="max_pool_size",
            )
        if queue_capacity < 0:
            raise ConfigurationError(
                f"queue_capacity must not be negative, got {queue_capacity}",
                setting="queue_capacity",
            )

        self._max_concurrency = max_concurrency
        self._core_size = min(core_size or max_concurrency, max_concurrency)
        self._queue_capacity = queue_capacity
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrency,
            thread_name_prefix=thread_name_prefix,
        )
        self._condition = threading.Condition()
        self._active = 0
        self._accepting = True

        logger.info(
            "worker_pool_created",
            max_concurrency=max_concurrency,
            core_size=self._core_size,
            queue_capacity=queue_capacity,
        )

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def accepting(self) -> bool:
        with self._condition:
            return self._accepting

    def active_count(self) -> int:
        """Number of admitted tasks that have not finished yet."""
        with self._condition:
            return self._active

    def snapshot(self) -> PoolCapacitySnapshot:
        with self._condition:
            return PoolCapacitySnapshot(
                active_count=self._active,
                max_concurrency=self._max_concurrency,
            )

    def submit(self, task: Callable[[], None]) -> Future:
        """Start a task on a free worker thread.

        Raises:
            PoolSaturatedError: If every slot is taken.
            PoolShutdownError: If the pool is draining or shut down.
        """
        with self._condition:
            if not self._accepting:
                raise PoolShutdownError("Worker pool is no longer accepting tasks")
            limit = self._max_concurrency + self._queue_capacity
            if self._active >= limit:
                raise PoolSaturatedError(
                    "Worker pool is saturated",
                    active_count=self._active,
                    capacity=limit,
                )
            self._active += 1

        try:
            future = self._executor.submit(self._run, task)
        except RuntimeError as e:
            self._release()
            raise PoolShutdownError(f"Worker pool rejected task: {e}") from e
        # A task cancelled before it started never reaches _run
        future.add_done_callback(self._release_if_cancelled)
        return future

    def drain_and_await(self, timeout_seconds: float) -> bool:
        """Stop accepting tasks and wait for in-flight ones to finish.

        Args:
            timeout_seconds: Longest time to wait for in-flight tasks.

        Returns:
            True if every task finished, False if some were abandoned.
        """
        with self._condition:
            self._accepting = False
            in_flight = self._active

        logger.info("worker_pool_draining", in_flight=in_flight, timeout_seconds=timeout_seconds)

        with self._condition:
            drained = self._condition.wait_for(lambda: self._active == 0, timeout=timeout_seconds)
            remaining = self._active

        # Threads still running abandoned tasks are left to finish on their own
        self._executor.shutdown(wait=drained, cancel_futures=True)

        if drained:
            logger.info("worker_pool_drained")
        else:
            running = self.active_count()
            logger.warning(
                "pool_drain_timeout",
                abandoned_tasks=running,
                cancelled_tasks=max(remaining - running, 0),
                timeout_seconds=timeout_seconds,
            )
        return drained

    def _run(self, task: Callable[[], None]) -> None:
        try:
            task()
        except Exception as e:
            get_error_logger().log_error(e, "worker_pool")
        finally:
            self._release()

    def _release_if_cancelled(self, future: Future) -> None:
        if future.cancelled():
            self._release()

    def _release(self) -> None:
        with self._condition:
            self._active -= 1
            self._condition.notify_all()
