"""Start/stop control of the poll loop."""

import threading
from typing import Callable, Optional

from sqs_dispatch.consumer.dispatcher import Dispatcher
from sqs_dispatch.core import get_logger
from sqs_dispatch.models import LifecycleState

logger = get_logger(__name__)


class LifecycleController:
    """Runs the dispatcher on its own thread, apart from the worker pool.

    State changes happen under a lock; the stop request itself is a
    threading.Event, so the poll thread reads it without locking.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        stop_timeout_seconds: Optional[float] = 300,
        thread_name: str = "PollThread",
    ):
        """Initialize the controller.

        Args:
            dispatcher: Poll loop to run.
            stop_timeout_seconds: Longest time stop() waits for the poll
                thread; None waits indefinitely.
            thread_name: Name of the poll thread.
        """
        self.dispatcher = dispatcher
        self.stop_timeout_seconds = stop_timeout_seconds
        self.thread_name = thread_name
        self._lock = threading.Lock()
        self._state = LifecycleState.STOPPED
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> LifecycleState:
        with self._lock:
            return self._state

    def is_running(self) -> bool:
        return self.state == LifecycleState.RUNNING

    def start(self) -> bool:
        """Launch the poll loop.

        Returns:
            True if polling started, False if it was already active.
        """
        with self._lock:
            if self._state != LifecycleState.STOPPED:
                logger.warning("consumer_already_started", state=self._state.value)
                return False

            self._state = LifecycleState.STARTING
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name=self.thread_name,
                daemon=True,
            )
            self._thread.start()
            self._state = LifecycleState.RUNNING

        logger.info("consumer_started", queue_url=self.dispatcher.endpoint.url)
        return True

    def stop(self, callback: Optional[Callable[[], None]] = None) -> None:
        """Stop polling and wait for the poll thread to exit.

        Safe to call repeatedly. The callback runs after polling has ceased,
        whether or not the poll thread exited within the timeout.
        """
        with self._lock:
            thread = self._thread
            if thread is not None:
                self._state = LifecycleState.STOPPING
            self._stop_event.set()

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.stop_timeout_seconds)
            if thread.is_alive():
                logger.error(
                    "poll_loop_stop_timeout",
                    timeout_seconds=self.stop_timeout_seconds,
                )

        with self._lock:
            if self._thread is thread:
                self._thread = None
                self._state = LifecycleState.STOPPED

        if thread is not None:
            logger.info("consumer_stopped", iterations=self.dispatcher.iterations)

        if callback is not None:
            callback()

    def _run(self, stop_event: threading.Event) -> None:
        try:
            self.dispatcher.run(stop_event)
        except Exception:
            logger.exception("poll_loop_crashed")
        finally:
            with self._lock:
                # Exited without stop(): record that polling has ended
                if self._thread is threading.current_thread() and not stop_event.is_set():
                    self._thread = None
                    self._state = LifecycleState.STOPPED
