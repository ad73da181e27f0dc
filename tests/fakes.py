"""Test doubles for the transport, pool, handler and acknowledger."""

import threading
from typing import Callable, Optional, Union

from sqs_dispatch.models import Message, PoolCapacitySnapshot

QUEUE_URL = "https://sqs.ap-northeast-2.amazonaws.com/123456789012/orders"


def make_message(index: int, body: Optional[str] = None) -> Message:
    """Build a message with a predictable id and receipt handle."""
    return Message(
        message_id=f"msg-{index}",
        receipt_handle=f"receipt-{index}",
        body=body if body is not None else f"body-{index}",
        system_attributes={"ApproximateReceiveCount": "1"},
    )


class FakeTransport:
    """Records receive calls and serves pre-loaded batches."""

    def __init__(self, batches: Optional[list] = None):
        self.batches = list(batches or [])
        self.receive_calls: list[int] = []
        self.receive_error: Optional[Exception] = None

    def receive(self, endpoint, max_messages, wait_seconds=0):
        self.receive_calls.append(max_messages)
        if self.receive_error is not None:
            raise self.receive_error
        if self.batches:
            return self.batches.pop(0)
        return []


class RecordingAcknowledger:
    """Records acknowledged messages."""

    def __init__(self, error: Optional[Exception] = None):
        self._lock = threading.Lock()
        self.acked: list[Message] = []
        self.error = error

    def ack(self, message: Message) -> bool:
        if self.error is not None:
            raise self.error
        with self._lock:
            self.acked.append(message)
        return True

    @property
    def receipt_handles(self) -> list[str]:
        with self._lock:
            return [m.receipt_handle for m in self.acked]


class ScriptedHandler:
    """Returns a scripted outcome per message id (default success).

    An outcome may be True, False or an exception instance to raise.
    """

    def __init__(self, outcomes: Optional[dict[str, Union[bool, Exception]]] = None):
        self.outcomes = outcomes or {}
        self._lock = threading.Lock()
        self.processed: list[str] = []

    def process(self, message: Message) -> bool:
        with self._lock:
            self.processed.append(message.message_id)
        outcome = self.outcomes.get(message.message_id, True)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class InlinePool:
    """Pool stand-in with a settable active count that runs tasks inline."""

    def __init__(self, max_concurrency: int = 10, active: int = 0):
        self.max_concurrency = max_concurrency
        self.active = active
        self.submitted = 0

    def snapshot(self) -> PoolCapacitySnapshot:
        return PoolCapacitySnapshot(active_count=self.active, max_concurrency=self.max_concurrency)

    def active_count(self) -> int:
        return self.active

    def submit(self, task: Callable[[], None]) -> None:
        self.submitted += 1
        task()


