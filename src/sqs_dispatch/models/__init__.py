"""Data models for the queue consumer."""

from sqs_dispatch.models.message import (
    Message,
    PayloadPointer,
    QueueEndpoint,
    flatten_message_attributes,
)
from sqs_dispatch.models.runtime import LifecycleState, PoolCapacitySnapshot

__all__ = [
    "Message",
    "PayloadPointer",
    "QueueEndpoint",
    "flatten_message_attributes",
    "LifecycleState",
    "PoolCapacitySnapshot",
]
