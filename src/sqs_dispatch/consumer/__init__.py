"""Bounded-concurrency queue consumer."""

from sqs_dispatch.consumer.pool import WorkerPool
from sqs_dispatch.consumer.handler import LoggingMessageHandler, MessageHandler
from sqs_dispatch.consumer.dispatcher import Dispatcher, PollOutcome
from sqs_dispatch.consumer.lifecycle import LifecycleController
from sqs_dispatch.consumer.runtime import ConsumerRuntime

__all__ = [
    "WorkerPool",
    "LoggingMessageHandler",
    "MessageHandler",
    "Dispatcher",
    "PollOutcome",
    "LifecycleController",
    "ConsumerRuntime",
]
