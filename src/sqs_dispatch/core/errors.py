"""Custom exception classes for the queue consumer."""

from typing import Optional


class QueueConsumerError(Exception):
    """Base exception for all queue consumer errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(QueueConsumerError):
    """Invalid or missing process configuration."""

    def __init__(
        self,
        message: str,
        setting: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="CONFIGURATION", **kwargs)
        self.setting = setting
        self.details.update({"setting": setting})


class QueueResolutionError(QueueConsumerError):
    """The named queue could not be resolved to a URL."""

    def __init__(
        self,
        message: str,
        queue_name: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="QUEUE_RESOLUTION", **kwargs)
        self.queue_name = queue_name
        self.details.update({"queue_name": queue_name})


class TransportError(QueueConsumerError):
    """A remote queue call failed."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        queue_url: Optional[str] = None,
        aws_error_code: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="TRANSPORT", **kwargs)
        self.operation = operation
        self.queue_url = queue_url
        self.aws_error_code = aws_error_code
        self.details.update({
            "operation": operation,
            "queue_url": queue_url,
            "aws_error_code": aws_error_code,
        })


class PayloadOffloadError(QueueConsumerError):
    """Storing or fetching an offloaded message body failed."""

    def __init__(
        self,
        message: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="PAYLOAD_OFFLOAD", **kwargs)
        self.bucket = bucket
        self.key = key
        self.details.update({"bucket": bucket, "key": key})


class PoolSaturatedError(QueueConsumerError):
    """A task was submitted while every pool slot was taken."""

    def __init__(
        self,
        message: str,
        active_count: int = 0,
        capacity: int = 0,
        **kwargs,
    ):
        super().__init__(message, error_code="POOL_SATURATED", **kwargs)
        self.active_count = active_count
        self.capacity = capacity
        self.details.update({
            "active_count": active_count,
            "capacity": capacity,
        })


class PoolShutdownError(QueueConsumerError):
    """A task was submitted after the pool stopped accepting work."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="POOL_SHUTDOWN", **kwargs)


class MessageProcessingError(QueueConsumerError):
    """A message handler failed to process a message."""

    def __init__(
        self,
        message: str,
        message_id: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="MESSAGE_PROCESSING", **kwargs)
        self.message_id = message_id
        self.details.update({"message_id": message_id})
