"""SQS transport adapter.

Wraps the boto3 SQS calls the consumer and publisher need: queue URL
resolution, receive, delete and send. Offloaded bodies are stored and
rehydrated here, so nothing above this layer sees pointer records.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from botocore.exceptions import BotoCoreError, ClientError

from sqs_dispatch.core import get_logger
from sqs_dispatch.core.errors import (
    PayloadOffloadError,
    QueueResolutionError,
    TransportError,
)
from sqs_dispatch.core.resilience import (
    ErrorCategorizer,
    RetryConfig,
    RetryHandler,
    get_error_logger,
)
from sqs_dispatch.models import Message, PayloadPointer, QueueEndpoint
from sqs_dispatch.models.message import flatten_message_attributes
from sqs_dispatch.transport.payload import (
    RESERVED_ATTRIBUTE_NAME,
    RESERVED_ATTRIBUTE_NAMES,
    S3PayloadStore,
    decode_pointer,
    encode_pointer,
    is_offloaded,
)

logger = get_logger(__name__)

# SQS rejects ReceiveMessage with MaxNumberOfMessages outside 1..10
MAX_RECEIVE_BATCH = 10

_NONEXISTENT_QUEUE_CODES = {
    "AWS.SimpleQueueService.NonExistentQueue",
    "QueueDoesNotExist",
}

# Stale or already-deleted receipts; a repeat delete is not a failure
_STALE_RECEIPT_CODES = {
    "ReceiptHandleIsInvalid",
    "InvalidParameterValue",
    "MessageNotInflight",
    "AWS.SimpleQueueService.MessageNotInflight",
}


class SqsTransport:
    """Queue transport over a boto3 SQS client."""

    def __init__(
        self,
        sqs_client: Any,
        payload_store: Optional[S3PayloadStore] = None,
        visibility_timeout: Optional[int] = None,
        retry_config: Optional[RetryConfig] = None,
    ):
        """Initialize the transport.

        Args:
            sqs_client: boto3 SQS client.
            payload_store: Enables large-payload offload when given.
            visibility_timeout: Override for the queue's visibility timeout on receive.
            retry_config: Backoff used while resolving the queue URL.
        """
        self.sqs_client = sqs_client
        self.payload_store = payload_store
        self.visibility_timeout = visibility_timeout
        self._resolve_retry = RetryHandler(retry_config)

    def resolve_queue_url(self, queue_name: str) -> QueueEndpoint:
        """Resolve a queue name to its URL.

        Transient failures (network, throttling) are retried with backoff; a
        missing queue or rejected credentials fail immediately.

        Raises:
            QueueResolutionError: If the queue cannot be resolved.
        """
        try:
            response = self._resolve_retry.execute_sync_with_retry(
                self.sqs_client.get_queue_url,
                QueueName=queue_name,
                component="queue_resolution",
            )
        except ClientError as e:
            code = ErrorCategorizer.aws_error_code(e)
            if code in _NONEXISTENT_QUEUE_CODES:
                raise QueueResolutionError(
                    f"Queue {queue_name} does not exist", queue_name=queue_name
                ) from e
            raise QueueResolutionError(
                f"Failed to resolve queue {queue_name}: {e}",
                queue_name=queue_name,
                details={"aws_error_code": code},
            ) from e
        except BotoCoreError as e:
            raise QueueResolutionError(
                f"Failed to resolve queue {queue_name}: {e}", queue_name=queue_name
            ) from e

        endpoint = QueueEndpoint(name=queue_name, url=response["QueueUrl"])
        logger.info("queue_resolved", queue_name=queue_name, queue_url=endpoint.url)
        return endpoint

    def receive(
        self,
        endpoint: QueueEndpoint,
        max_messages: int,
        wait_seconds: int = 0,
    ) -> list[Message]:
        """Receive up to max_messages messages.

        Returns an empty list when the queue has nothing available. A message
        whose offloaded body cannot be fetched is skipped and left for
        redelivery.

        Raises:
            ValueError: If max_messages is outside 1..10.
            TransportError: If the receive call fails.
        """
        if not 1 <= max_messages <= MAX_RECEIVE_BATCH:
            raise ValueError(
                f"max_messages must be between 1 and {MAX_RECEIVE_BATCH}, got {max_messages}"
            )

        params: dict[str, Any] = {
            "QueueUrl": endpoint.url,
            "MaxNumberOfMessages": max_messages,
            "WaitTimeSeconds": wait_seconds,
            "AttributeNames": ["All"],
            "MessageAttributeNames": ["All"],
        }
        if self.visibility_timeout is not None:
            params["VisibilityTimeout"] = self.visibility_timeout

        try:
            response = self.sqs_client.receive_message(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._transport_error("receive", endpoint, e) from e

        messages = []
        for raw in response.get("Messages", []):
            try:
                messages.append(self._to_message(raw))
            except PayloadOffloadError as e:
                get_error_logger().log_error(
                    e,
                    "transport.receive",
                    details={"message_id": raw.get("MessageId")},
                )
        return messages

    def delete(self, endpoint: QueueEndpoint, receipt_handle: str) -> bool:
        """Delete one delivery by receipt handle.

        Returns:
            True if deleted, False if the receipt was already stale.

        Raises:
            TransportError: On any other failure.
        """
        try:
            self.sqs_client.delete_message(QueueUrl=endpoint.url, ReceiptHandle=receipt_handle)
        except ClientError as e:
            code = ErrorCategorizer.aws_error_code(e)
            if code in _STALE_RECEIPT_CODES:
                logger.warning(
                    "delete_receipt_stale",
                    queue_url=endpoint.url,
                    aws_error_code=code,
                    error=str(e),
                )
                return False
            raise self._transport_error("delete", endpoint, e) from e
        except BotoCoreError as e:
            raise self._transport_error("delete", endpoint, e) from e
        return True

    def acknowledge(self, endpoint: QueueEndpoint, message: Message) -> bool:
        """Delete a processed message and, if configured, its offloaded body."""
        deleted = self.delete(endpoint, message.receipt_handle)
        if deleted and message.payload_pointer is not None:
            self._cleanup_payload(message.payload_pointer, message.message_id)
        return deleted

    def send(
        self,
        endpoint: QueueEndpoint,
        body: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> str:
        """Send a message, offloading the body to S3 when it is too large.

        Returns:
            The SQS MessageId.

        Raises:
            PayloadOffloadError: If the body could not be stored.
            TransportError: If the send call fails.
        """
        message_attributes = {
            name: {"DataType": "String", "StringValue": value}
            for name, value in (attributes or {}).items()
        }

        outgoing = body
        if self.payload_store is not None and self.payload_store.should_offload(
            body, message_attributes
        ):
            pointer = self.payload_store.store(body)
            outgoing = encode_pointer(pointer)
            message_attributes[RESERVED_ATTRIBUTE_NAME] = {
                "DataType": "Number",
                "StringValue": str(len(body.encode("utf-8"))),
            }
            logger.info(
                "payload_offloaded",
                bucket=pointer.bucket,
                key=pointer.key,
                size=len(body.encode("utf-8")),
            )

        params: dict[str, Any] = {"QueueUrl": endpoint.url, "MessageBody": outgoing}
        if message_attributes:
            params["MessageAttributes"] = message_attributes

        try:
            response = self.sqs_client.send_message(**params)
        except (ClientError, BotoCoreError) as e:
            raise self._transport_error("send", endpoint, e) from e

        message_id = response["MessageId"]
        logger.debug("message_sent", queue_url=endpoint.url, message_id=message_id)
        return message_id

    def _to_message(self, raw: dict[str, Any]) -> Message:
        message = Message.from_sqs(raw)
        raw_attributes = raw.get("MessageAttributes") or {}
        if not is_offloaded(raw_attributes):
            return message

        if self.payload_store is None:
            logger.warning(
                "offloaded_message_without_store",
                message_id=message.message_id,
            )
            return message

        pointer = decode_pointer(message.body)
        body = self.payload_store.fetch(pointer)
        attributes = {
            name: value
            for name, value in flatten_message_attributes(raw_attributes).items()
            if name not in RESERVED_ATTRIBUTE_NAMES
        }
        return message.model_copy(
            update={"body": body, "attributes": attributes, "payload_pointer": pointer}
        )

    def _cleanup_payload(self, pointer: PayloadPointer, message_id: str) -> None:
        if self.payload_store is None or not self.payload_store.cleanup:
            return
        try:
            self.payload_store.delete(pointer)
        except PayloadOffloadError as e:
            get_error_logger().log_error(
                e, "transport.acknowledge", details={"message_id": message_id}
            )

    @staticmethod
    def _transport_error(operation: str, endpoint: QueueEndpoint, error: Exception) -> TransportError:
        return TransportError(
            f"SQS {operation} failed: {error}",
            operation=operation,
            queue_url=endpoint.url,
            aws_error_code=ErrorCategorizer.aws_error_code(error),
        )


@runtime_checkable
class Acknowledger(Protocol):
    """Capability to acknowledge (delete) a processed message."""

    def ack(self, message: Message) -> bool:
        ...


class QueueAcknowledger:
    """Acknowledges messages against one resolved queue."""

    def __init__(self, transport: SqsTransport, endpoint: QueueEndpoint):
        self.transport = transport
        self.endpoint = endpoint

    def ack(self, message: Message) -> bool:
        return self.transport.acknowledge(self.endpoint, message)
