"""Publishing service for the shared queue."""

from typing import Optional

from sqs_dispatch.core import get_logger
from sqs_dispatch.models import QueueEndpoint
from sqs_dispatch.transport.sqs import SqsTransport

logger = get_logger(__name__)


class PublishService:
    """Sends message bodies to the queue.

    Bodies over the transport's size threshold are offloaded to S3 by the
    transport; callers always pass the full body.
    """

    def __init__(self, transport: SqsTransport, endpoint: QueueEndpoint):
        self.transport = transport
        self.endpoint = endpoint

    def publish(self, body: str, attributes: Optional[dict[str, str]] = None) -> str:
        """Send a message.

        Returns:
            The SQS MessageId.

        Raises:
            TransportError: If the queue rejected the message.
            PayloadOffloadError: If an oversized body could not be stored.
        """
        message_id = self.transport.send(self.endpoint, body, attributes)
        logger.info(
            "message_published",
            queue_name=self.endpoint.name,
            message_id=message_id,
            size=len(body.encode("utf-8")),
        )
        return message_id
