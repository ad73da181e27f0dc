"""Message handler contract and the default logging handler."""

from typing import Protocol, runtime_checkable

from sqs_dispatch.core import get_logger
from sqs_dispatch.models import Message

logger = get_logger(__name__)


@runtime_checkable
class MessageHandler(Protocol):
    """Processes one message.

    Return True on success. Returning False or raising leaves the message
    unacknowledged, so the queue redelivers it after its visibility timeout.
    """

    def process(self, message: Message) -> bool:
        ...


class LoggingMessageHandler:
    """Logs each message body."""

    def process(self, message: Message) -> bool:
        logger.info(
            "message_processed",
            message_id=message.message_id,
            receive_count=message.receive_count,
            offloaded=message.offloaded,
            body=message.body,
        )
        return True
