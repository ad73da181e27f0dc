"""Queue message data models."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class PayloadPointer(BaseModel):
    """Location of a message body that was offloaded to S3."""

    model_config = {"frozen": True}

    bucket: str = Field(..., description="S3 bucket holding the body")
    key: str = Field(..., description="S3 object key of the body")


class QueueEndpoint(BaseModel):
    """A named queue resolved to its URL.

    Resolved once at startup and shared by the consumer and publisher.
    """

    model_config = {"frozen": True}

    name: str = Field(..., description="Queue name")
    url: str = Field(..., description="Resolved queue URL")


class Message(BaseModel):
    """A single delivery of a queue message.

    The receipt handle identifies this delivery, not the message: a
    redelivered message keeps its id but gets a new receipt handle.
    """

    model_config = {"frozen": True}

    message_id: str = Field(..., description="Stable message identifier")
    receipt_handle: str = Field(..., description="Token required to delete this delivery")
    body: str = Field(..., description="Message body (rehydrated when offloaded)")
    attributes: dict[str, str] = Field(
        default_factory=dict, description="User message attributes"
    )
    system_attributes: dict[str, str] = Field(
        default_factory=dict, description="SQS system attributes (ApproximateReceiveCount, ...)"
    )
    payload_pointer: Optional[PayloadPointer] = Field(
        None, description="Where the body was stored when it arrived offloaded"
    )

    @property
    def receive_count(self) -> int:
        return int(self.system_attributes.get("ApproximateReceiveCount", "0") or 0)

    @property
    def offloaded(self) -> bool:
        return self.payload_pointer is not None

    @classmethod
    def from_sqs(cls, raw: dict[str, Any]) -> "Message":
        """Build a message from one entry of a ReceiveMessage response."""
        return cls(
            message_id=raw["MessageId"],
            receipt_handle=raw["ReceiptHandle"],
            body=raw.get("Body", ""),
            attributes=flatten_message_attributes(raw.get("MessageAttributes")),
            system_attributes=dict(raw.get("Attributes") or {}),
        )


def flatten_message_attributes(raw: Optional[dict[str, Any]]) -> dict[str, str]:
    """Reduce SQS typed message attributes to name -> string value.

    Binary attributes are dropped; the handler contract is text only.
    """
    flat: dict[str, str] = {}
    for name, value in (raw or {}).items():
        if "StringValue" in value:
            flat[name] = value["StringValue"]
    return flat
