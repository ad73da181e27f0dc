"""Large-payload offload to S3.

Bodies too large for SQS are written to S3 and replaced on the queue by a
pointer record. The record layout matches the AWS extended client libraries
so producers and consumers written against them interoperate with this one.
"""

import json
from typing import Any, Optional
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError

from sqs_dispatch.core import get_logger
from sqs_dispatch.core.config import DEFAULT_PAYLOAD_SIZE_THRESHOLD
from sqs_dispatch.core.errors import PayloadOffloadError
from sqs_dispatch.models import PayloadPointer

logger = get_logger(__name__)

POINTER_CLASS = "software.amazon.payloadoffloading.PayloadS3Pointer"
RESERVED_ATTRIBUTE_NAME = "ExtendedPayloadSize"
LEGACY_RESERVED_ATTRIBUTE_NAME = "SQSLargePayloadSize"
RESERVED_ATTRIBUTE_NAMES = (RESERVED_ATTRIBUTE_NAME, LEGACY_RESERVED_ATTRIBUTE_NAME)


def encode_pointer(pointer: PayloadPointer) -> str:
    """Serialize a pointer into the message body sent in place of the payload."""
    return json.dumps([POINTER_CLASS, {"s3BucketName": pointer.bucket, "s3Key": pointer.key}])


def decode_pointer(body: str) -> PayloadPointer:
    """Parse a pointer record received as a message body.

    Raises:
        PayloadOffloadError: If the body is not a pointer record.
    """
    try:
        kind, location = json.loads(body)
        if kind != POINTER_CLASS:
            raise ValueError(f"unexpected pointer class {kind!r}")
        return PayloadPointer(bucket=location["s3BucketName"], key=location["s3Key"])
    except (ValueError, TypeError, KeyError) as e:
        raise PayloadOffloadError(f"Malformed payload pointer: {e}") from e


def is_offloaded(message_attributes: Optional[dict[str, Any]]) -> bool:
    """Whether a received message carries the offload marker attribute."""
    return any(name in (message_attributes or {}) for name in RESERVED_ATTRIBUTE_NAMES)


def message_attributes_size(message_attributes: Optional[dict[str, Any]]) -> int:
    """Byte size SQS counts against the message size limit for attributes."""
    size = 0
    for name, value in (message_attributes or {}).items():
        size += len(name.encode("utf-8"))
        size += len(value.get("DataType", "").encode("utf-8"))
        if "StringValue" in value:
            size += len(value["StringValue"].encode("utf-8"))
        if "BinaryValue" in value:
            size += len(value["BinaryValue"])
    return size


class S3PayloadStore:
    """Stores, fetches and removes offloaded message bodies in one S3 bucket."""

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        size_threshold: int = DEFAULT_PAYLOAD_SIZE_THRESHOLD,
        always_offload: bool = False,
        cleanup: bool = True,
    ):
        """Initialize the payload store.

        Args:
            s3_client: boto3 S3 client.
            bucket: Bucket receiving offloaded bodies.
            size_threshold: Bodies (plus attributes) above this many bytes are offloaded.
            always_offload: Offload every body regardless of size.
            cleanup: Delete the S3 object once its message is acknowledged.
        """
        self.s3_client = s3_client
        self.bucket = bucket
        self.size_threshold = size_threshold
        self.always_offload = always_offload
        self.cleanup = cleanup

    def should_offload(
        self,
        body: str,
        message_attributes: Optional[dict[str, Any]] = None,
    ) -> bool:
        if self.always_offload:
            return True
        size = len(body.encode("utf-8")) + message_attributes_size(message_attributes)
        return size > self.size_threshold

    def store(self, body: str) -> PayloadPointer:
        """Write a body to S3 under a fresh key."""
        key = str(uuid4())
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body.encode("utf-8"),
            )
        except (ClientError, BotoCoreError) as e:
            raise PayloadOffloadError(
                f"Failed to store payload: {e}", bucket=self.bucket, key=key
            ) from e

        logger.debug("payload_stored", bucket=self.bucket, key=key)
        return PayloadPointer(bucket=self.bucket, key=key)

    def fetch(self, pointer: PayloadPointer) -> str:
        """Read an offloaded body back from S3."""
        try:
            response = self.s3_client.get_object(Bucket=pointer.bucket, Key=pointer.key)
            return response["Body"].read().decode("utf-8")
        except (ClientError, BotoCoreError, UnicodeDecodeError) as e:
            raise PayloadOffloadError(
                f"Failed to fetch payload: {e}", bucket=pointer.bucket, key=pointer.key
            ) from e

    def delete(self, pointer: PayloadPointer) -> None:
        try:
            self.s3_client.delete_object(Bucket=pointer.bucket, Key=pointer.key)
        except (ClientError, BotoCoreError) as e:
            raise PayloadOffloadError(
                f"Failed to delete payload: {e}", bucket=pointer.bucket, key=pointer.key
            ) from e
        logger.debug("payload_deleted", bucket=pointer.bucket, key=pointer.key)
