"""Queue transport: SQS adapter, S3 payload offload and client factories."""

from sqs_dispatch.transport.clients import create_s3_client, create_sqs_client
from sqs_dispatch.transport.payload import (
    POINTER_CLASS,
    RESERVED_ATTRIBUTE_NAME,
    S3PayloadStore,
    decode_pointer,
    encode_pointer,
    is_offloaded,
)
from sqs_dispatch.transport.sqs import (
    MAX_RECEIVE_BATCH,
    Acknowledger,
    QueueAcknowledger,
    SqsTransport,
)

__all__ = [
    "create_s3_client",
    "create_sqs_client",
    "POINTER_CLASS",
    "RESERVED_ATTRIBUTE_NAME",
    "S3PayloadStore",
    "decode_pointer",
    "encode_pointer",
    "is_offloaded",
    "MAX_RECEIVE_BATCH",
    "Acknowledger",
    "QueueAcknowledger",
    "SqsTransport",
]
