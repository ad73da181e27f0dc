"""Message publishing."""

from sqs_dispatch.publisher.service import PublishService

__all__ = ["PublishService"]
