"""HTTP API."""

from sqs_dispatch.api.server import create_app

__all__ = ["create_app"]
