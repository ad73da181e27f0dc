"""boto3 client construction.

Credentials always come from boto3's default provider chain (environment,
shared config, container or instance role).
"""

from typing import Any, Optional

import boto3
from botocore.config import Config

from sqs_dispatch.core.config import Settings

# Leaves headroom over the longest SQS long-poll (20s)
_CLIENT_CONFIG = Config(
    connect_timeout=5,
    read_timeout=30,
    retries={"max_attempts": 3, "mode": "standard"},
)


def create_sqs_client(settings: Settings, session: Optional[boto3.session.Session] = None) -> Any:
    """Create an SQS client for the configured region."""
    session = session or boto3.session.Session()
    return session.client("sqs", region_name=settings.region, config=_CLIENT_CONFIG)


def create_s3_client(settings: Settings, session: Optional[boto3.session.Session] = None) -> Any:
    """Create an S3 client for the configured region."""
    session = session or boto3.session.Session()
    return session.client("s3", region_name=settings.region, config=_CLIENT_CONFIG)
