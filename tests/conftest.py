"""
Pytest configuration and shared fixtures for the queue consumer tests.
"""
import pytest
from hypothesis import settings, Verbosity

from sqs_dispatch.core.resilience import get_error_logger
from sqs_dispatch.models import QueueEndpoint

from fakes import QUEUE_URL, RecordingAcknowledger

# Configure Hypothesis settings for all property-based tests
settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    suppress_health_check=[],
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    suppress_health_check=[],
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    suppress_health_check=[],
    verbosity=Verbosity.verbose,
)

settings.load_profile("default")


@pytest.fixture
def error_log():
    """Process-wide error log, emptied before and after the test."""
    error_logger = get_error_logger()
    error_logger.clear_history()
    yield error_logger
    error_logger.clear_history()


@pytest.fixture
def endpoint() -> QueueEndpoint:
    return QueueEndpoint(name="orders", url=QUEUE_URL)


@pytest.fixture
def acknowledger() -> RecordingAcknowledger:
    return RecordingAcknowledger()
