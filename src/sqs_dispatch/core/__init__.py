"""Core utilities: logging, errors, resilience and settings."""

from sqs_dispatch.core.logging import get_logger, configure_logging, configure_from_settings
from sqs_dispatch.core.errors import (
    QueueConsumerError,
    ConfigurationError,
    QueueResolutionError,
    TransportError,
    PayloadOffloadError,
    PoolSaturatedError,
    PoolShutdownError,
    MessageProcessingError,
)
from sqs_dispatch.core.resilience import (
    RetryConfig,
    RetryHandler,
    ErrorCategory,
    ErrorCategorizer,
    ErrorLogger,
    ErrorRecord,
    get_error_logger,
)
from sqs_dispatch.core.config import Settings, get_settings

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "configure_from_settings",
    # Errors
    "QueueConsumerError",
    "ConfigurationError",
    "QueueResolutionError",
    "TransportError",
    "PayloadOffloadError",
    "PoolSaturatedError",
    "PoolShutdownError",
    "MessageProcessingError",
    # Resilience
    "RetryConfig",
    "RetryHandler",
    "ErrorCategory",
    "ErrorCategorizer",
    "ErrorLogger",
    "ErrorRecord",
    "get_error_logger",
    # Settings
    "Settings",
    "get_settings",
]
