"""Error categorisation, error tracking and startup retry.

- Categorisation of transport, handler and configuration failures
- Process-wide error log with bounded history and per-category counts
- Retry with exponential backoff for calls made before polling starts
"""

import random
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    NoCredentialsError,
    ReadTimeoutError,
)

from sqs_dispatch.core.errors import QueueConsumerError

logger = structlog.get_logger(__name__)


class ErrorCategory(str, Enum):
    """Categories for error classification."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    STORAGE = "storage"
    CAPACITY = "capacity"
    HANDLER = "handler"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_exceptions: tuple = (
        ConnectionError,
        TimeoutError,
        EndpointConnectionError,
        ConnectionClosedError,
        ReadTimeoutError,
    )


@dataclass
class ErrorRecord:
    """Record of an error occurrence."""

    timestamp: datetime
    category: ErrorCategory
    error_type: str
    message: str
    component: str
    details: dict = field(default_factory=dict)
    retry_count: int = 0

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "category": self.category.value,
            "error_type": self.error_type,
            "message": self.message,
            "component": self.component,
            "details": self.details,
            "retry_count": self.retry_count,
        }


class ErrorCategorizer:
    """Categorizes errors for logging and handling."""

    EXCEPTION_CATEGORIES = {
        NoCredentialsError: ErrorCategory.AUTHENTICATION,
        EndpointConnectionError: ErrorCategory.NETWORK,
        ConnectionClosedError: ErrorCategory.NETWORK,
        ReadTimeoutError: ErrorCategory.TIMEOUT,
        ConnectionError: ErrorCategory.NETWORK,
        TimeoutError: ErrorCategory.TIMEOUT,
        PermissionError: ErrorCategory.AUTHENTICATION,
        ValueError: ErrorCategory.VALIDATION,
    }

    # AWS error codes returned inside botocore ClientError responses
    AWS_ERROR_CODES = {
        "Throttling": ErrorCategory.RATE_LIMIT,
        "ThrottlingException": ErrorCategory.RATE_LIMIT,
        "RequestThrottled": ErrorCategory.RATE_LIMIT,
        "SlowDown": ErrorCategory.RATE_LIMIT,
        "OverLimit": ErrorCategory.RATE_LIMIT,
        "AccessDenied": ErrorCategory.AUTHENTICATION,
        "AccessDeniedException": ErrorCategory.AUTHENTICATION,
        "InvalidClientTokenId": ErrorCategory.AUTHENTICATION,
        "SignatureDoesNotMatch": ErrorCategory.AUTHENTICATION,
        "ExpiredToken": ErrorCategory.AUTHENTICATION,
        "UnrecognizedClientException": ErrorCategory.AUTHENTICATION,
        "AWS.SimpleQueueService.NonExistentQueue": ErrorCategory.NOT_FOUND,
        "QueueDoesNotExist": ErrorCategory.NOT_FOUND,
        "NoSuchBucket": ErrorCategory.NOT_FOUND,
        "NoSuchKey": ErrorCategory.NOT_FOUND,
        "ReceiptHandleIsInvalid": ErrorCategory.VALIDATION,
        "InvalidParameterValue": ErrorCategory.VALIDATION,
        "MessageNotInflight": ErrorCategory.VALIDATION,
        "InternalError": ErrorCategory.NETWORK,
        "ServiceUnavailable": ErrorCategory.NETWORK,
        "RequestTimeout": ErrorCategory.TIMEOUT,
    }

    ERROR_CODE_CATEGORIES = {
        "CONFIGURATION": ErrorCategory.VALIDATION,
        "QUEUE_RESOLUTION": ErrorCategory.NOT_FOUND,
        "PAYLOAD_OFFLOAD": ErrorCategory.STORAGE,
        "POOL_SATURATED": ErrorCategory.CAPACITY,
        "POOL_SHUTDOWN": ErrorCategory.CAPACITY,
        "MESSAGE_PROCESSING": ErrorCategory.HANDLER,
    }

    MESSAGE_KEYWORDS = {
        ErrorCategory.NETWORK: ["connection", "network", "dns", "socket", "refused"],
        ErrorCategory.TIMEOUT: ["timeout", "timed out", "deadline"],
        ErrorCategory.RATE_LIMIT: ["rate exceeded", "throttl", "too many requests"],
        ErrorCategory.AUTHENTICATION: ["credential", "forbidden", "unauthorized", "access denied"],
    }

    @staticmethod
    def aws_error_code(error: Exception) -> Optional[str]:
        """Return the AWS error code carried by a ClientError, if any."""
        if isinstance(error, ClientError):
            return error.response.get("Error", {}).get("Code")
        return None

    @classmethod
    def categorize(cls, error: Exception) -> ErrorCategory:
        """Categorize an exception.

        Args:
            error: The exception to categorize.

        Returns:
            ErrorCategory for the exception.
        """
        code = cls.aws_error_code(error)
        if code is not None:
            return cls.AWS_ERROR_CODES.get(code, ErrorCategory.UNKNOWN)

        for exc_type, category in cls.EXCEPTION_CATEGORIES.items():
            if isinstance(error, exc_type):
                return category

        if isinstance(error, QueueConsumerError) and error.error_code:
            aws_code = error.details.get("aws_error_code")
            if aws_code in cls.AWS_ERROR_CODES:
                return cls.AWS_ERROR_CODES[aws_code]
            if error.error_code in cls.ERROR_CODE_CATEGORIES:
                return cls.ERROR_CODE_CATEGORIES[error.error_code]

        error_msg = str(error).lower()
        for category, keywords in cls.MESSAGE_KEYWORDS.items():
            if any(kw in error_msg for kw in keywords):
                return category

        return ErrorCategory.UNKNOWN

    @classmethod
    def is_retryable(cls, error: Exception) -> bool:
        """Determine if an error is retryable.

        Args:
            error: The exception to check.

        Returns:
            True if the error can be retried.
        """
        return cls.categorize(error) in {
            ErrorCategory.NETWORK,
            ErrorCategory.TIMEOUT,
            ErrorCategory.RATE_LIMIT,
        }


class ErrorLogger:
    """Centralized error logging and tracking.

    Shared between the poll thread and every worker thread, so all
    bookkeeping happens under a lock.
    """

    def __init__(self, max_history: int = 1000):
        """Initialize error logger.

        Args:
            max_history: Maximum number of errors to keep in history.
        """
        self._lock = threading.Lock()
        self._history: list[ErrorRecord] = []
        self._max_history = max_history
        self._error_counts: dict[ErrorCategory, int] = {cat: 0 for cat in ErrorCategory}

    def log_error(
        self,
        error: Exception,
        component: str,
        details: Optional[dict] = None,
        retry_count: int = 0,
    ) -> ErrorRecord:
        """Log an error occurrence.

        Args:
            error: The exception that occurred.
            component: Component where error occurred.
            details: Additional error details.
            retry_count: Number of retries attempted.

        Returns:
            ErrorRecord for the logged error.
        """
        category = ErrorCategorizer.categorize(error)

        record = ErrorRecord(
            timestamp=datetime.now(timezone.utc),
            category=category,
            error_type=type(error).__name__,
            message=str(error),
            component=component,
            details=details or {},
            retry_count=retry_count,
        )

        with self._lock:
            self._error_counts[category] += 1
            self._history.append(record)
            if len(self._history) > self._max_history:
                self._history.pop(0)

        logger.error(
            "error_occurred",
            category=category.value,
            error_type=record.error_type,
            error=record.message,
            component=component,
            retry_count=retry_count,
            **record.details,
        )

        return record

    def get_error_counts(self) -> dict[str, int]:
        """Get error counts by category."""
        with self._lock:
            return {cat.value: count for cat, count in self._error_counts.items()}

    def get_recent_errors(
        self,
        limit: int = 100,
        category: Optional[ErrorCategory] = None,
    ) -> list[ErrorRecord]:
        """Get recent errors, optionally filtered by category."""
        with self._lock:
            errors = list(self._history)
        if category:
            errors = [e for e in errors if e.category == category]
        return errors[-limit:]

    def clear_history(self) -> None:
        """Clear error history."""
        with self._lock:
            self._history.clear()
            self._error_counts = {cat: 0 for cat in ErrorCategory}


_error_logger = ErrorLogger()


def get_error_logger() -> ErrorLogger:
    """Get the global error logger instance."""
    return _error_logger


class RetryHandler:
    """Handles retry logic with exponential backoff."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize retry handler.

        Args:
            config: Retry configuration.
            sleep: Sleep function (replaced in tests).
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for a retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self.config.base_delay * (self.config.exponential_base ** attempt)
        delay = min(delay, self.config.max_delay)

        if self.config.jitter:
            # +/-25%
            jitter = delay * 0.25 * (2 * random.random() - 1)
            delay += jitter

        return max(0, delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if an operation should be retried.

        Args:
            error: The exception that occurred.
            attempt: Current attempt number.

        Returns:
            True if should retry.
        """
        if attempt >= self.config.max_retries:
            return False

        if isinstance(error, self.config.retryable_exceptions):
            return True

        return ErrorCategorizer.is_retryable(error)

    def execute_sync_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        component: str = "unknown",
        **kwargs,
    ) -> Any:
        """Execute a function with retry logic.

        Args:
            func: Function to execute.
            *args: Positional arguments for func.
            component: Component name for logging.
            **kwargs: Keyword arguments for func.

        Returns:
            Result of the function.

        Raises:
            The last exception if all retries fail.
        """
        error_logger = get_error_logger()

        for attempt in range(self.config.max_retries + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                error_logger.log_error(e, component, retry_count=attempt)

                if not self.should_retry(e, attempt):
                    logger.warning(
                        "retry_not_possible",
                        component=component,
                        attempt=attempt,
                        error=str(e),
                    )
                    raise

                delay = self.calculate_delay(attempt)
                logger.info(
                    "retrying_operation",
                    component=component,
                    attempt=attempt + 1,
                    max_retries=self.config.max_retries,
                    delay=delay,
                )
                self._sleep(delay)
