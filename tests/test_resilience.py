"""Tests for resilience patterns - retry logic and error handling."""

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from sqs_dispatch.core.resilience import (
    RetryConfig,
    RetryHandler,
    ErrorCategory,
    ErrorCategorizer,
    ErrorLogger,
)
from sqs_dispatch.core.errors import (
    MessageProcessingError,
    PayloadOffloadError,
    PoolSaturatedError,
    QueueResolutionError,
    TransportError,
)


def client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "test"}}, "ReceiveMessage")


class TestErrorCategorizer:
    """Tests for ErrorCategorizer class."""

    def test_categorize_connection_error(self):
        """Test categorization of connection errors."""
        error = ConnectionError("Connection refused")
        category = ErrorCategorizer.categorize(error)
        assert category == ErrorCategory.NETWORK

    def test_categorize_timeout_error(self):
        """Test categorization of timeout errors."""
        error = TimeoutError("Request timed out")
        category = ErrorCategorizer.categorize(error)
        assert category == ErrorCategory.TIMEOUT

    def test_categorize_botocore_connection_error(self):
        """Test categorization of botocore endpoint failures."""
        error = EndpointConnectionError(endpoint_url="https://sqs.example")
        assert ErrorCategorizer.categorize(error) == ErrorCategory.NETWORK

    @pytest.mark.parametrize("code,expected", [
        ("Throttling", ErrorCategory.RATE_LIMIT),
        ("AccessDenied", ErrorCategory.AUTHENTICATION),
        ("AWS.SimpleQueueService.NonExistentQueue", ErrorCategory.NOT_FOUND),
        ("ReceiptHandleIsInvalid", ErrorCategory.VALIDATION),
        ("ServiceUnavailable", ErrorCategory.NETWORK),
        ("SomethingNew", ErrorCategory.UNKNOWN),
    ])
    def test_categorize_aws_error_codes(self, code, expected):
        """Test categorization of ClientError by AWS error code."""
        assert ErrorCategorizer.categorize(client_error(code)) == expected

    def test_categorize_transport_error_by_aws_code(self):
        """Test that a wrapped AWS code decides the category."""
        error = TransportError("receive failed", operation="receive", aws_error_code="Throttling")
        assert ErrorCategorizer.categorize(error) == ErrorCategory.RATE_LIMIT

    def test_categorize_custom_errors(self):
        """Test categorization of custom queue consumer errors."""
        assert ErrorCategorizer.categorize(
            QueueResolutionError("missing", queue_name="orders")
        ) == ErrorCategory.NOT_FOUND
        assert ErrorCategorizer.categorize(
            PayloadOffloadError("S3 failed", bucket="b", key="k")
        ) == ErrorCategory.STORAGE
        assert ErrorCategorizer.categorize(
            PoolSaturatedError("full", active_count=2, capacity=2)
        ) == ErrorCategory.CAPACITY
        assert ErrorCategorizer.categorize(
            MessageProcessingError("handler failed", message_id="m")
        ) == ErrorCategory.HANDLER

    def test_categorize_by_message_rate_limit(self):
        """Test categorization by error message for rate limiting."""
        error = Exception("429 Too Many Requests")
        category = ErrorCategorizer.categorize(error)
        assert category == ErrorCategory.RATE_LIMIT

    def test_categorize_by_message_auth(self):
        """Test categorization by error message for auth errors."""
        error = Exception("401 Unauthorized access")
        category = ErrorCategorizer.categorize(error)
        assert category == ErrorCategory.AUTHENTICATION

    def test_categorize_unknown(self):
        """Test categorization of unknown errors."""
        error = Exception("Some random error")
        category = ErrorCategorizer.categorize(error)
        assert category == ErrorCategory.UNKNOWN

    def test_is_retryable_network_error(self):
        """Test that network errors are retryable."""
        error = ConnectionError("Connection failed")
        assert ErrorCategorizer.is_retryable(error) is True

    def test_is_retryable_throttling(self):
        """Test that throttling responses are retryable."""
        assert ErrorCategorizer.is_retryable(client_error("ThrottlingException")) is True

    def test_is_retryable_missing_queue(self):
        """Test that a missing queue is not retryable."""
        error = client_error("AWS.SimpleQueueService.NonExistentQueue")
        assert ErrorCategorizer.is_retryable(error) is False

    def test_aws_error_code_of_plain_exception(self):
        assert ErrorCategorizer.aws_error_code(ValueError("x")) is None


class TestErrorLogger:
    """Tests for ErrorLogger class."""

    @pytest.fixture
    def logger(self):
        return ErrorLogger(max_history=10)

    def test_log_error(self, logger):
        """Test logging an error."""
        error = ConnectionError("Test error")
        record = logger.log_error(error, "test_component", details={"message_id": "m-1"})

        assert record.category == ErrorCategory.NETWORK
        assert record.error_type == "ConnectionError"
        assert record.component == "test_component"
        assert record.to_dict()["details"] == {"message_id": "m-1"}

    def test_error_counts(self, logger):
        """Test error counting by category."""
        logger.log_error(ConnectionError("Error 1"), "comp1")
        logger.log_error(ConnectionError("Error 2"), "comp1")
        logger.log_error(TimeoutError("Error 3"), "comp2")

        counts = logger.get_error_counts()
        assert counts["network"] == 2
        assert counts["timeout"] == 1

    def test_get_recent_errors(self, logger):
        """Test getting recent errors."""
        for i in range(5):
            logger.log_error(Exception(f"Error {i}"), "comp")

        recent = logger.get_recent_errors(limit=3)
        assert len(recent) == 3
        assert recent[-1].message == "Error 4"

    def test_max_history_limit(self, logger):
        """Test that history is limited."""
        for i in range(15):
            logger.log_error(Exception(f"Error {i}"), "comp")

        recent = logger.get_recent_errors(limit=100)
        assert len(recent) == 10  # max_history is 10

    def test_filter_by_category(self, logger):
        """Test filtering errors by category."""
        logger.log_error(ConnectionError("Net error"), "comp")
        logger.log_error(TimeoutError("Timeout error"), "comp")
        logger.log_error(ConnectionError("Net error 2"), "comp")

        network_errors = logger.get_recent_errors(category=ErrorCategory.NETWORK)
        assert len(network_errors) == 2

    def test_clear_history(self, logger):
        """Test clearing history and counts."""
        logger.log_error(ConnectionError("Net error"), "comp")
        logger.clear_history()

        assert logger.get_recent_errors() == []
        assert logger.get_error_counts()["network"] == 0


class TestRetryHandler:
    """Tests for RetryHandler class."""

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def handler(self, sleeps):
        config = RetryConfig(
            max_retries=3,
            base_delay=0.01,
            max_delay=0.1,
            jitter=False,
        )
        return RetryHandler(config, sleep=sleeps.append)

    def test_calculate_delay_exponential(self, handler):
        """Test exponential backoff calculation."""
        delays = [handler.calculate_delay(i) for i in range(4)]
        assert delays == pytest.approx([0.01, 0.02, 0.04, 0.08])

    def test_calculate_delay_max_cap(self):
        """Test delay is capped at max_delay."""
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)
        handler = RetryHandler(config)

        delay = handler.calculate_delay(10)  # Would be 1024 without cap
        assert delay == 5.0

    def test_calculate_delay_jitter_bounds(self):
        """Test jitter stays within a quarter of the base delay."""
        handler = RetryHandler(RetryConfig(base_delay=1.0, max_delay=30.0, jitter=True))

        for _ in range(50):
            assert 0.75 <= handler.calculate_delay(0) <= 1.25

    def test_should_retry_retryable_error(self, handler):
        """Test should_retry for retryable errors."""
        error = ConnectionError("Connection failed")
        assert handler.should_retry(error, 0) is True
        assert handler.should_retry(error, 2) is True
        assert handler.should_retry(error, 3) is False  # max_retries reached

    def test_should_retry_non_retryable_error(self, handler):
        """Test should_retry for non-retryable errors."""
        error = ValueError("Invalid input")
        assert handler.should_retry(error, 0) is False

    def test_execute_with_retry_success(self, handler, sleeps):
        """Test successful execution without retry."""
        call_count = 0

        def success_func(value, suffix=""):
            nonlocal call_count
            call_count += 1
            return value + suffix

        result = handler.execute_sync_with_retry(success_func, "succ", suffix="ess", component="test")
        assert result == "success"
        assert call_count == 1
        assert sleeps == []

    def test_execute_with_retry_eventual_success(self, handler, sleeps):
        """Test retry leading to eventual success."""
        call_count = 0

        def eventual_success():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionError("Temporary failure")
            return "success"

        result = handler.execute_sync_with_retry(eventual_success, component="test")
        assert result == "success"
        assert call_count == 3
        assert sleeps == pytest.approx([0.01, 0.02])

    def test_execute_with_retry_all_fail(self, handler):
        """Test all retries failing."""
        call_count = 0

        def always_fail():
            nonlocal call_count
            call_count += 1
            raise ConnectionError("Persistent failure")

        with pytest.raises(ConnectionError):
            handler.execute_sync_with_retry(always_fail, component="test")

        assert call_count == 4  # Initial + 3 retries

    def test_execute_with_retry_non_retryable(self, handler):
        """Test a non-retryable error is raised on the first attempt."""
        call_count = 0

        def missing_queue():
            nonlocal call_count
            call_count += 1
            raise client_error("QueueDoesNotExist")

        with pytest.raises(ClientError):
            handler.execute_sync_with_retry(missing_queue, component="test")

        assert call_count == 1
