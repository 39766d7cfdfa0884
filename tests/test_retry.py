"""Retry for read-only RPC probes"""

import pytest
from erc8004_register.retry import (
    RetryConfig,
    DEFAULT_RETRY_CONFIG,
    NO_RETRY_CONFIG,
    calculate_delay,
    is_retryable,
    retry,
)
from erc8004_register.exceptions import (
    FundsError,
    NetworkError,
    RetryExhaustedError,
    TransactionRejected,
)


class TestRetryConfig:
    def test_default_config(self):
        config = DEFAULT_RETRY_CONFIG
        assert config.max_attempts == 3
        assert config.base_delay == 1.0
        assert config.jitter is True

    def test_no_retry_config(self):
        assert NO_RETRY_CONFIG.max_attempts == 1


class TestCalculateDelay:
    def test_first_attempt_no_delay(self):
        config = RetryConfig(base_delay=1.0, jitter=False)
        assert calculate_delay(1, config) == 0.0

    def test_exponential_backoff(self):
        config = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)
        assert calculate_delay(2, config) == 1.0
        assert calculate_delay(3, config) == 2.0
        assert calculate_delay(4, config) == 4.0

    def test_max_delay_cap(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, exponential_base=2.0, jitter=False)
        assert calculate_delay(10, config) == 5.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(base_delay=1.0, jitter=True, jitter_factor=0.5)
        for _ in range(20):
            assert 0.5 <= calculate_delay(2, config) <= 1.5


class TestIsRetryable:
    def test_network_error_retryable(self):
        assert is_retryable(NetworkError("timeout"), DEFAULT_RETRY_CONFIG) is True

    def test_connection_error_retryable(self):
        assert is_retryable(ConnectionError("refused"), DEFAULT_RETRY_CONFIG) is True

    def test_transaction_errors_not_retryable(self):
        """Funds and reverts are final"""
        assert is_retryable(FundsError("0xabc"), DEFAULT_RETRY_CONFIG) is False
        assert is_retryable(TransactionRejected(reason="revert"), DEFAULT_RETRY_CONFIG) is False

    def test_status_code_on_response(self):
        class _Response:
            status_code = 503

        class _HTTPFailure(Exception):
            response = _Response()

        assert is_retryable(_HTTPFailure(), DEFAULT_RETRY_CONFIG) is True
        _Response.status_code = 400
        assert is_retryable(_HTTPFailure(), DEFAULT_RETRY_CONFIG) is False


class TestRetryDecorator:
    def test_success_no_retry(self):
        call_count = 0

        @retry(config=DEFAULT_RETRY_CONFIG)
        def success_func():
            nonlocal call_count
            call_count += 1
            return "ok"

        assert success_func() == "ok"
        assert call_count == 1

    def test_retry_on_network_error(self):
        call_count = 0

        @retry(config=RetryConfig(max_attempts=3, base_delay=0.01, jitter=False))
        def flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise NetworkError("timeout")
            return "ok"

        assert flaky_func() == "ok"
        assert call_count == 3

    def test_no_retry_on_rejection(self):
        call_count = 0

        @retry(config=DEFAULT_RETRY_CONFIG)
        def rejected():
            nonlocal call_count
            call_count += 1
            raise TransactionRejected(reason="revert")

        with pytest.raises(TransactionRejected):
            rejected()
        assert call_count == 1

    def test_retry_exhausted(self):
        call_count = 0

        @retry(config=RetryConfig(max_attempts=2, base_delay=0.01, jitter=False), operation_name="probe")
        def always_fail():
            nonlocal call_count
            call_count += 1
            raise NetworkError("always fails")

        with pytest.raises(RetryExhaustedError) as exc_info:
            always_fail()

        assert call_count == 2
        assert exc_info.value.details["operation"] == "probe"
        assert isinstance(exc_info.value.last_error, NetworkError)

    def test_no_retry_config_fails_fast(self):
        call_count = 0

        @retry(config=NO_RETRY_CONFIG)
        def once():
            nonlocal call_count
            call_count += 1
            raise NetworkError("down")

        with pytest.raises(RetryExhaustedError):
            once()
        assert call_count == 1
