"""
ERC-8004 Registration Retry Module

Configurable retry with exponential backoff for idempotent reads.

Classes:
    RetryConfig: Retry configuration data class

Functions:
    calculate_delay: Calculate retry delay
    is_retryable: Determine if an exception is retryable
    retry: Synchronous retry decorator

Predefined Configs:
    DEFAULT_RETRY_CONFIG: Default configuration (3 attempts, 1s base delay)
    NO_RETRY_CONFIG: No retry

Note:
    - Only read-only RPC calls (chain id probe) are decorated.
    - register() transactions are never retried: each successful call mints a
      new agent, so a blind retry after an ambiguous failure can duplicate it.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Callable, Optional, Tuple, Type, TypeVar

from .exceptions import NetworkError, RetryExhaustedError

logger = logging.getLogger("erc8004.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """
    Retry configuration data class.

    Attributes:
        max_attempts: Maximum number of attempts (including the first attempt)
        base_delay: Base delay time (seconds)
        max_delay: Maximum delay time (seconds)
        exponential_base: Exponential backoff base
        jitter: Whether to add random jitter
        jitter_factor: Jitter factor (0-1)
        retryable_exceptions: Tuple of retryable exception types
        retry_on_status_codes: Tuple of retryable HTTP status codes

    Note:
        - Delay formula: delay = base_delay * (exponential_base ^ (attempt - 2))
        - Jitter range: delay ± (delay * jitter_factor)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1
    retryable_exceptions: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (
            NetworkError,
            ConnectionError,
            OSError,
        )
    )
    retry_on_status_codes: Tuple[int, ...] = (429, 500, 502, 503, 504)


DEFAULT_RETRY_CONFIG = RetryConfig()
"""Default retry config: 3 attempts, 1s base delay, exponential backoff"""

NO_RETRY_CONFIG = RetryConfig(max_attempts=1)
"""No retry config: attempt only once"""


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the delay before the Nth attempt.

    Args:
        attempt: Attempt number (starts from 1)
        config: Retry configuration

    Returns:
        Delay time (seconds), 0 for the first attempt

    Example:
        >>> config = RetryConfig(base_delay=1.0, exponential_base=2.0, jitter=False)
        >>> calculate_delay(1, config)
        0.0
        >>> calculate_delay(3, config)
        2.0
    """
    if attempt <= 1:
        return 0.0

    delay = config.base_delay * (config.exponential_base ** (attempt - 2))
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * config.jitter_factor
        delay += random.uniform(-jitter_range, jitter_range)

    return max(0.0, delay)


def is_retryable(exception: Exception, config: RetryConfig) -> bool:
    """
    Determine if an exception is retryable.

    Checks exception type, then the HTTP status code of an attached response.
    """
    if isinstance(exception, config.retryable_exceptions):
        return True

    response = getattr(exception, "response", None)
    if response is not None and hasattr(response, "status_code"):
        return response.status_code in config.retry_on_status_codes

    return False


def retry(
    config: Optional[RetryConfig] = None,
    operation_name: Optional[str] = None,
) -> Callable:
    """
    Synchronous retry decorator.

    Args:
        config: Retry configuration, defaults to DEFAULT_RETRY_CONFIG
        operation_name: Operation name, used for logging

    Raises:
        RetryExhaustedError: Retries exhausted
        Exception: Non-retryable exceptions are raised directly

    Example:
        >>> @retry(operation_name="eth_chainId")
        ... def probe():
        ...     ...
    """
    if config is None:
        config = DEFAULT_RETRY_CONFIG

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        op_name = operation_name or func.__name__

        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            last_exception: Optional[Exception] = None

            for attempt in range(1, config.max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    last_exception = e

                    if not is_retryable(e, config):
                        logger.debug(
                            "Non-retryable exception in %s: %s",
                            op_name,
                            type(e).__name__,
                        )
                        raise

                    if attempt >= config.max_attempts:
                        logger.warning(
                            "Retry exhausted for %s after %d attempts: %s",
                            op_name,
                            attempt,
                            str(e),
                        )
                        raise RetryExhaustedError(op_name, attempt, e) from e

                    delay = calculate_delay(attempt + 1, config)
                    logger.info(
                        "Retrying %s (attempt %d/%d) after %.2fs: %s",
                        op_name,
                        attempt,
                        config.max_attempts,
                        delay,
                        str(e),
                    )
                    time.sleep(delay)

            raise RetryExhaustedError(op_name, config.max_attempts, last_exception)

        return wrapper

    return decorator
