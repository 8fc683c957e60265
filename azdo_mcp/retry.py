"""Retry mechanism with exponential backoff for Azure DevOps API calls."""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable

from opentelemetry import trace

from .config import RetryConfig
from .errors import AdoApiError, AdoNetworkError, AdoRateLimitError, AdoTimeoutError

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RetryManager:
    """
    Manages retry logic with exponential backoff for Azure DevOps API calls.

    - Rate limiting (429) is retried for every request, honouring Retry-After.
    - Timeouts, connection failures and 5xx responses are retried only when the
      wrapped call is idempotent, so a write is never sent twice.
    - Every other error propagates immediately.

    The manager holds no mutable state, so one instance is shared by all
    concurrent requests of a client.
    """

    def __init__(self, config: RetryConfig):
        """
        Initialize retry manager with configuration.

        Args:
            config: Retry configuration settings
        """
        self.config = config

    def _calculate_delay(self, attempt: int, retry_after: int | None = None) -> float:
        """
        Calculate delay for next retry attempt.

        Args:
            attempt: Current attempt number (0-based)
            retry_after: Optional retry-after value from server

        Returns:
            float: Delay in seconds
        """
        if retry_after:
            base_delay = float(retry_after)
        else:
            base_delay = min(
                self.config.initial_delay * (self.config.backoff_multiplier**attempt),
                self.config.max_delay,
            )

        if self.config.jitter:
            base_delay += random.uniform(0.1, 0.3) * base_delay

        return base_delay

    def _should_retry(self, exception: Exception, attempt: int, idempotent: bool) -> bool:
        if attempt >= self.config.max_retries:
            return False

        if isinstance(exception, AdoRateLimitError):
            return True

        if isinstance(exception, (AdoNetworkError, AdoTimeoutError)):
            return idempotent

        if isinstance(exception, AdoApiError) and (exception.status_code or 0) >= 500:
            return idempotent

        return False

    def retry_on_failure(
        self, func: Callable[..., Any] | None = None, *, idempotent: bool = True
    ) -> Callable[..., Any]:
        """
        Decorator that adds retry logic to a function.

        Can be used bare (``@manager.retry_on_failure``) or with arguments
        (``@manager.retry_on_failure(idempotent=False)``).

        Args:
            func: Function to wrap with retry logic
            idempotent: Whether transient network failures may be retried

        Returns:
            Callable: Wrapped function with retry logic
        """
        if func is None:
            return lambda f: self.retry_on_failure(f, idempotent=idempotent)

        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    with tracer.start_as_current_span("retry_attempt") as span:
                        span.set_attribute("retry.attempt", attempt)
                        span.set_attribute("retry.max_retries", self.config.max_retries)
                        result = func(*args, **kwargs)
                        if attempt > 0:
                            span.set_attribute("retry.success_after_retries", True)
                            logger.info(f"Request succeeded after {attempt} retries")
                        return result

                except Exception as e:
                    if not self._should_retry(e, attempt, idempotent):
                        if attempt > 0:
                            logger.error(f"Giving up after {attempt + 1} attempts: {e}")
                        raise

                    retry_after = e.retry_after if isinstance(e, AdoRateLimitError) else None
                    delay = self._calculate_delay(attempt, retry_after)
                    logger.warning(
                        f"Attempt {attempt + 1} failed: {e}. Retrying in {delay:.2f} seconds..."
                    )

                    with tracer.start_as_current_span("retry_delay") as span:
                        span.set_attribute("retry.delay_seconds", delay)
                        span.set_attribute("retry.attempt", attempt)
                        time.sleep(delay)

                    attempt += 1

        return wrapper
