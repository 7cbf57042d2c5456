"""Retry policies shared by the engine and task executors."""

import time
from typing import Any, Callable, Optional, TypeVar

from .logging import RetryLogger

R = TypeVar("R")


class RetryPolicy:
    """Configuration and driver for retry behavior.

    ``max_retries`` counts retries after the first attempt. With ``linear``
    backoff the wait before retry ``n`` is ``base_delay * n`` seconds,
    otherwise every wait is ``base_delay``.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        linear: bool = True,
        sleep: Optional[Callable[[float], Any]] = None
    ):
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if base_delay < 0:
            raise ValueError("base_delay cannot be negative")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.linear = linear
        self.sleep = sleep or time.sleep

    def get_delay(self, attempt: int) -> float:
        """Calculate the wait before the given retry attempt (1-based)."""
        if self.linear:
            return self.base_delay * attempt
        return self.base_delay

    def run_until_success(
        self,
        operation: str,
        attempt_fn: Callable[[], R],
        is_success: Callable[[R], bool],
        describe_failure: Callable[[R], Optional[str]] = lambda result: None
    ) -> R:
        """Call ``attempt_fn`` until ``is_success`` accepts its result or retries run out.

        Failures here are values, not exceptions; the last result is returned
        either way.
        """
        retry_logger = RetryLogger(operation)
        result = attempt_fn()
        attempt = 0

        while not is_success(result) and attempt < self.max_retries:
            attempt += 1
            delay = self.get_delay(attempt)
            retry_logger.log_retry_attempt(operation, describe_failure(result), attempt, self.max_retries, delay)
            self.sleep(delay)
            result = attempt_fn()

        if attempt:
            if is_success(result):
                retry_logger.log_retry_success(operation, attempt)
            else:
                retry_logger.log_retry_exhausted(operation, describe_failure(result), attempt)
        return result

    def call(self, operation: str, func: Callable[..., R], *args, **kwargs) -> R:
        """Call ``func`` retrying on any exception; the last exception is re-raised."""
        retry_logger = RetryLogger(operation)

        for attempt in range(self.max_retries + 1):
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                if attempt >= self.max_retries:
                    if attempt:
                        retry_logger.log_retry_exhausted(operation, str(e), attempt)
                    raise
                delay = self.get_delay(attempt + 1)
                retry_logger.log_retry_attempt(operation, str(e), attempt + 1, self.max_retries, delay)
                self.sleep(delay)
            else:
                if attempt:
                    retry_logger.log_retry_success(operation, attempt)
                return result
